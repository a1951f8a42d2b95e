"""
Idempotency Key Helpers

Format validation and extraction of client-supplied idempotency keys.
"""

import re
import uuid
from typing import Any, Mapping, Optional

IDEMPOTENCY_HEADER = "Idempotency-Key"

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{8,128}$")


def is_valid_idempotency_key(key: Any) -> bool:
    """
    Check the format of a client-supplied idempotency key.

    Accepts an 8-4-4-4-12 hex UUID or 8 to 128 characters drawn from
    letters, digits, ``_`` and ``-``.
    """
    if not isinstance(key, str) or not key:
        return False
    return bool(_UUID_PATTERN.match(key) or _TOKEN_PATTERN.match(key))


def extract_idempotency_key(headers: Mapping[str, str]) -> Optional[str]:
    """
    Read the ``Idempotency-Key`` header.

    Returns None when the header is absent or blank, meaning the request runs
    without idempotency protection.
    """
    value = headers.get(IDEMPOTENCY_HEADER)
    if value is None:
        # Plain dicts are case-sensitive; Starlette headers are not
        lowered = IDEMPOTENCY_HEADER.lower()
        value = next(
            (v for k, v in headers.items() if k.lower() == lowered),
            None,
        )
    if value is None or not value.strip():
        return None
    return value.strip()


def generate_request_id() -> str:
    """Generate a server-side request id for tracing."""
    return str(uuid.uuid4())
