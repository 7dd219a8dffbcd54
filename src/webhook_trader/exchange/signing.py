"""Gate.io APIv4 request signing."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any
from urllib.parse import urlencode


def build_timestamp(now: float | None = None) -> str:
    """Seconds since epoch with microsecond precision, trailing zeros trimmed.

    >>> build_timestamp(1700000000.5)
    '1700000000.5'
    >>> build_timestamp(1700000000.0)
    '1700000000'
    """
    seconds = time.time() if now is None else now
    text = f"{seconds:.6f}".rstrip("0").rstrip(".")
    return text or "0"


def build_query_string(query: dict[str, Any] | None) -> str:
    """Encode query params sorted by key; None values are dropped, lists repeat the key."""
    if not query:
        return ""
    pairs: list[tuple[str, str]] = []
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, str(v)) for v in value if v is not None)
        else:
            pairs.append((key, str(value)))
    pairs.sort(key=lambda kv: kv[0])
    return urlencode(pairs)


def serialize_body(body: Any) -> str:
    """Compact JSON (no whitespace) exactly as it will be sent and signed."""
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    return json.dumps(body, separators=(",", ":"))


def sign_request(
    secret: str,
    method: str,
    path: str,
    query_string: str,
    payload: str,
    timestamp: str,
) -> str:
    """HMAC-SHA512 hex digest over ``METHOD\\nPATH\\nQUERY\\nBODY\\nTIMESTAMP``."""
    message = "\n".join([method.upper(), path, query_string, payload, timestamp])
    return hmac.new(
        secret.strip().encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha512,
    ).hexdigest()
