"""
PayMongo webhook signature verification.

Header example: ``t=1716800978,te=<sig_for_test>,li=<sig_for_live>``.
The signed string is ``f"{t}.{raw_body}"`` HMAC-SHA256'd with the webhook
secret. A single endpoint serves both modes, so the component compared is
picked from the event's own ``livemode`` flag.

There is no tolerance window on ``t``: retried deliveries are
absorbed by the idempotency ledger, which is the replay defense.
"""
from __future__ import annotations

import binascii
import hashlib
import hmac
from typing import Optional, Union


TIMESTAMP_KEY = "t"
TEST_SIGNATURE_KEY = "te"
LIVE_SIGNATURE_KEY = "li"


def parse_signature_header(header_value: str) -> dict[str, str]:
    parts: dict[str, str] = {}
    for chunk in header_value.split(","):
        chunk = chunk.strip()
        if not chunk or "=" not in chunk:
            continue
        key, value = chunk.split("=", 1)
        parts[key.strip()] = value.strip()
    return parts


def compute_signature(timestamp: str, raw_body: bytes, secret: str) -> str:
    base = timestamp.encode("utf-8") + b"." + raw_body
    return hmac.new(secret.encode("utf-8"), base, hashlib.sha256).hexdigest()


def verify_signature(
    header_value: Optional[str],
    raw_body: Union[bytes, str],
    secret: Optional[str],
    is_live: bool,
) -> bool:
    """Return True iff the header carries a valid signature for ``raw_body``.

    Never raises: a missing header/secret/component, malformed hex or a
    length mismatch all yield False.
    """
    if not header_value or not secret:
        return False
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")

    parts = parse_signature_header(header_value)
    timestamp = parts.get(TIMESTAMP_KEY)
    sent = parts.get(LIVE_SIGNATURE_KEY if is_live else TEST_SIGNATURE_KEY)
    if not timestamp or not sent:
        return False

    expected = compute_signature(timestamp, raw_body, secret)
    try:
        expected_bytes = bytes.fromhex(expected)
        sent_bytes = bytes.fromhex(sent)
    except (ValueError, binascii.Error):
        return False
    # compare_digest leaks length anyway; bail out early on mismatch
    if len(expected_bytes) != len(sent_bytes):
        return False
    return hmac.compare_digest(expected_bytes, sent_bytes)
