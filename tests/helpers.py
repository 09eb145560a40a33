"""Builders for PayMongo webhook payloads shared across test modules."""
import json
import time
from typing import Any, Optional

from domain.fulfillment.signature import compute_signature


WEBHOOK_SECRET = "whsec_test"


def paid_event(
    payment_id: Optional[str] = "pay_1",
    payment_intent_id: Optional[str] = "pi_1",
    *,
    event_type: str = "payment.paid",
    livemode: bool = False,
) -> dict[str, Any]:
    attributes: dict[str, Any] = {"amount": 150000, "status": "paid"}
    if payment_intent_id:
        attributes["payment_intent_id"] = payment_intent_id
    resource: dict[str, Any] = {"type": "payment", "attributes": attributes}
    if payment_id:
        resource["id"] = payment_id
    return {
        "data": {
            "id": "evt_1",
            "type": "event",
            "attributes": {"type": event_type, "livemode": livemode, "data": resource},
        }
    }


def sign(raw_body: bytes, *, livemode: bool = False, secret: str = WEBHOOK_SECRET, timestamp: Optional[str] = None) -> str:
    t = timestamp or str(int(time.time()))
    sig = compute_signature(t, raw_body, secret)
    return f"t={t},te={'' if livemode else sig},li={sig if livemode else ''}"


def signed(event: dict[str, Any], **kwargs) -> tuple[bytes, str]:
    """``(raw_body, header)`` for ``event``, signed for its own livemode."""
    raw = json.dumps(event).encode("utf-8")
    livemode = kwargs.pop("livemode", bool(event["data"]["attributes"].get("livemode")))
    return raw, sign(raw, livemode=livemode, **kwargs)
