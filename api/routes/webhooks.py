"""
PayMongo webhook 路由

原始请求体必须原样交给签名校验，因此这里直接读取 bytes，不做 JSON 解析。
"""
from fastapi import APIRouter, Depends, Request

from api.dependencies import get_webhook_reconciler
from application.dtos.payments import WebhookOutcome
from application.services.webhook_reconciler import WebhookReconciler
from core.response import success_response
from core.settings import payment_settings
from domain.common.exceptions import BusinessException
from infrastructure.external.payments.exceptions import PaymentSignatureError
from shared.codes import BusinessCode


router = APIRouter(prefix="/paymongo", tags=["Webhooks"])


@router.post("/webhook")
async def paymongo_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    raw_body = await request.body()
    signature = request.headers.get(payment_settings.webhook.signature_header)

    ack = await reconciler.handle(raw_body, signature)

    if ack.outcome == WebhookOutcome.REJECTED_MALFORMED:
        raise BusinessException(
            code=BusinessCode.PARAM_ERROR,
            message="Invalid JSON",
            error_type="MalformedPayload",
        )
    if ack.outcome == WebhookOutcome.REJECTED_SIGNATURE:
        raise PaymentSignatureError("Invalid signature", provider="paymongo")

    return success_response(
        data={"outcome": ack.outcome.value, "order_id": ack.order_id},
        message="ok",
    )
