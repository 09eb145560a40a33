"""
3-D Secure 完成后由店面调用的手动建单接口（webhook 的兜底路径）
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_subscription_service
from application.dtos.payments import CreateOrderRequest
from application.services.subscription_service import SubscriptionService
from core.response import success_response


router = APIRouter(prefix="/shopify", tags=["Orders"])


@router.post("/create-order")
async def create_order(
    payload: CreateOrderRequest,
    service: SubscriptionService = Depends(get_subscription_service),
):
    result = await service.create_order_for_intent(payload.payment_intent_id)
    return success_response(data=result.model_dump(), message=result.message)
