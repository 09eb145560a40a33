"""
订阅相关路由：创建订阅、按邮箱查询、暂停/恢复/跳过/取消
"""
from fastapi import APIRouter, Depends, Query

from api.dependencies import get_subscription_service
from application.dtos.payments import SubscribeRequest, SubscriptionActionRequest
from application.services.subscription_service import SubscriptionService
from core.response import success_response


router = APIRouter(tags=["Subscriptions"])


@router.post("/paymongo/subscribe")
async def subscribe(
    payload: SubscribeRequest,
    service: SubscriptionService = Depends(get_subscription_service),
):
    result = await service.subscribe(payload)
    return success_response(data=result.model_dump(), message="Subscription created")


@router.get("/subscriptions")
async def list_subscriptions(
    email: str = Query(..., min_length=1),
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscriptions = await service.list_subscriptions(email)
    return success_response(
        data={"subscriptions": [s.model_dump() for s in subscriptions], "count": len(subscriptions)}
    )


@router.post("/subscriptions/{order_id}/pause")
async def pause_subscription(
    order_id: str,
    payload: SubscriptionActionRequest,
    service: SubscriptionService = Depends(get_subscription_service),
):
    result = await service.pause(order_id, payload)
    return success_response(data=result.model_dump(exclude_none=True), message=result.message)


@router.post("/subscriptions/{order_id}/resume")
async def resume_subscription(
    order_id: str,
    payload: SubscriptionActionRequest,
    service: SubscriptionService = Depends(get_subscription_service),
):
    result = await service.resume(order_id, payload)
    return success_response(data=result.model_dump(exclude_none=True), message=result.message)


@router.post("/subscriptions/{order_id}/skip")
async def skip_delivery(
    order_id: str,
    payload: SubscriptionActionRequest,
    service: SubscriptionService = Depends(get_subscription_service),
):
    result = await service.skip(order_id, payload)
    return success_response(data=result.model_dump(exclude_none=True), message=result.message)


@router.post("/subscriptions/{order_id}/cancel")
async def cancel_subscription(
    order_id: str,
    payload: SubscriptionActionRequest,
    service: SubscriptionService = Depends(get_subscription_service),
):
    result = await service.cancel(order_id, payload)
    return success_response(data=result.model_dump(exclude_none=True), message=result.message)
