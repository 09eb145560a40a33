from fastapi import APIRouter

from . import dog_profiles, orders, subscriptions, webhooks


api_router = APIRouter(prefix="/api")
api_router.include_router(webhooks.router)
api_router.include_router(subscriptions.router)
api_router.include_router(orders.router)
api_router.include_router(dog_profiles.router)

__all__ = ["api_router"]
