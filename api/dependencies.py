"""
API依赖项 - 应用服务与共享基础设施的装配

外部客户端、锁、缓存、后台任务执行器在进程内各持有一份，首次使用时创建；
Redis 已初始化时锁与缓存走 Redis，否则退回进程内实现。
"""
from typing import Optional

from fastapi import Depends

from application.ports.cache import ProfileCache
from application.ports.commerce import CommercePlatform
from application.ports.locks import KeyedLock
from application.ports.payment_gateway import PaymentProcessor
from application.services.dog_profile_service import DogProfileService
from application.services.subscription_service import SubscriptionService
from application.services.webhook_reconciler import WebhookReconciler
from core.logging_config import get_logger
from core.settings import payment_settings
from infrastructure.database import AsyncSessionLocal
from infrastructure.external.cache import TTLMemoryCache, get_redis_client
from infrastructure.external.commerce import get_commerce_platform
from infrastructure.external.payments import get_payment_processor
from infrastructure.locks import InProcessKeyedLock, RedisKeyedLock
from infrastructure.tasks import BackgroundTaskRunner
from infrastructure.unit_of_work import make_uow_factory


logger = get_logger(__name__)

_processor: Optional[PaymentProcessor] = None
_commerce: Optional[CommercePlatform] = None
_lock: Optional[KeyedLock] = None
_profile_cache: Optional[ProfileCache] = None
_background: Optional[BackgroundTaskRunner] = None

uow_factory = make_uow_factory(AsyncSessionLocal)


def get_uow_factory():
    return uow_factory


def get_processor() -> PaymentProcessor:
    global _processor
    if _processor is None:
        _processor = get_payment_processor()
    return _processor


def get_commerce() -> CommercePlatform:
    global _commerce
    if _commerce is None:
        _commerce = get_commerce_platform()
    return _commerce


def get_keyed_lock() -> KeyedLock:
    global _lock
    if _lock is None:
        redis = get_redis_client()
        webhook = payment_settings.webhook
        if redis is not None:
            _lock = RedisKeyedLock(
                redis,
                timeout=webhook.lock_timeout_seconds,
                blocking_timeout=webhook.lock_blocking_timeout_seconds,
            )
        else:
            _lock = InProcessKeyedLock(blocking_timeout=webhook.lock_blocking_timeout_seconds)
        logger.info("keyed_lock_selected", backend=type(_lock).__name__)
    return _lock


def get_profile_cache() -> ProfileCache:
    global _profile_cache
    if _profile_cache is None:
        redis = get_redis_client()
        if redis is not None:
            _profile_cache = redis
        else:
            cfg = payment_settings.dog_profiles
            _profile_cache = TTLMemoryCache(default_ttl=cfg.cache_ttl_seconds, max_entries=cfg.cache_max_entries)
        logger.info("profile_cache_selected", backend=type(_profile_cache).__name__)
    return _profile_cache


def get_background_runner() -> BackgroundTaskRunner:
    global _background
    if _background is None:
        _background = BackgroundTaskRunner()
    return _background


async def shutdown_dependencies() -> None:
    """等待后台任务结束并关闭外部 HTTP 客户端"""
    global _processor, _commerce, _lock, _profile_cache, _background
    if _background is not None:
        await _background.drain()
    for client in (_processor, _commerce):
        close = getattr(client, "aclose", None)
        if close is not None:
            await close()
    _processor = _commerce = _lock = _profile_cache = _background = None


async def get_webhook_reconciler(
    commerce: CommercePlatform = Depends(get_commerce),
    lock: KeyedLock = Depends(get_keyed_lock),
) -> WebhookReconciler:
    return WebhookReconciler(
        uow_factory=get_uow_factory(),
        commerce=commerce,
        lock=lock,
        webhook_secret=payment_settings.webhook_secret,
        fulfillment_timeout=payment_settings.fulfillment_timeout_seconds,
    )


async def get_subscription_service(
    processor: PaymentProcessor = Depends(get_processor),
    commerce: CommercePlatform = Depends(get_commerce),
    lock: KeyedLock = Depends(get_keyed_lock),
) -> SubscriptionService:
    return SubscriptionService(
        uow_factory=get_uow_factory(),
        processor=processor,
        commerce=commerce,
        lock=lock,
        fulfillment_timeout=payment_settings.fulfillment_timeout_seconds,
    )


async def get_dog_profile_service(
    commerce: CommercePlatform = Depends(get_commerce),
    cache: ProfileCache = Depends(get_profile_cache),
    background: BackgroundTaskRunner = Depends(get_background_runner),
) -> DogProfileService:
    cfg = payment_settings.dog_profiles
    return DogProfileService(
        commerce=commerce,
        cache=cache,
        background=background,
        metafield_namespace=cfg.metafield_namespace,
        metafield_key=cfg.metafield_key,
        cache_ttl=cfg.cache_ttl_seconds,
    )
