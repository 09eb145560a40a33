"""
Dog profile application service.

Profiles live in a customer metafield on the commerce platform. Reads go
through the injected cache first; writes land in the cache immediately and
the metafield write runs in the background.
"""
from __future__ import annotations

import json
from typing import Optional

from pydantic import ValidationError

from application.dtos.payments import DogProfile
from application.ports.cache import ProfileCache
from application.ports.commerce import CommercePlatform
from application.ports.tasks import TaskSpawner
from application.utils.payloads import utc_now_z
from core.logging_config import get_logger
from domain.common.exceptions import DogProfileNotFoundException


logger = get_logger(__name__)

NEW_CUSTOMER_TAGS = ["dog_profile", "prospect"]


def profile_cache_key(email: str) -> str:
    return f"dog_profile:{email.strip().lower()}"


class DogProfileService:

    def __init__(
        self,
        commerce: CommercePlatform,
        cache: ProfileCache,
        background: TaskSpawner,
        *,
        metafield_namespace: str = "mcduffy",
        metafield_key: str = "dog_profile",
        cache_ttl: Optional[int] = 3600,
    ) -> None:
        self._commerce = commerce
        self._cache = cache
        self._background = background
        self._namespace = metafield_namespace
        self._key = metafield_key
        self._cache_ttl = cache_ttl

    async def get(self, email: str) -> DogProfile:
        cache_key = profile_cache_key(email)
        cached = await self._cache.get(cache_key)
        if cached:
            logger.debug("dog_profile_cache_hit", email=email)
            return DogProfile.model_validate(cached)

        customer = await self._commerce.find_customer(
            email, metafield_namespace=self._namespace, metafield_key=self._key
        )
        raw = ((customer or {}).get("metafield") or {}).get("value")
        if not raw:
            raise DogProfileNotFoundException(email)

        try:
            profile = DogProfile.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            logger.warning("dog_profile_metafield_invalid", email=email, error=str(exc))
            raise DogProfileNotFoundException(email) from exc

        await self._cache.set(cache_key, profile.model_dump(), ttl=self._cache_ttl)
        return profile

    async def save(self, profile: DogProfile) -> DogProfile:
        profile = profile.model_copy(update={"updated_at": utc_now_z()})
        await self._cache.set(profile_cache_key(profile.email), profile.model_dump(), ttl=self._cache_ttl)
        self._background.spawn(
            self._sync_to_commerce(profile),
            name=f"dog_profile_sync:{profile.email}",
            failure_event="dog_profile_sync_failed",
            email=profile.email,
        )
        logger.info("dog_profile_saved", email=profile.email)
        return profile

    async def _sync_to_commerce(self, profile: DogProfile) -> bool:
        customer = await self._commerce.find_customer(
            profile.email, metafield_namespace=self._namespace, metafield_key=self._key
        )
        if customer is None:
            customer = await self._commerce.create_customer(profile.email, NEW_CUSTOMER_TAGS)
        if not customer or not customer.get("id"):
            logger.warning("dog_profile_customer_unavailable", email=profile.email)
            return False
        synced = await self._commerce.set_customer_metafield(
            customer["id"], self._namespace, self._key, profile.model_dump()
        )
        if synced:
            logger.info("dog_profile_synced", email=profile.email, customer_id=customer["id"])
        return synced
