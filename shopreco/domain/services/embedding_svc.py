# shopreco/domain/services/embedding_svc.py

from __future__ import annotations
from typing import Optional
import logging

from openai import AsyncOpenAI
from redis.asyncio import Redis

from shopreco.core.config import Settings
from shopreco.domain.models.product import Product
from shopreco.domain.repositories.vector_cache_repo import VectorCacheRepo
from shopreco.utils.locks import RedisLock

logger = logging.getLogger(__name__)


def product_text(product: Product) -> str:
    """Text embedded for a product: name and description."""
    return f"{product.name or ''}. {product.description or ''}".strip(" .")


class EmbeddingService:
    """
    OpenAI embeddings with an optional Redis cache.

    Built once at startup and injected where needed.

    Steps for `embed(text)`:
      1) Try the Redis cache (key = model + text hash)
      2) Compute under a short Redis lock to avoid duplicate OpenAI calls
      3) Cache the result
    Without Redis, every call goes straight to OpenAI.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        *,
        redis: Optional[Redis] = None,
        cache_prefix: str = "vec",
        cache_ttl: int = 24 * 3600,
        lock_ttl: int = 20,
    ):
        self.client = client
        self.model = model
        self.redis = redis
        self.cache = VectorCacheRepo(redis, prefix=cache_prefix) if redis is not None else None
        self.cache_ttl = cache_ttl
        self.lock_ttl = lock_ttl

    @classmethod
    def from_settings(cls, settings: Settings, redis: Optional[Redis] = None) -> "EmbeddingService":
        client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.openai_timeout_s)
        return cls(
            client,
            settings.OPENAI_EMBEDDING_MODEL,
            redis=redis,
            cache_prefix=settings.vector_cache_prefix,
            cache_ttl=settings.vector_cache_ttl,
            lock_ttl=settings.vector_lock_ttl,
        )

    async def _create(self, text: str) -> Optional[list[float]]:
        logger.debug("Requesting embedding from OpenAI model=%s chars=%d", self.model, len(text))
        resp = await self.client.embeddings.create(model=self.model, input=text)
        vec = resp.data[0].embedding if resp.data else None
        return list(vec) if vec else None

    async def embed(self, text: str) -> Optional[list[float]]:
        if not text:
            return None
        if self.cache is None:
            return await self._create(text)

        cache_key = self.cache.key(text, self.model)
        if vec := await self.cache.get(cache_key):
            logger.debug("Embedding cache hit key=%s", cache_key)
            return vec

        lock = RedisLock(self.redis, cache_key, ttl=self.lock_ttl)
        acquired = await lock.acquire()
        try:
            if not acquired:
                logger.info("Lock not acquired, waiting for embedding key=%s", cache_key)
                await lock.wait(timeout=self.lock_ttl)
                if vec := await self.cache.get(cache_key):
                    return vec
                # the other worker failed or timed out; compute ourselves
                return await self._create(text)

            # Double-check cache after acquiring the lock
            if vec := await self.cache.get(cache_key):
                return vec

            vec = await self._create(text)
            if vec:
                await self.cache.set(cache_key, vec, ttl=self.cache_ttl)
            return vec
        finally:
            if acquired:
                await lock.release()
