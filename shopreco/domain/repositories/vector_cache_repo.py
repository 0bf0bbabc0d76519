# shopreco/domain/repositories/vector_cache_repo.py
from __future__ import annotations
from typing import Optional, Sequence
from redis.asyncio import Redis
import json, hashlib

"""
Redis cache for embedding vectors computed during vector sync.
The vector index remains the source of truth; this only saves repeated
embedding calls for unchanged product text.
"""

def _stable_hash(value: str) -> str:
    """Short, stable hash used to version cache keys."""
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:8]

class VectorCacheRepo:
    """
    Adapter for storing and retrieving embeddings in Redis.
    No business logic here, just cache access (get/set).
    """
    def __init__(self, redis: Redis, prefix: str = "vec"):
        self.redis = redis
        self.prefix = prefix

    def key(self, text: str, model: str) -> str:
        """
        Key on model + embedded text so an edited product re-embeds
        while an unchanged one hits the cache.
        """
        return f"{self.prefix}:{_stable_hash(model)}:{hashlib.sha1(text.encode('utf-8')).hexdigest()}"

    async def get(self, key: str) -> Optional[list[float]]:
        if raw := await self.redis.get(key):
            return json.loads(raw)
        return None

    async def set(self, key: str, vector: Sequence[float], ttl: int) -> None:
        await self.redis.set(key, json.dumps(list(vector), separators=(",", ":")), ex=ttl)
