# shopreco/domain/services/vector_sync_svc.py
from __future__ import annotations
import logging
import time
from typing import Any, Dict, Optional

from shopreco.domain.models.product import Product
from shopreco.domain.repositories.product_repo import ProductRepo
from shopreco.domain.repositories.vector_index_repo import AtlasVectorIndex
from shopreco.domain.services.embedding_svc import EmbeddingService, product_text

logger = logging.getLogger(__name__)


def vector_metadata(product: Product) -> Dict[str, Any]:
    """Metadata stored next to each vector; 'product_id' maps a match back to the catalog."""
    return {
        "product_id": product.id,
        "name": product.name,
        "category": product.category,
        "brand": product.brand,
        "price": product.price,
        "image": product.image,
        "created_at": product.created_at.isoformat() if product.created_at else None,
    }


class VectorSynchronizer:
    """
    Keeps the vector index in step with the catalog.

    `ensure_synced` embeds the product text, upserts it into the index and
    backfills `vector_id` on the catalog entry. It returns False when there is
    nothing to index (no text, empty embedding); index and OpenAI errors
    propagate so callers decide how to degrade.
    """

    def __init__(self, repo: ProductRepo, index: AtlasVectorIndex, embedder: EmbeddingService):
        self.repo = repo
        self.index = index
        self.embedder = embedder

    async def ensure_synced(self, product: Product) -> bool:
        text = product_text(product)
        if not text:
            logger.debug("Nothing to embed for product_id=%s", product.id)
            return False

        values = await self.embedder.embed(text)
        if not values:
            logger.warning("Empty embedding for product_id=%s", product.id)
            return False

        vector_id = product.vector_key
        await self.index.upsert([{"id": vector_id, "values": values, "metadata": vector_metadata(product)}])
        logger.info("Synced product_id=%s to vector index as %s", product.id, vector_id)

        if product.vector_id != vector_id:
            try:
                await self.repo.update(product.id, {"vector_id": vector_id})
            except Exception as e:
                # the vector is indexed; the backfill is retried on the next sync
                logger.error("Backfilling vector_id failed for product_id=%s: %s", product.id, e)
        return True

    async def remove(self, product: Product) -> bool:
        deleted = await self.index.delete([product.vector_key])
        return deleted > 0

    async def sync_catalog(self, limit: Optional[int] = None) -> Dict[str, Any]:
        """Sync every catalog entry (or the first `limit`). Errors are collected per product."""
        start = time.perf_counter()
        stats: Dict[str, Any] = {"seen": 0, "synced": 0, "skipped": 0, "failed": 0, "errors": []}

        async for product in self.repo.iter_all():
            stats["seen"] += 1
            try:
                if await self.ensure_synced(product):
                    stats["synced"] += 1
                else:
                    stats["skipped"] += 1
            except Exception as e:
                stats["failed"] += 1
                stats["errors"].append(f"{product.id}: {e}")
                logger.error("Vector sync failed for product_id=%s: %s", product.id, e)
            if limit and stats["seen"] >= limit:
                break

        stats["processing_time_ms"] = (time.perf_counter() - start) * 1000.0
        logger.info(
            "[vectorize] done seen=%s synced=%s skipped=%s failed=%s time_ms=%.1f",
            stats["seen"], stats["synced"], stats["skipped"], stats["failed"], stats["processing_time_ms"],
        )
        return stats
