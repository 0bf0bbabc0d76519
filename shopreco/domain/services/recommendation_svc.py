import logging
import time
from typing import List, Optional, Sequence

from shopreco.domain.models.product import Product
from shopreco.domain.repositories.product_repo import ProductRepo
from shopreco.domain.repositories.vector_index_repo import AtlasVectorIndex
from shopreco.domain.services.constants import GROUP_LIMIT, SIMILAR_LIMIT
from shopreco.domain.services.ranking import (
    BackstopStrategy,
    LocalScoringStrategy,
    RankingStrategy,
    VectorCentroidStrategy,
    VectorNeighborsStrategy,
)
from shopreco.domain.services.vector_sync_svc import VectorSynchronizer

logger = logging.getLogger(__name__)


class RecommendationService:
    """
    Product recommendations with graceful degradation.

    Tiers, tried in order until one returns something:
      1) vector index (only when one is configured)
      2) local similarity scoring over a candidate pool
      3) popular-items backstop
    Last resort: the input product(s) themselves, so a non-empty catalog
    always yields a non-empty answer.

    Stateless: one instance can serve concurrent requests.
    """

    def __init__(
        self,
        repo: ProductRepo,
        vector_index: Optional[AtlasVectorIndex] = None,
        synchronizer: Optional[VectorSynchronizer] = None,
    ):
        self.repo = repo
        local: List[RankingStrategy] = [LocalScoringStrategy(repo), BackstopStrategy(repo)]
        if vector_index is not None:
            self.similar_tiers: List[RankingStrategy] = [VectorNeighborsStrategy(repo, vector_index, synchronizer), *local]
            self.group_tiers: List[RankingStrategy] = [VectorCentroidStrategy(repo, vector_index, synchronizer), *local]
        else:
            self.similar_tiers = list(local)
            self.group_tiers = list(local)

    async def _run(self, tiers: Sequence[RankingStrategy], bases: Sequence[Product], limit: int) -> List[Product]:
        for tier in tiers:
            t0 = time.perf_counter()
            items = await tier.rank(bases, limit)
            logger.debug("Tier %s returned %d item(s) in %.4fs", tier.name, len(items), time.perf_counter() - t0)
            if items:
                logger.info("Recommendations served by tier=%s bases=%s count=%d",
                            tier.name, [b.id for b in bases], len(items))
                return items[:limit]
        return []

    async def recommend_similar(self, product: Product, limit: int = SIMILAR_LIMIT) -> List[Product]:
        if limit <= 0:
            return []
        items = await self._run(self.similar_tiers, [product], limit)
        if not items:
            logger.warning("No recommendations for product_id=%s, returning the product itself", product.id)
            return [product]
        return items

    async def recommend_for_group(self, products: Sequence[Product], limit: int = GROUP_LIMIT) -> List[Product]:
        if not products:
            raise ValueError("recommend_for_group requires at least one product")
        if limit <= 0:
            return []
        # duplicate inputs would double-weight the centroid
        bases = list({p.id: p for p in products}.values())
        items = await self._run(self.group_tiers, bases, limit)
        if not items:
            logger.warning("No group recommendations for %s, returning the inputs", [b.id for b in bases])
            return bases[:limit]
        return items
