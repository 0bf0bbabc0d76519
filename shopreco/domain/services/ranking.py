"""
Ranking tiers used by the recommendation service.

Each tier implements `rank(bases, limit)` and returns an ordered list of
catalog entries that never contains a base product and never repeats an id.
An empty list means "nothing usable": the service then moves on to the next
tier. Vector tiers swallow (and log) every vector index / sync failure;
catalog failures propagate.
"""
import logging
from typing import Iterable, List, Optional, Protocol, Sequence

from shopreco.domain.models.product import Product, VectorMatch
from shopreco.domain.repositories.product_repo import ProductRepo, to_numeric_ids
from shopreco.domain.repositories.vector_index_repo import AtlasVectorIndex
from shopreco.domain.services.candidate_pool import build_pool, fetch_backup_products
from shopreco.domain.services.constants import VECTOR_OVERFETCH
from shopreco.domain.services.similarity import best_score
from shopreco.domain.services.vector_sync_svc import VectorSynchronizer

logger = logging.getLogger(__name__)


class RankingStrategy(Protocol):
    name: str

    async def rank(self, bases: Sequence[Product], limit: int) -> List[Product]:
        ...


# ---------- helpers -----------------------------------------------------------

def match_product_id(match: VectorMatch) -> Optional[str]:
    """Catalog id carried by a vector match: metadata first, then the raw vector id."""
    meta = match.metadata or {}
    for key in ("product_id", "id"):
        if meta.get(key) not in (None, ""):
            return str(meta[key])
    return match.id or None


def centroid(vectors: Iterable[Sequence[float]]) -> List[float]:
    """
    Component-wise mean. Vectors whose dimension differs from the first
    one are ignored; returns [] when nothing usable is left.
    """
    usable = [list(v) for v in vectors if v]
    if not usable:
        return []
    dim = len(usable[0])
    same_dim = [v for v in usable if len(v) == dim]
    if len(same_dim) != len(usable):
        logger.warning("Dropped %d vector(s) with dimension != %d", len(usable) - len(same_dim), dim)
    return [sum(col) / len(same_dim) for col in zip(*same_dim)]


def _dedupe_top(products: Iterable[Product], excluded: set, limit: int) -> List[Product]:
    out: List[Product] = []
    seen = set(excluded)
    for p in products:
        if len(out) >= limit:
            break
        if p.id in seen:
            continue
        seen.add(p.id)
        out.append(p)
    return out


class _VectorTier:
    """Shared plumbing for the two vector-index tiers."""

    name = "vector"

    def __init__(self, repo: ProductRepo, index: AtlasVectorIndex, synchronizer: Optional[VectorSynchronizer] = None):
        self.repo = repo
        self.index = index
        self.synchronizer = synchronizer

    async def _resync(self, product: Product) -> bool:
        if self.synchronizer is None:
            return False
        try:
            return await self.synchronizer.ensure_synced(product)
        except Exception as e:
            logger.error("Vector re-sync failed for product_id=%s: %s", product.id, e)
            return False

    async def _load_matches(self, matches: Sequence[VectorMatch], excluded: set, limit: int) -> List[Product]:
        """Map matches to catalog ids (rank order kept), drop excluded/duplicates, load entries."""
        ordered: List[int] = []
        seen = set(excluded)
        for pid in to_numeric_ids(match_product_id(m) for m in matches):
            if len(ordered) >= limit:
                break
            if pid in seen:
                continue
            seen.add(pid)
            ordered.append(pid)
        if not ordered:
            return []
        return _dedupe_top(await self.repo.find_by_ids(ordered), excluded, limit)


# ---------- tiers ---------------------------------------------------------------

class VectorNeighborsStrategy(_VectorTier):
    """Single product: nearest neighbours of its stored vector."""

    name = "vector_neighbors"

    async def _query(self, key: str, top_k: int) -> List[VectorMatch]:
        try:
            return await self.index.query_by_id(key, top_k)
        except Exception as e:
            logger.warning("Vector query_by_id failed for %s: %s", key, e)
            return []

    async def rank(self, bases: Sequence[Product], limit: int) -> List[Product]:
        product = bases[0]
        key = product.vector_key
        top_k = limit + VECTOR_OVERFETCH

        matches = await self._query(key, top_k)
        if not matches:
            logger.info("No vector matches for %s, re-syncing and retrying once", key)
            if not await self._resync(product):
                return []
            matches = await self._query(key, top_k)

        return await self._load_matches(matches, {b.id for b in bases}, limit)


class VectorCentroidStrategy(_VectorTier):
    """Group of products: nearest neighbours of the centroid of their vectors."""

    name = "vector_centroid"

    async def _fetch(self, keys: List[str]) -> dict:
        try:
            return await self.index.fetch_vectors(keys)
        except Exception as e:
            logger.warning("Vector fetch failed for %d id(s): %s", len(keys), e)
            return {}

    async def rank(self, bases: Sequence[Product], limit: int) -> List[Product]:
        by_key = {b.vector_key: b for b in bases}
        keys = list(by_key)

        vectors = await self._fetch(keys)
        missing = [k for k in keys if not vectors.get(k)]
        if missing:
            logger.info("Missing vectors for %s, re-syncing", missing)
            for k in missing:
                await self._resync(by_key[k])
            vectors = await self._fetch(keys)

        query = centroid(vectors[k] for k in keys if vectors.get(k))
        if not query:
            return []

        try:
            matches = await self.index.query_by_vector(query, limit + len(bases) + VECTOR_OVERFETCH)
        except Exception as e:
            logger.warning("Vector centroid query failed: %s", e)
            return []

        return await self._load_matches(matches, {b.id for b in bases}, limit)


class LocalScoringStrategy:
    """
    In-process fallback: score a candidate pool against the base products
    (best score over all bases) and keep the top entries.
    """

    name = "local_scoring"

    def __init__(self, repo: ProductRepo):
        self.repo = repo

    @staticmethod
    def category_filter(bases: Sequence[Product]):
        categories = list(dict.fromkeys(b.category for b in bases if b.category))
        if not categories:
            return None
        if len(bases) == 1:
            return categories[0]
        return categories

    async def rank(self, bases: Sequence[Product], limit: int) -> List[Product]:
        excluded = {b.id for b in bases}
        pool = await build_pool(self.repo, excluded, self.category_filter(bases))
        if not pool:
            return []
        # sorted() is stable: equal scores keep pool (store) order
        scored = sorted(pool, key=lambda c: best_score(bases, c), reverse=True)
        return _dedupe_top(scored, excluded, limit)


class BackstopStrategy:
    """Popular items, ignoring categories."""

    name = "backstop"

    def __init__(self, repo: ProductRepo):
        self.repo = repo

    async def rank(self, bases: Sequence[Product], limit: int) -> List[Product]:
        excluded = {b.id for b in bases}
        backups = await fetch_backup_products(self.repo, excluded, limit)
        # when the exclusion covered the whole catalog the backstop may return bases;
        # those stay out so the result never recommends what was asked about
        return _dedupe_top(backups, excluded, limit)
