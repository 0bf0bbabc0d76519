import logging
from typing import Iterable, List

from shopreco.domain.models.product import Product
from shopreco.domain.repositories.product_repo import CategoryFilter, ProductRepo
from shopreco.domain.services.constants import MIN_POOL_SIZE, POOL_LIMIT, RANK_SORT

logger = logging.getLogger(__name__)


async def build_pool(
    repo: ProductRepo,
    exclude_ids: Iterable[int],
    category: CategoryFilter = None,
    *,
    limit: int = POOL_LIMIT,
) -> List[Product]:
    """
    Fetch the candidate pool for local scoring.

    - Primary query: entries outside exclude_ids, restricted to the category filter.
    - If a category filter left fewer than MIN_POOL_SIZE entries, widen with an
      unfiltered query (excluding what was already fetched). Same-category
      entries stay first.
    """
    if limit <= 0:
        return []
    excluded = set(exclude_ids)
    primary = await repo.find_many(exclude_ids=excluded, category=category, limit=limit)

    if not category or len(primary) >= MIN_POOL_SIZE:
        return _dedupe(primary, excluded, limit)

    logger.debug("Thin pool (%d) for category=%s, widening without category", len(primary), category)
    seen = excluded | {p.id for p in primary}
    supplemental = await repo.find_many(exclude_ids=seen, limit=limit)
    return _dedupe([*primary, *supplemental], excluded, limit)


def _dedupe(products: Iterable[Product], excluded: set, limit: int) -> List[Product]:
    out: List[Product] = []
    seen: set = set()
    for p in products:
        if len(out) >= limit:
            break
        if p.id in excluded or p.id in seen:
            continue
        seen.add(p.id)
        out.append(p)
    return out


async def fetch_backup_products(repo: ProductRepo, exclude_ids: Iterable[int], limit: int) -> List[Product]:
    """
    Popular items: best rated / most reviewed / newest outside exclude_ids.
    When the exclusion covers the whole catalog, drop it.
    """
    if limit <= 0:
        return []
    excluded = set(exclude_ids)
    candidates = await repo.find_many(exclude_ids=excluded, order_by=RANK_SORT, limit=limit)
    if candidates:
        return candidates
    return await repo.find_many(order_by=RANK_SORT, limit=limit)
