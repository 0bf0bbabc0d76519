# shopreco/api/v1/routers/products.py

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
import time
import logging

from shopreco.api.deps import product_repo, recommendation_service, vector_synchronizer
from shopreco.core.config import Settings, get_settings
from shopreco.api.v1.schemas.product import ProductOut, RatingIn, RecommendationsIn, VectorizeResult
from shopreco.domain.repositories.product_repo import ProductRepo, to_numeric_ids
from shopreco.domain.services.recommendation_svc import RecommendationService
from shopreco.domain.services.vector_sync_svc import VectorSynchronizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


def _parse_id(raw: str) -> int:
    ids = to_numeric_ids([raw])
    if not ids:
        raise HTTPException(status_code=400, detail="Invalid product id")
    return ids[0]


async def _get_or_404(repo: ProductRepo, product_id: int):
    product = await repo.find_by_id(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("", response_model=List[ProductOut])
async def list_products(repo: ProductRepo = Depends(product_repo)):
    return [ProductOut.from_product(p) for p in await repo.find_many()]


@router.get("/search", response_model=List[ProductOut])
async def search_products(
    q: Optional[str] = Query(None, description="Case-insensitive match on name or description"),
    repo: ProductRepo = Depends(product_repo),
):
    return [ProductOut.from_product(p) for p in await repo.search(q)]


@router.get("/category/{category}", response_model=List[ProductOut])
async def products_by_category(category: str, repo: ProductRepo = Depends(product_repo)):
    return [ProductOut.from_product(p) for p in await repo.find_many(category=category)]


@router.post("/recommendations", response_model=List[ProductOut])
async def group_recommendations(
    body: RecommendationsIn,
    limit: Optional[int] = Query(None, ge=1, le=50, description="Defaults to the group_limit setting"),
    repo: ProductRepo = Depends(product_repo),
    svc: RecommendationService = Depends(recommendation_service),
    settings: Settings = Depends(get_settings),
):
    """
    Recommendations for a set of products (e.g. a cart).
    Body: {"ids": [1, 2, ...]}; ids that are not numeric are ignored.
    """
    if not body.ids:
        raise HTTPException(status_code=400, detail="Request body must have a non-empty array of ids")

    products = await repo.find_by_ids(to_numeric_ids(body.ids))
    if not products:
        raise HTTPException(status_code=400, detail="No products found for provided ids")

    limit = limit or settings.group_limit

    start_time = time.perf_counter()
    items = await svc.recommend_for_group(products, limit)
    logger.info(
        "Response: group_recommendations ids=%s, count=%s, elapsed_time=%.4fs",
        [p.id for p in products], len(items), time.perf_counter() - start_time,
    )
    return [ProductOut.from_product(p) for p in items]


@router.post("/vectorize", response_model=VectorizeResult, summary="Sync catalog products into the vector index")
async def vectorize_products(
    limit: Optional[int] = Query(None, ge=1, description="Max number of products to process"),
    synchronizer: Optional[VectorSynchronizer] = Depends(vector_synchronizer),
):
    if synchronizer is None:
        raise HTTPException(status_code=503, detail="Vector index sync is not configured")
    logger.info("[vectorize] start limit=%s", limit)
    return VectorizeResult(**await synchronizer.sync_catalog(limit=limit))


@router.get("/{product_id}/similar", response_model=List[ProductOut])
async def similar_products(
    product_id: str,
    limit: Optional[int] = Query(None, ge=1, le=50, description="Defaults to the similar_limit setting"),
    repo: ProductRepo = Depends(product_repo),
    svc: RecommendationService = Depends(recommendation_service),
    settings: Settings = Depends(get_settings),
):
    """
    Similar products: vector index first, then local similarity scoring,
    then popular items.
    """
    pid = _parse_id(product_id)
    limit = limit or settings.similar_limit
    logger.info("Request: similar_products product_id=%s, limit=%s", pid, limit)
    product = await _get_or_404(repo, pid)

    start_time = time.perf_counter()
    items = await svc.recommend_similar(product, limit)
    logger.info(
        "Response: similar_products product_id=%s, count=%s, elapsed_time=%.4fs",
        pid, len(items), time.perf_counter() - start_time,
    )
    return [ProductOut.from_product(p) for p in items]


@router.get("/{product_id}", response_model=ProductOut)
async def get_product(product_id: str, repo: ProductRepo = Depends(product_repo)):
    product = await _get_or_404(repo, _parse_id(product_id))
    return ProductOut.from_product(product)


@router.put("/{product_id}/rating", response_model=ProductOut)
async def rate_product(product_id: str, body: RatingIn, repo: ProductRepo = Depends(product_repo)):
    """Fold one new rating into the running average."""
    pid = _parse_id(product_id)
    product = await _get_or_404(repo, pid)

    num_reviews = (product.num_reviews or 0) + 1
    total = (product.rating or 0) * (product.num_reviews or 0) + body.rating
    updated = await repo.update(pid, {"rating": total / num_reviews, "num_reviews": num_reviews})
    if not updated:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductOut.from_product(updated)
