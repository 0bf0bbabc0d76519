# shopreco/api/deps.py
from typing import Optional
from fastapi import Depends, Request
from shopreco.core.config import Settings, get_settings
from shopreco.db.mongo import get_db
from shopreco.domain.repositories.product_repo import ProductRepo
from shopreco.domain.repositories.vector_index_repo import AtlasVectorIndex
from shopreco.domain.services.recommendation_svc import RecommendationService
from shopreco.domain.services.vector_sync_svc import VectorSynchronizer


# Dependency for injecting the MongoDB database into endpoints/services
async def mongo_db(db = Depends(get_db)):
    return db


def product_repo(db = Depends(mongo_db), settings: Settings = Depends(get_settings)) -> ProductRepo:
    return ProductRepo(db, settings.products_collection)


# Built in the lifespan; None when vector search is disabled
def vector_index(request: Request) -> Optional[AtlasVectorIndex]:
    return getattr(request.app.state, "vector_index", None)


def vector_synchronizer(request: Request) -> Optional[VectorSynchronizer]:
    return getattr(request.app.state, "synchronizer", None)


def recommendation_service(
    repo: ProductRepo = Depends(product_repo),
    index: Optional[AtlasVectorIndex] = Depends(vector_index),
    synchronizer: Optional[VectorSynchronizer] = Depends(vector_synchronizer),
) -> RecommendationService:
    return RecommendationService(repo, index, synchronizer)
