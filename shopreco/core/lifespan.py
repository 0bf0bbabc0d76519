# shopreco/core/lifespan.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from shopreco.db import mongo, redis as r
from shopreco.core.config import get_settings
from shopreco.domain.repositories.product_repo import ProductRepo
from shopreco.domain.repositories.vector_index_repo import AtlasVectorIndex
from shopreco.domain.services.embedding_svc import EmbeddingService
from shopreco.domain.services.vector_sync_svc import VectorSynchronizer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    app.state.vector_index = None
    app.state.synchronizer = None

    # --- Startup ---
    # Mongo is mandatory when configured
    if settings.MONGO_URI:
        await mongo.connect()
    else:
        logger.warning("No MONGO_URI provided, skipping Mongo connection")

    # Redis is optional (embedding cache)
    if settings.REDIS_URL:
        await r.connect()
    else:
        logger.warning("No REDIS_URL provided, skipping Redis connection")

    # Vector index is optional; recommendations fall back to local scoring without it
    if settings.vector_index_configured and mongo.is_connected():
        db = mongo.get_db()
        index = AtlasVectorIndex(
            db,
            settings.VECTOR_COLLECTION,
            index_name=settings.VECTOR_INDEX_NAME,
            namespace=settings.VECTOR_NAMESPACE,
            num_candidates_factor=settings.vector_num_candidates_factor,
        )
        app.state.vector_index = index
        logger.info("Vector index enabled collection=%s index=%s", settings.VECTOR_COLLECTION, settings.VECTOR_INDEX_NAME)

        if settings.vector_sync_configured:
            embedder = EmbeddingService.from_settings(settings, redis=r.get_redis())
            app.state.synchronizer = VectorSynchronizer(
                ProductRepo(db, settings.products_collection), index, embedder
            )
        else:
            logger.warning("OPENAI_API_KEY not set: vector re-sync disabled")
    else:
        logger.info("Vector index not configured, using local similarity scoring")

    yield

    # --- Shutdown ---
    if settings.REDIS_URL:
        await r.disconnect()
    if settings.MONGO_URI:
        await mongo.disconnect()
        logger.info("Mongo disconnected")
