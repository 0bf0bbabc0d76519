from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from shopreco.core.config import get_settings
from shopreco.core.lifespan import lifespan
from shopreco.core.logging import configure_logging
from shopreco.api.v1.routers.products import router as products_router
from shopreco.api.v1.routers.health import router as health_router

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ------- CORS -------
# ALLOWED_ORIGINS from env (CSV). Without it, only the local storefront dev server.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins or ["http://localhost:3000"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

# ------- Routes -------
app.include_router(health_router)
app.include_router(products_router, prefix=settings.api_prefix)
