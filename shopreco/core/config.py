from functools import lru_cache
from typing import Literal
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "StorefrontRecommendations"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"
    ALLOWED_ORIGINS: str = ""          # CSV, e.g. "https://shop.example.com,https://www.shop.example.com"

    # Mongo (catalog store)
    MONGO_URI: str = ""
    MONGO_DB: str = "storefront"
    products_collection: str = "products"

    # Redis (optional, embedding cache only)
    REDIS_URL: str = ""
    vector_cache_ttl: int = 24 * 3600          # 24h
    vector_cache_prefix: str = "vec"           # redis key namespace
    vector_lock_ttl: int = 20                  # seconds; dogpile protection

    # OpenAI (embeddings for vector sync)
    OPENAI_API_KEY: str = ""
    openai_timeout_s: int = 30  # seconds
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"

    # Vector index (MongoDB Atlas Vector Search)
    VECTOR_SEARCH_ENABLED: bool = False
    VECTOR_COLLECTION: str = "product_vectors"
    VECTOR_INDEX_NAME: str = "vector_index"
    VECTOR_NAMESPACE: str = ""
    vector_num_candidates_factor: int = 10     # numCandidates = factor * limit (min 100)

    # Recommendation limits
    similar_limit: int = 5
    group_limit: int = 10

    # API
    api_prefix: str = "/api"

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True, extra="ignore")

    @property
    def vector_index_configured(self) -> bool:
        return bool(self.VECTOR_SEARCH_ENABLED and self.MONGO_URI)

    @property
    def vector_sync_configured(self) -> bool:
        return self.vector_index_configured and bool(self.OPENAI_API_KEY)

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
