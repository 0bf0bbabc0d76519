# shopreco/db/mongo.py
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from shopreco.core.config import get_settings
import certifi

logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None


def get_db() -> AsyncIOMotorDatabase:
    assert _db is not None, "Mongo DB not initialized"
    return _db


def is_connected() -> bool:
    return _db is not None


async def connect():
    """
    Create Motor client with explicit CA bundle.
    Do not crash the app if the initial ping fails: keep a lazy client so
    requests can retry once the cluster is reachable.
    """
    global _client, _db
    settings = get_settings()

    def _new_client() -> AsyncIOMotorClient:
        kwargs = dict(
            uuidRepresentation="standard",
            serverSelectionTimeoutMS=6000,
            connectTimeoutMS=6000,
        )
        if settings.MONGO_URI.startswith("mongodb+srv://"):
            # SRV implies TLS; containers often lack a system CA bundle
            kwargs.update(tls=True, tlsCAFile=certifi.where())
        return AsyncIOMotorClient(settings.MONGO_URI, **kwargs)

    try:
        _client = _new_client()
        _db = _client[settings.MONGO_DB]
        await _client.admin.command("ping")
        logger.info("Mongo connected (ping ok) db=%s", settings.MONGO_DB)
    except Exception as e:
        logger.warning("Mongo ping at startup failed: %s", e)
        try:
            # keep a lazy client; first real query will attempt to connect again
            _client = _new_client()
            _db = _client[settings.MONGO_DB]
            logger.warning("Mongo will attempt lazy connection on first query")
        except Exception as e2:
            # routes that need the DB will assert
            _client = None
            _db = None
            logger.error("Mongo client init failed: %s", e2)


async def disconnect():
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
