from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from shopreco.domain.services.embedding_svc import EmbeddingService, product_text
from shopreco.domain.services.vector_sync_svc import VectorSynchronizer, vector_metadata
from conftest import FakeProductRepo, FakeVectorIndex, make_product


class FakeEmbedder:
    def __init__(self, vector=(0.1, 0.2, 0.3), fail_on=None):
        self.vector = list(vector) if vector else None
        self.fail_on = fail_on
        self.texts = []

    async def embed(self, text):
        self.texts.append(text)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError("rate limited")
        return self.vector


class FakeOpenAI:
    """Mimics AsyncOpenAI().embeddings.create(...)."""

    def __init__(self, vector):
        self.calls = []

        async def create(model, input):
            self.calls.append((model, input))
            return SimpleNamespace(data=[SimpleNamespace(embedding=vector)])

        self.embeddings = SimpleNamespace(create=create)


class FakeRedis:
    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def exists(self, key):
        return int(key in self.store)

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


def test_product_text():
    assert product_text(make_product(1, name="Lamp", description="Warm light")) == "Lamp. Warm light"
    assert product_text(make_product(1, name="Lamp", description=None)) == "Lamp"
    assert product_text(make_product(1, name="", description="")) == ""


def test_vector_metadata_carries_catalog_id():
    created = datetime(2024, 5, 1, tzinfo=timezone.utc)
    meta = vector_metadata(make_product(42, name="Lamp", category="home", created_at=created))
    assert meta["product_id"] == 42
    assert meta["category"] == "home"
    assert meta["created_at"] == created.isoformat()


async def test_ensure_synced_upserts_and_backfills_vector_id():
    repo = FakeProductRepo([make_product(1, name="Lamp", description="Warm light")])
    index = FakeVectorIndex()
    sync = VectorSynchronizer(repo, index, FakeEmbedder())

    assert await sync.ensure_synced(repo.products[1]) is True
    assert index.items["1"][0] == [0.1, 0.2, 0.3]
    assert index.items["1"][1]["product_id"] == 1
    assert repo.updates == [(1, {"vector_id": "1"})]


async def test_ensure_synced_keeps_existing_vector_id():
    repo = FakeProductRepo([make_product(1, name="Lamp", vector_id="lamp-1")])
    index = FakeVectorIndex()
    sync = VectorSynchronizer(repo, index, FakeEmbedder())

    assert await sync.ensure_synced(repo.products[1]) is True
    assert "lamp-1" in index.items
    assert repo.updates == []


async def test_ensure_synced_skips_when_nothing_to_embed():
    repo = FakeProductRepo([make_product(1, name="", description="")])
    index = FakeVectorIndex()
    assert await VectorSynchronizer(repo, index, FakeEmbedder()).ensure_synced(repo.products[1]) is False
    assert await VectorSynchronizer(repo, index, FakeEmbedder(vector=None)).ensure_synced(
        make_product(2, name="Lamp")
    ) is False
    assert index.calls_to("upsert") == 0


async def test_ensure_synced_propagates_index_errors():
    repo = FakeProductRepo([make_product(1, name="Lamp")])
    sync = VectorSynchronizer(repo, FakeVectorIndex(fail=True), FakeEmbedder())
    with pytest.raises(ConnectionError):
        await sync.ensure_synced(repo.products[1])


async def test_remove_deletes_vector():
    index = FakeVectorIndex({"1": [1, 0]})
    sync = VectorSynchronizer(FakeProductRepo(), index, FakeEmbedder())
    assert await sync.remove(make_product(1)) is True
    assert await sync.remove(make_product(1)) is False


async def test_sync_catalog_collects_stats():
    repo = FakeProductRepo([
        make_product(1, name="Lamp"),
        make_product(2, name="", description=""),
        make_product(3, name="Broken chair"),
        make_product(4, name="Desk"),
    ])
    sync = VectorSynchronizer(repo, FakeVectorIndex(), FakeEmbedder(fail_on="Broken"))

    stats = await sync.sync_catalog()
    assert (stats["seen"], stats["synced"], stats["skipped"], stats["failed"]) == (4, 2, 1, 1)
    assert stats["errors"][0].startswith("3:")

    limited = await sync.sync_catalog(limit=1)
    assert limited["seen"] == 1


async def test_embedding_service_without_cache_calls_openai_each_time():
    client = FakeOpenAI([0.5, 0.5])
    svc = EmbeddingService(client, "text-embedding-3-small")

    assert await svc.embed("Lamp") == [0.5, 0.5]
    assert await svc.embed("Lamp") == [0.5, 0.5]
    assert await svc.embed("") is None
    assert len(client.calls) == 2


async def test_embedding_service_uses_redis_cache():
    client = FakeOpenAI([0.5, 0.5])
    redis = FakeRedis()
    svc = EmbeddingService(client, "text-embedding-3-small", redis=redis)

    assert await svc.embed("Lamp") == [0.5, 0.5]
    assert await svc.embed("Lamp") == [0.5, 0.5]
    assert client.calls == [("text-embedding-3-small", "Lamp")]
    # lock released after computing
    assert not any(k.startswith("lock:") for k in redis.store)
