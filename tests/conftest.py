import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import pytest

from shopreco.domain.models.product import Product, VectorMatch


def make_product(id: int, **kw) -> Product:
    data = {"name": f"Product {id}", "description": "", "price": 10.0}
    data.update(kw)
    return Product(id=id, **data)


class FakeProductRepo:
    """In-memory catalog store with the same query semantics as ProductRepo."""

    def __init__(self, products: Iterable[Product] = ()):
        self.products: Dict[int, Product] = {p.id: p for p in products}
        self.find_many_calls: List[dict] = []
        self.updates: List[tuple] = []
        self.fail = False

    def _check(self):
        if self.fail:
            raise RuntimeError("catalog unavailable")

    async def find_by_id(self, product_id: int) -> Optional[Product]:
        self._check()
        return self.products.get(product_id)

    async def find_by_ids(self, ids) -> List[Product]:
        self._check()
        out, seen = [], set()
        for raw in ids:
            pid = int(raw)
            if pid in self.products and pid not in seen:
                seen.add(pid)
                out.append(self.products[pid])
        return out

    async def find_many(self, *, exclude_ids=None, category=None, limit=0, order_by=None) -> List[Product]:
        self._check()
        self.find_many_calls.append(
            {"exclude_ids": set(exclude_ids or ()), "category": category, "limit": limit, "order_by": order_by}
        )
        excluded = {int(i) for i in (exclude_ids or ())}
        rows = [p for p in self.products.values() if p.id not in excluded]
        if category:
            allowed = {category} if isinstance(category, str) else set(category)
            rows = [p for p in rows if p.category in allowed]
        for field, direction in reversed(list(order_by or [])):
            # Mongo puts nulls last when sorting descending
            rows.sort(
                key=lambda p: (getattr(p, field) is not None, getattr(p, field) or 0),
                reverse=direction < 0,
            )
        return rows[:limit] if limit else rows

    async def search(self, query: Optional[str], limit: int = 0) -> List[Product]:
        self._check()
        q = (query or "").strip().lower()
        rows = [p for p in self.products.values()
                if not q or q in p.name.lower() or q in (p.description or "").lower()]
        return rows[:limit] if limit else rows

    async def update(self, product_id: int, fields: Dict[str, Any]) -> Optional[Product]:
        self._check()
        self.updates.append((product_id, fields))
        if product_id not in self.products:
            return None
        self.products[product_id] = self.products[product_id].model_copy(update=fields)
        return self.products[product_id]

    async def iter_all(self, batch_size: int = 500):
        for p in list(self.products.values()):
            yield p


def _cosine(a, b) -> float:
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(x * x for x in b))
    if not na or not nb:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / (na * nb)


class FakeVectorIndex:
    """In-memory vector index: {vector id: (values, metadata)}, cosine ranking."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, *, fail: bool = False):
        self.items: Dict[str, tuple] = {}
        for vid, values in (vectors or {}).items():
            self.items[vid] = (values, {"product_id": int(vid)})
        self.fail = fail
        self.calls: List[tuple] = []

    def _check(self, name, *args):
        self.calls.append((name, *args))
        if self.fail:
            raise ConnectionError("vector index down")

    def calls_to(self, name) -> int:
        return sum(1 for c in self.calls if c[0] == name)

    async def query_by_id(self, vector_id: str, top_k: int, namespace=None) -> List[VectorMatch]:
        self._check("query_by_id", vector_id, top_k)
        if vector_id not in self.items:
            return []
        return self._rank(self.items[vector_id][0], top_k)

    async def query_by_vector(self, vector, top_k: int, namespace=None) -> List[VectorMatch]:
        self._check("query_by_vector", list(vector), top_k)
        return self._rank(vector, top_k)

    def _rank(self, vector, top_k):
        scored = sorted(self.items.items(), key=lambda kv: _cosine(vector, kv[1][0]), reverse=True)
        return [VectorMatch(id=vid, score=_cosine(vector, v), metadata=meta) for vid, (v, meta) in scored[:top_k]]

    async def fetch_vectors(self, ids, namespace=None) -> Dict[str, List[float]]:
        ids = list(ids)
        self._check("fetch_vectors", ids)
        return {i: self.items[i][0] for i in ids if i in self.items}

    async def upsert(self, items, namespace=None) -> int:
        items = list(items)
        self._check("upsert", items)
        for it in items:
            self.items[str(it["id"])] = (list(it["values"]), it.get("metadata") or {})
        return len(items)

    async def delete(self, ids, namespace=None) -> int:
        ids = list(ids)
        self._check("delete", ids)
        return sum(1 for i in ids if self.items.pop(str(i), None) is not None)


class FakeSynchronizer:
    """Records ensure_synced calls; optionally indexes a vector for the product."""

    def __init__(self, index: Optional[FakeVectorIndex] = None, vectors: Optional[Dict[int, List[float]]] = None,
                 *, fail: bool = False):
        self.index = index
        self.vectors = vectors or {}
        self.fail = fail
        self.synced: List[int] = []

    async def ensure_synced(self, product: Product) -> bool:
        self.synced.append(product.id)
        if self.fail:
            raise RuntimeError("embedding service down")
        values = self.vectors.get(product.id)
        if self.index is None or values is None:
            return False
        self.index.items[product.vector_key] = (values, {"product_id": product.id})
        return True


@pytest.fixture
def widget_catalog() -> List[Product]:
    return [
        make_product(1, category="A", brand="X", price=10, name="Widget Pro", description="best widget"),
        make_product(2, category="A", brand="X", price=12, name="Widget Max", description="great widget"),
        make_product(3, category="B", brand="Y", price=500, name="Gadget", description="unrelated device"),
    ]


@pytest.fixture
def ranked_catalog() -> List[Product]:
    """Catalog with ratings/reviews/dates for backstop ordering."""
    def ts(day):
        return datetime(2024, 1, day, tzinfo=timezone.utc)
    return [
        make_product(10, category="toys", rating=4.0, num_reviews=10, created_at=ts(1)),
        make_product(11, category="toys", rating=5.0, num_reviews=2, created_at=ts(2)),
        make_product(12, category="books", rating=4.0, num_reviews=30, created_at=ts(3)),
        make_product(13, category="books", rating=4.0, num_reviews=30, created_at=ts(4)),
        make_product(14, category="games", rating=None, num_reviews=None, created_at=ts(5)),
    ]
