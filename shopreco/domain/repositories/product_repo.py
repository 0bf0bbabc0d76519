# shopreco/domain/repositories/product_repo.py

from __future__ import annotations
import re
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from shopreco.domain.models.product import Product

SortSpec = Sequence[Tuple[str, int]]
CategoryFilter = Optional[str | Iterable[str]]


def to_numeric_ids(ids: Iterable[Any]) -> List[int]:
    """
    Keep only ids that are (or parse as) integers, in input order.
    Mirrors what the catalog accepts as a product id.
    """
    out: List[int] = []
    for raw in ids:
        if isinstance(raw, bool):
            continue
        try:
            out.append(int(str(raw).strip()))
        except (TypeError, ValueError):
            continue
    return out


def build_filter(exclude_ids: Optional[Iterable[Any]] = None, category: CategoryFilter = None) -> Dict[str, Any]:
    """
    Compose the MQL filter for a catalog query:
      - id not in exclude_ids (non-numeric ids are ignored)
      - category equal to a single value, or "$in" a collection of values
    """
    query: Dict[str, Any] = {}
    not_in = to_numeric_ids(exclude_ids or [])
    if not_in:
        query["id"] = {"$nin": not_in}

    if category:
        if isinstance(category, str):
            query["category"] = category
        else:
            values = list(dict.fromkeys(c for c in category if c))  # dedupe, keep order
            if values:
                query["category"] = {"$in": values}

    return query


def build_search_filter(query: Optional[str]) -> Dict[str, Any]:
    """Case-insensitive substring match on name or description; blank query matches everything."""
    q = (query or "").strip()
    if not q:
        return {}
    pattern = {"$regex": re.escape(q), "$options": "i"}
    return {"$or": [{"name": pattern}, {"description": pattern}]}


class ProductRepo:
    """
    Catalog store backed by the 'products' collection.
    Documents are keyed by a stable integer 'id' (not Mongo's _id).
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    async def find_by_id(self, product_id: int) -> Optional[Product]:
        doc = await self.col.find_one({"id": product_id}, {"_id": 0})
        return Product.model_validate(doc) if doc else None

    async def find_by_ids(self, ids: Iterable[Any]) -> List[Product]:
        """
        Batch load by ids. Returned order follows the requested order
        (duplicates and unknown ids are dropped).
        """
        numeric = list(dict.fromkeys(to_numeric_ids(ids)))
        if not numeric:
            return []
        cursor = self.col.find({"id": {"$in": numeric}}, {"_id": 0})
        by_id = {doc["id"]: doc async for doc in cursor}
        return [Product.model_validate(by_id[i]) for i in numeric if i in by_id]

    async def find_many(
        self,
        *,
        exclude_ids: Optional[Iterable[Any]] = None,
        category: CategoryFilter = None,
        limit: int = 0,
        order_by: Optional[SortSpec] = None,
    ) -> List[Product]:
        """limit=0 means no limit (pymongo convention)."""
        cursor = self.col.find(build_filter(exclude_ids, category), {"_id": 0})
        if order_by:
            cursor = cursor.sort(list(order_by))
        if limit:
            cursor = cursor.limit(limit)
        return [Product.model_validate(doc) async for doc in cursor]

    async def search(self, query: Optional[str], limit: int = 0) -> List[Product]:
        cursor = self.col.find(build_search_filter(query), {"_id": 0})
        if limit:
            cursor = cursor.limit(limit)
        return [Product.model_validate(doc) async for doc in cursor]

    async def update(self, product_id: int, fields: Dict[str, Any]) -> Optional[Product]:
        """Partial update; returns the updated entry or None if the id is unknown."""
        doc = await self.col.find_one_and_update(
            {"id": product_id},
            {"$set": fields},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        return Product.model_validate(doc) if doc else None

    async def iter_all(self, batch_size: int = 500) -> AsyncIterator[Product]:
        cursor = self.col.find({}, {"_id": 0}).batch_size(batch_size)
        try:
            async for doc in cursor:
                yield Product.model_validate(doc)
        finally:
            await cursor.close()
