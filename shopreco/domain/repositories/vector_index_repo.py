# shopreco/domain/repositories/vector_index_repo.py
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Sequence
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo import ReplaceOne

from shopreco.domain.models.product import VectorMatch


class AtlasVectorIndex:
    """
    External vector-similarity index on MongoDB Atlas Vector Search.

    One document per indexed product in a dedicated collection:
      { _id: <vector id>, namespace: str, values: [float], metadata: {...} }

    The Atlas search index (VECTOR_INDEX_NAME) must declare 'values' as the
    vector path and 'namespace' as a filter field.
    No business logic here; callers decide what to do on failure.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        collection_name: str = "product_vectors",
        *,
        index_name: str = "vector_index",
        namespace: str = "",
        num_candidates_factor: int = 10,
    ):
        self.col: AsyncIOMotorCollection = db[collection_name]
        self.index_name = index_name
        self.namespace = namespace
        self.num_candidates_factor = num_candidates_factor

    def _ns(self, namespace: Optional[str]) -> str:
        return self.namespace if namespace is None else namespace

    # ---------- Queries ----------
    async def query_by_id(self, vector_id: str, top_k: int, namespace: Optional[str] = None) -> List[VectorMatch]:
        """
        Nearest neighbours of an already indexed item.
        Returns [] when the item has no stored vector. The item itself is
        usually the first match; callers filter it out.
        """
        vectors = await self.fetch_vectors([vector_id], namespace=namespace)
        values = vectors.get(vector_id)
        if not values:
            return []
        return await self.query_by_vector(values, top_k, namespace=namespace)

    async def query_by_vector(
        self, vector: Sequence[float], top_k: int, namespace: Optional[str] = None
    ) -> List[VectorMatch]:
        stage: Dict[str, Any] = {
            "index": self.index_name,
            "path": "values",
            "queryVector": list(vector),
            "numCandidates": max(100, self.num_candidates_factor * top_k),
            "limit": top_k,
        }
        ns = self._ns(namespace)
        if ns:
            stage["filter"] = {"namespace": ns}

        pipeline: List[Dict[str, Any]] = [
            {"$vectorSearch": stage},
            {"$project": {"_id": 1, "metadata": 1, "score": {"$meta": "vectorSearchScore"}}},
        ]
        cursor = self.col.aggregate(pipeline)
        return [
            VectorMatch(id=str(doc["_id"]), score=float(doc.get("score", 0)), metadata=doc.get("metadata") or {})
            async for doc in cursor
        ]

    async def fetch_vectors(self, ids: Iterable[str], namespace: Optional[str] = None) -> Dict[str, List[float]]:
        """Stored vectors keyed by vector id; ids without a vector are absent from the result."""
        wanted = list(dict.fromkeys(str(i) for i in ids))
        if not wanted:
            return {}
        cursor = self.col.find(
            {"_id": {"$in": wanted}, "namespace": self._ns(namespace)},
            {"_id": 1, "values": 1},
        )
        out: Dict[str, List[float]] = {}
        async for doc in cursor:
            values = doc.get("values")
            if isinstance(values, list) and values:
                out[str(doc["_id"])] = values
        return out

    # ---------- Writes ----------
    async def upsert(self, items: Iterable[Dict[str, Any]], namespace: Optional[str] = None) -> int:
        """items: [{id, values, metadata}] → number of upserted/modified documents."""
        ns = self._ns(namespace)
        ops = [
            ReplaceOne(
                {"_id": str(item["id"])},
                {"namespace": ns, "values": list(item["values"]), "metadata": item.get("metadata") or {}},
                upsert=True,
            )
            for item in items
        ]
        if not ops:
            return 0
        res = await self.col.bulk_write(ops, ordered=False)
        return res.upserted_count + res.modified_count

    async def delete(self, ids: Iterable[str], namespace: Optional[str] = None) -> int:
        wanted = [str(i) for i in ids]
        if not wanted:
            return 0
        res = await self.col.delete_many({"_id": {"$in": wanted}, "namespace": self._ns(namespace)})
        return res.deleted_count
