from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, Optional
from datetime import datetime

class Product(BaseModel):
    """Catalog entry as read from the 'products' collection."""
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    image: Optional[str] = None
    stock: Optional[int] = None
    rating: Optional[float] = None
    num_reviews: Optional[int] = None
    created_at: Optional[datetime] = None
    vector_id: Optional[str] = None  # id of this product in the vector index, once synced

    model_config = {"frozen": True, "extra": "ignore"}  # immuable = safe

    @field_validator("price", mode="before")
    @classmethod
    def _price_as_float(cls, v):
        # Mongo may hand back Decimal128 for monetary fields
        if hasattr(v, "to_decimal"):
            return float(v.to_decimal())
        return v

    @property
    def vector_key(self) -> str:
        """Identifier used against the vector index (falls back to the numeric id if never synced)."""
        return self.vector_id or str(self.id)


class VectorMatch(BaseModel):
    """One neighbour returned by the vector index."""
    id: str
    score: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)
    model_config = {"frozen": True} # immuable = safe
