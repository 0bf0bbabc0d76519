# shopreco/api/v1/schemas/product.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional

from shopreco.domain.models.product import Product


class ProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    category: Optional[str] = None
    image: Optional[str] = None
    brand: Optional[str] = None
    stock: Optional[int] = None
    rating: Optional[float] = None
    num_reviews: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_product(cls, product: Product) -> "ProductOut":
        """Normalized shape served to the storefront (price always numeric)."""
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            price=float(product.price or 0),
            category=product.category,
            image=product.image,
            brand=product.brand,
            stock=product.stock,
            rating=product.rating,
            num_reviews=product.num_reviews,
            created_at=product.created_at,
        )


class RecommendationsIn(BaseModel):
    ids: List[int | str] = Field(default_factory=list)


class RatingIn(BaseModel):
    rating: float = Field(ge=0, le=5)


class VectorizeResult(BaseModel):
    seen: int
    synced: int
    skipped: int
    failed: int
    errors: List[str] = Field(default_factory=list)
    processing_time_ms: float
