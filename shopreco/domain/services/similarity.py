import re
from numbers import Real
from typing import Iterable, Optional

from shopreco.domain.models.product import Product
from shopreco.domain.services.constants import (
    WEIGHT_BRAND,
    WEIGHT_CATEGORY,
    WEIGHT_DESCRIPTION,
    WEIGHT_NAME,
    WEIGHT_PRICE,
)

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def tokenize(text: Optional[str]) -> list[str]:
    """Lower-case and split on any run of non-alphanumeric characters."""
    return [t for t in _TOKEN_SPLIT.split((text or "").lower()) if t]


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    set_a, set_b = set(a), set(b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def price_affinity(price_a, price_b) -> float:
    """1 for equal prices, decaying linearly to 0 as the relative gap reaches 100%."""
    if not _is_number(price_a) or not _is_number(price_b):
        return 0.0
    diff = abs(price_a - price_b)
    return 1.0 - min(diff / max(price_a, price_b, 1), 1.0)


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a == b


def similarity_score(base: Product, candidate: Product) -> float:
    score = 0.0
    if _same(base.category, candidate.category):
        score += WEIGHT_CATEGORY
    if _same(base.brand, candidate.brand):
        score += WEIGHT_BRAND

    score += WEIGHT_NAME * jaccard(tokenize(base.name), tokenize(candidate.name))
    score += WEIGHT_DESCRIPTION * jaccard(tokenize(base.description), tokenize(candidate.description))
    score += WEIGHT_PRICE * price_affinity(base.price, candidate.price)
    return score


def best_score(bases: Iterable[Product], candidate: Product) -> float:
    """Score of the candidate against its closest base product."""
    return max((similarity_score(b, candidate) for b in bases), default=0.0)
