from pymongo import DESCENDING

# Candidate pool for local scoring
POOL_LIMIT = 150     # max catalog entries considered per request
MIN_POOL_SIZE = 5    # below this, a category-filtered pool is widened with unfiltered entries

# Similarity weights (category > name ≈ price > brand > description)
WEIGHT_CATEGORY = 3.0
WEIGHT_BRAND = 2.0
WEIGHT_NAME = 3.0
WEIGHT_DESCRIPTION = 1.0
WEIGHT_PRICE = 2.0

# Extra neighbours requested from the vector index to absorb self-matches and duplicates
VECTOR_OVERFETCH = 3

# Default result sizes
SIMILAR_LIMIT = 5
GROUP_LIMIT = 10

# Backstop ordering: best rated, then most reviewed, then newest
RANK_SORT = [
    ("rating", DESCENDING),
    ("num_reviews", DESCENDING),
    ("created_at", DESCENDING),
]
