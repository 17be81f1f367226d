from tcgwatch.engine.acquisition import (
    filter_sellers,
    passes_acquisition_rule,
    rank_filtered,
    rank_sellers,
    score_seller,
)
from tcgwatch.engine.good_deal import (
    calculate_good_deal_price,
    trend_blended_price,
    weighted_percentile_price,
)

__all__ = [
    "calculate_good_deal_price",
    "filter_sellers",
    "passes_acquisition_rule",
    "rank_filtered",
    "rank_sellers",
    "score_seller",
    "trend_blended_price",
    "weighted_percentile_price",
]
