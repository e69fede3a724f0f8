"""
Morpho Market Risk Package.

This package scores Morpho Blue lending markets for vault curators:
- Curator health rating (0-100, five weighted sub-scores, TVL gated)
- Market risk grade (A+ to F, four sub-scores, caps and bad-debt override)
- Config resolution from defaults, environment and caller overrides
- Async on-chain lookups for oracle freshness and IRM target utilization
"""

from .config import DEFAULT_CURATOR_CONFIG, load_config_from_env, resolve_config
from .curator_rating import compute_rating
from .market_risk import compute_grade, grade_market, is_market_idle, score_to_grade
from .models import (
    Asset,
    CuratorConfig,
    CuratorRatingResult,
    CuratorWeights,
    DerivedMetrics,
    Market,
    MarketRiskResult,
    MarketState,
    OracleTimestampData,
)
from .aggregator import (
    grade_markets,
    group_by_underlying,
    rate_markets,
    ratings_frame,
    sort_by_rating,
    summarize_ratings,
)

__version__ = "1.0.0"

__all__ = [
    "DEFAULT_CURATOR_CONFIG",
    "load_config_from_env",
    "resolve_config",
    "compute_rating",
    "compute_grade",
    "grade_market",
    "is_market_idle",
    "score_to_grade",
    "Asset",
    "CuratorConfig",
    "CuratorRatingResult",
    "CuratorWeights",
    "DerivedMetrics",
    "Market",
    "MarketRiskResult",
    "MarketState",
    "OracleTimestampData",
    "grade_markets",
    "group_by_underlying",
    "rate_markets",
    "ratings_frame",
    "sort_by_rating",
    "summarize_ratings",
]
