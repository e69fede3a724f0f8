"""
Rating Aggregator.

Runs the rating and grading pipelines over many markets and shapes the
results for presentation: ranking, grouping by underlying asset, tabular
frames and summary statistics.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from .config import resolve_config
from .curator_rating import compute_rating
from .market_risk import IrmLookup, OracleLookup, grade_market, is_market_idle
from .models import CuratorConfig, CuratorRatingResult, Market, MarketRiskResult
from .utils import is_zero_address

logger = logging.getLogger(__name__)

RATING_COLUMNS = [
    "market_id",
    "symbol",
    "rating",
    "tvl_usd",
    "utilization",
    "utilization_score",
    "rate_alignment_score",
    "stress_exposure_score",
    "withdrawal_liquidity_score",
    "liquidation_capacity_score",
    "insufficient_tvl",
]


def benchmark_for_market(
    market: Market,
    benchmark_rates: Optional[Mapping[str, float]],
    fallback: float,
) -> float:
    """Benchmark supply rate for the market's loan asset (keyed by upper-case symbol)."""
    if not benchmark_rates or not market.loan_symbol:
        return fallback
    rate = benchmark_rates.get(market.loan_symbol.upper())
    return rate if isinstance(rate, (int, float)) and not isinstance(rate, bool) else fallback


def sort_by_rating(results: Iterable[CuratorRatingResult]) -> List[CuratorRatingResult]:
    """Highest rating first; unrated (insufficient TVL) markets last."""
    return sorted(results, key=lambda r: (r.rating is None, -(r.rating or 0)))


def rate_markets(
    markets: Iterable[Market],
    config: Optional[CuratorConfig] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    benchmark_rates: Optional[Mapping[str, float]] = None,
    market_id: Optional[str] = None,
) -> List[CuratorRatingResult]:
    """
    Rate a batch of markets with one resolved configuration.

    Args:
        markets: Market snapshots
        config: Pre-resolved config; resolved from overrides when omitted
        overrides: Sparse config overrides (ignored when config is given)
        benchmark_rates: Symbol -> benchmark supply APY
        market_id: Only rate the market with this id or unique key

    Returns:
        Ratings sorted best first
    """
    config = config or resolve_config(overrides)

    selected = [
        m for m in markets
        if market_id is None or m.id == market_id or m.unique_key == market_id
    ]

    results = [
        compute_rating(m, config, benchmark_for_market(m, benchmark_rates, config.fallback_benchmark_rate))
        for m in selected
    ]
    logger.debug("Rated %d markets (%d unrated)", len(results), sum(r.rating is None for r in results))
    return sort_by_rating(results)


def group_by_underlying(results: Iterable[CuratorRatingResult]) -> Dict[str, List[CuratorRatingResult]]:
    """Group ratings by upper-cased loan asset symbol."""
    groups = defaultdict(list)
    for result in results:
        groups[(result.symbol or "UNKNOWN").upper()].append(result)
    return dict(groups)


def ratings_frame(results: Iterable[CuratorRatingResult]) -> pd.DataFrame:
    """One row per market, ready for display or CSV export."""
    rows = [{col: getattr(r, col) for col in RATING_COLUMNS} for r in results]
    return pd.DataFrame(rows, columns=RATING_COLUMNS)


def summarize_ratings(results: Iterable[CuratorRatingResult]) -> Dict[str, Any]:
    """Counts and central tendency of the rated markets."""
    results = list(results)
    rated = np.array([r.rating for r in results if r.rating is not None], dtype=float)

    return {
        "markets": len(results),
        "rated": int(rated.size),
        "insufficient_tvl": sum(r.insufficient_tvl for r in results),
        "mean_rating": float(np.mean(rated)) if rated.size else None,
        "median_rating": float(np.median(rated)) if rated.size else None,
        "min_rating": int(np.min(rated)) if rated.size else None,
        "max_rating": int(np.max(rated)) if rated.size else None,
    }


async def grade_markets(
    markets: Iterable[Market],
    oracle_lookup: Optional[OracleLookup] = None,
    irm_lookup: Optional[IrmLookup] = None,
) -> List[Optional[MarketRiskResult]]:
    """
    Grade many markets concurrently.

    Idle markets yield None. Each oracle (with its base feed) and each IRM
    address is looked up once per call, however many markets share it.

    Returns:
        Results in the same order as the input markets
    """
    markets = list(markets)
    oracle_tasks: Dict[tuple, asyncio.Task] = {}
    irm_tasks: Dict[str, asyncio.Task] = {}

    def oracle_task(market: Market) -> Optional[asyncio.Task]:
        if oracle_lookup is None or is_zero_address(market.oracle_address):
            return None
        key = (market.oracle_address.lower(), (market.oracle_base_feed_address or "").lower())
        if key not in oracle_tasks:
            oracle_tasks[key] = asyncio.ensure_future(
                oracle_lookup(market.oracle_address, market.oracle_base_feed_address)
            )
        return oracle_tasks[key]

    def irm_task(market: Market) -> Optional[asyncio.Task]:
        if irm_lookup is None:
            return None
        key = (market.irm_address or "").lower()
        if key not in irm_tasks:
            irm_tasks[key] = asyncio.ensure_future(irm_lookup(market.irm_address))
        return irm_tasks[key]

    async def grade_one(market: Market) -> Optional[MarketRiskResult]:
        if is_market_idle(market):
            return None
        oracle = oracle_task(market)
        irm = irm_task(market)
        oracle_data = await oracle if oracle is not None else None
        target = await irm if irm is not None else None
        return await grade_market(market, oracle_data=oracle_data, target_utilization=target)

    results = await asyncio.gather(*(grade_one(m) for m in markets))
    logger.debug(
        "Graded %d markets with %d oracle and %d IRM lookups",
        len(markets), len(oracle_tasks), len(irm_tasks),
    )
    return list(results)
