"""
Curator Health Rating.

Turns one market snapshot into a 0-100 rating from five weighted sub-scores:

1. Utilization        - headroom below the configured utilization ceiling
2. Rate alignment     - supply APY close to a benchmark rate
3. Stress exposure    - insolvency after a collateral price shock, vs a
                        tolerance that grows with TVL
4. Withdrawal liquidity - idle liquidity as a fraction of TVL
5. Liquidation capacity - post-stress liquidity vs debt to liquidate

Markets below the minimum TVL get a None rating, but every sub-score is
still computed so callers can inspect them.
"""

import logging
import math
from typing import Optional

from .models import CuratorConfig, CuratorRatingResult, Market, MarketState
from .thresholds import (
    LARGE_MARKET_THRESHOLD,
    LIQUIDATION_CAPACITY_TIERS,
    STRESS_EXCESS_EXPONENT,
    STRESS_KNEE_FRACTION,
    STRESS_KNEE_MAX_PENALTY,
    TOLERANCE_TIERS,
    UTILIZATION_ANOMALY_MARGIN,
    UTILIZATION_SAFE_FACTOR,
)
from .utils import clamp01, finite_or_zero, non_negative, normalize01, round_half_up, to_finite

logger = logging.getLogger(__name__)


# =============================================================================
# TVL-TIERED CURVES
# =============================================================================

def insolvency_tolerance_for_tvl(tvl: float, base_tolerance: float) -> float:
    """
    Insolvency tolerance (fraction of TVL) for a market of the given size.

    Below $50M the configured base tolerance applies. From $50M to $500M it
    rises along a square-root curve to 20%; from $500M it rises linearly to
    35% at $2B and stays there.
    """
    base = clamp01(base_tolerance)
    tolerance = base

    for tier in TOLERANCE_TIERS:
        if tvl < tier["min_tvl"]:
            continue
        if tier["curve"] == "flat":
            tolerance = base
            continue

        start = base if tier["start"] is None else tier["start"]
        end = tier["end"]
        span = tier["max_tvl"] - tier["min_tvl"]
        progress = min(1.0, (tvl - tier["min_tvl"]) / span)
        if tier["curve"] == "sqrt":
            progress = math.sqrt(progress)
        tolerance = start + (end - start) * progress

    return clamp01(tolerance)


def stress_exposure_score(insolvency_pct_of_tvl: float, tolerance: float, tvl: float) -> float:
    """
    Score insolvency exposure against tolerance.

    Small markets (< $50M): linear penalty, 0 at the tolerance.
    Large markets: at most a 10% penalty up to 80% of tolerance, then a
    power-1.5 penalty reaching 0 at the tolerance.
    """
    if insolvency_pct_of_tvl <= 0:
        return 1.0
    if tolerance <= 0:
        return 0.0

    if tvl < LARGE_MARKET_THRESHOLD:
        return normalize01(1 - insolvency_pct_of_tvl / tolerance)

    knee = tolerance * STRESS_KNEE_FRACTION
    if insolvency_pct_of_tvl <= knee:
        score = 1 - (insolvency_pct_of_tvl / knee) * STRESS_KNEE_MAX_PENALTY
    else:
        excess_ratio = (insolvency_pct_of_tvl - knee) / (tolerance - knee)
        ceiling = 1 - STRESS_KNEE_MAX_PENALTY
        score = ceiling - math.pow(excess_ratio, STRESS_EXCESS_EXPONENT) * ceiling
    return normalize01(score)


def liquidation_capacity_score(capacity_post_stress: float, debt_to_liquidate: float, tvl: float) -> float:
    """
    Score liquidator capacity after a liquidity shock against the debt to clear.

    Large markets use a softened three-tier curve:
    coverage >= 50% -> [0.6, 1.0], 30-50% -> [0.3, 0.6], < 30% -> linear.
    """
    if capacity_post_stress >= debt_to_liquidate:
        return 1.0

    coverage = capacity_post_stress / max(debt_to_liquidate, 1)
    if tvl < LARGE_MARKET_THRESHOLD:
        return normalize01(coverage)

    for tier in LIQUIDATION_CAPACITY_TIERS:
        if coverage >= tier["min_coverage"]:
            return normalize01(tier["base_score"] + (coverage - tier["min_coverage"]) * tier["slope"])
    return 0.0


# =============================================================================
# SUB-SCORES
# =============================================================================

def utilization_score(utilization: float, ceiling: float, max_utilization_beyond: float) -> float:
    """1 up to 98% of the ceiling, then linear decay to 0 at max_utilization_beyond."""
    util_safe = clamp01(ceiling) * UTILIZATION_SAFE_FACTOR
    if utilization <= util_safe:
        return 1.0
    span = max_utilization_beyond - util_safe
    if span <= 0:
        return 0.0
    return normalize01(1 - (utilization - util_safe) / span)


def rate_alignment_score(
    supply_rate: float,
    benchmark: float,
    eps: float,
    high_yield_buffer: float,
    high_yield_eps: float,
) -> float:
    """exp(-|supply - benchmark| / eps), with an extra penalty for yields far above benchmark."""
    if eps <= 0:
        return 1.0 if supply_rate == benchmark else 0.0

    score = math.exp(-abs(supply_rate - benchmark) / eps)

    if supply_rate > benchmark + high_yield_buffer:
        excess = supply_rate - (benchmark + high_yield_buffer)
        score *= math.exp(-excess / high_yield_eps) if high_yield_eps > 0 else 0.0

    return normalize01(score)


def withdrawal_liquidity_score(available_liquidity: float, required_liquidity: float) -> float:
    if available_liquidity >= required_liquidity:
        return 1.0
    return normalize01(available_liquidity / max(required_liquidity, 1))


# =============================================================================
# MAIN RATING
# =============================================================================

def compute_rating(
    market: Market,
    config: CuratorConfig,
    benchmark_rate: Optional[float] = None,
) -> CuratorRatingResult:
    """
    Compute the curator health rating for one market.

    Args:
        market: Market snapshot
        config: Resolved curator configuration
        benchmark_rate: Benchmark supply APY for the loan asset; defaults to
                        config.fallback_benchmark_rate

    Returns:
        CuratorRatingResult with all sub-scores and a rating (None when TVL
        is below config.min_tvl_usd)
    """
    state = market.state or MarketState()

    supplied_raw = non_negative(state.supply_assets_usd)
    borrowed = non_negative(state.borrow_assets_usd)
    supplied = supplied_raw if supplied_raw > 0 else 1.0

    # Absent utilization is derived; a reported non-finite value counts as 0
    if state.utilization is not None:
        utilization = max(finite_or_zero(state.utilization), 0.0)
    else:
        utilization = borrowed / supplied

    # TVL
    size_usd = finite_or_zero(state.size_usd)
    tvl = size_usd if size_usd > 0 else supplied_raw + borrowed
    min_tvl_usd = finite_or_zero(config.min_tvl_usd)
    insufficient_tvl = tvl < min_tvl_usd

    # 1. Utilization
    util_score = utilization_score(utilization, config.utilization_ceiling, config.max_utilization_beyond)
    anomaly_threshold = config.max_utilization_beyond + UTILIZATION_ANOMALY_MARGIN
    if utilization > anomaly_threshold:
        logger.warning(
            "Utilization anomaly detected: market=%s utilization=%.4f max_utilization_beyond=%.4f threshold=%.4f",
            market.id, utilization, config.max_utilization_beyond, anomaly_threshold,
        )

    # 2. Rate alignment
    benchmark = to_finite(benchmark_rate)
    if benchmark is None:
        benchmark = config.fallback_benchmark_rate
    supply_rate = finite_or_zero(state.supply_apy)
    rate_score = rate_alignment_score(
        supply_rate,
        benchmark,
        config.rate_alignment_eps,
        config.rate_alignment_high_yield_buffer,
        config.rate_alignment_high_yield_eps,
    )

    # 3. Stress exposure
    price_stress_pct = clamp01(config.price_stress_pct)
    collateral_after_shock = max(supplied * (1 - price_stress_pct), 0.0)
    potential_insolvency_usd = max(0.0, borrowed - collateral_after_shock)
    insolvency_pct_of_tvl = potential_insolvency_usd / tvl if tvl > 0 else 1.0
    tolerance = insolvency_tolerance_for_tvl(tvl, config.insolvency_tolerance_pct_tvl)
    stress_score = stress_exposure_score(insolvency_pct_of_tvl, tolerance, tvl)

    # 4. Withdrawal liquidity
    available_liquidity = non_negative(state.liquidity_assets_usd)
    required_liquidity = clamp01(config.withdrawal_liquidity_min_pct) * tvl
    withdrawal_score = withdrawal_liquidity_score(available_liquidity, required_liquidity)

    # 5. Liquidation capacity
    liquidity_stress_pct = clamp01(config.liquidity_stress_pct)
    capacity_post_stress = available_liquidity * (1 - liquidity_stress_pct)
    capacity_score = liquidation_capacity_score(capacity_post_stress, potential_insolvency_usd, tvl)

    weights = config.weights
    aggregate = (
        util_score * weights.utilization
        + rate_score * weights.rate_alignment
        + stress_score * weights.stress_exposure
        + withdrawal_score * weights.withdrawal_liquidity
        + capacity_score * weights.liquidation_capacity
    )

    rating = None if insufficient_tvl else round_half_up(aggregate * 100)

    if insufficient_tvl:
        logger.debug(
            "Market has insufficient TVL for rating: market=%s symbol=%s tvl_usd=%.2f min_tvl_usd=%.2f",
            market.id, market.loan_symbol, tvl, min_tvl_usd,
        )

    return CuratorRatingResult(
        market_id=market.id,
        symbol=market.loan_symbol or "UNKNOWN",
        utilization=utilization,
        utilization_score=util_score,
        supply_rate=to_finite(state.supply_apy),
        borrow_rate=to_finite(state.borrow_apy),
        benchmark_supply_rate=benchmark,
        rate_alignment_score=rate_score,
        potential_insolvency_usd=potential_insolvency_usd,
        insolvency_pct_of_tvl=insolvency_pct_of_tvl,
        insolvency_tolerance_pct_tvl=tolerance,
        stress_exposure_score=stress_score,
        available_liquidity=available_liquidity,
        required_liquidity=required_liquidity,
        withdrawal_liquidity_score=withdrawal_score,
        liquidator_capacity_post_stress=capacity_post_stress,
        liquidation_capacity_score=capacity_score,
        tvl_usd=tvl,
        insufficient_tvl=insufficient_tvl,
        effective_weights=weights,
        rating=rating,
        config_version=config.config_version,
    )
