"""
Market Risk Grade.

Formula: base = 0.25 * oracle + 0.25 * liquidation_headroom
              + 0.25 * utilization + 0.25 * coverage_ratio

All component scores are in [0, 100]. Global caps then tighten the base
score, realized bad debt above $1 forces an F, and the final score maps to
a letter grade A+ ... F.

`compute_grade` is synchronous and does no I/O. `grade_market` awaits the
oracle freshness and IRM target lookups for whatever the caller has not
already resolved.
"""

import logging
import operator
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .asset_classes import price_shock_for
from .models import (
    DerivedMetrics,
    Market,
    MarketRiskResult,
    MarketState,
    OracleTimestampData,
    UNRESOLVED_ORACLE,
)
from .thresholds import (
    BAD_DEBT_THRESHOLD_USD,
    COVERAGE_BREAKPOINTS,
    DEFAULT_TARGET_UTILIZATION,
    GLOBAL_CAPS,
    GRADE_SCALE,
    HEADROOM_BREAKPOINTS,
    MARKET_RISK_WEIGHTS,
    ORACLE_FRESHNESS_BREAKPOINTS,
    ORACLE_SCORE_NO_ORACLE,
    ORACLE_SCORE_UNKNOWN_FRESHNESS,
    UTILIZATION_EXCESS_WINDOW,
    UTILIZATION_SCORE_AT_TARGET,
    UTILIZATION_SCORE_AT_ZERO,
)
from .utils import clamp, clamp01, interpolate_score, is_zero_address, lltv_to_ratio, non_negative, to_finite

logger = logging.getLogger(__name__)

OracleLookup = Callable[..., Awaitable[OracleTimestampData]]
IrmLookup = Callable[[Optional[str]], Awaitable[Optional[float]]]

CAP_COMPARISONS = {"<": operator.lt, "<=": operator.le}


# =============================================================================
# HELPERS
# =============================================================================

def score_to_grade(score: float) -> str:
    """Convert a 0-100 score to a letter grade (inclusive lower bounds)."""
    for grade, config in GRADE_SCALE.items():
        if score >= config["min"]:
            return grade
    return "F"


def is_market_idle(market: Market) -> bool:
    """Idle markets (no LLTV or unknown collateral) are not graded."""
    symbol = market.collateral_symbol
    return not market.lltv or not symbol or symbol == "Unknown"


def resolve_target_utilization(target_utilization: Optional[float]) -> float:
    """Fall back to the 90% default for missing or out-of-range IRM targets."""
    target = to_finite(target_utilization)
    if target is None or target <= 0 or target > 1:
        return DEFAULT_TARGET_UTILIZATION
    return target


def market_utilization(state: MarketState) -> Optional[float]:
    """Reported utilization, else borrow / supply. None when neither is known."""
    reported = to_finite(state.utilization)
    if reported is not None:
        return clamp01(reported)
    supply = non_negative(state.supply_assets_usd)
    if supply == 0:
        return None
    return clamp01(non_negative(state.borrow_assets_usd) / supply)


def available_liquidity_usd(state: MarketState) -> float:
    """Reported liquidity, else supply minus borrow."""
    liquidity = to_finite(state.liquidity_assets_usd)
    if liquidity is not None:
        return max(liquidity, 0.0)
    return max(non_negative(state.supply_assets_usd) - non_negative(state.borrow_assets_usd), 0.0)


def _price_shock(market: Market) -> float:
    loan = market.loan_asset
    collateral = market.collateral_asset
    return price_shock_for(
        market.loan_symbol,
        market.collateral_symbol,
        loan.address if loan else None,
        collateral.address if collateral else None,
    )


# =============================================================================
# COMPONENT SCORES
# =============================================================================

def compute_oracle_score(market: Market, oracle_data: Optional[OracleTimestampData] = None) -> float:
    """
    Oracle freshness score.

    - 20 for no oracle address or the zero address (opaque/fixed oracle)
    - 60 for a real oracle whose freshness could not be resolved
    - 100 under 1h, then linear 100 -> 80 (1-24h), 80 -> 60 (24-168h),
      60 -> 20 (168-720h), floor 20 beyond 30 days
    """
    if is_zero_address(market.oracle_address):
        return ORACLE_SCORE_NO_ORACLE

    age_seconds = to_finite(oracle_data.age_seconds) if oracle_data else None
    if age_seconds is None:
        return ORACLE_SCORE_UNKNOWN_FRESHNESS

    age_hours = max(age_seconds, 0.0) / 3600
    if age_hours < ORACLE_FRESHNESS_BREAKPOINTS[0][0]:
        return 100
    return interpolate_score(age_hours, ORACLE_FRESHNESS_BREAKPOINTS)


def liquidation_headroom(market: Market) -> Tuple[Optional[float], float]:
    """
    Headroom after the correlation-aware price shock.

    Returns:
        Tuple of (headroom_usd or None when not computable, price_shock)
    """
    state = market.state or MarketState()
    shock = _price_shock(market)
    lltv_ratio = lltv_to_ratio(market.lltv)
    collateral = non_negative(state.collateral_assets_usd)
    borrow = non_negative(state.borrow_assets_usd)

    if borrow <= 0 or collateral <= 0 or lltv_ratio is None:
        return None, shock
    return collateral * (1 - shock) * lltv_ratio - borrow, shock


def compute_liquidation_headroom_score(market: Market) -> float:
    """
    Headroom ratio = headroom / borrow, mapped 0-10% -> 0-60,
    10-20% -> 60-80, 20-30% -> 80-100, >= 30% -> 100.

    No borrow is the safest case (100). Missing LLTV or collateral with an
    open borrow is the riskiest (0).
    """
    state = market.state or MarketState()
    borrow = non_negative(state.borrow_assets_usd)
    if borrow <= 0:
        return 100

    headroom, _ = liquidation_headroom(market)
    if headroom is None or headroom < 0:
        return 0

    return clamp(interpolate_score(headroom / borrow, HEADROOM_BREAKPOINTS), 0, 100)


def compute_utilization_score(market: Market, target_utilization: Optional[float] = None) -> float:
    """
    Utilization relative to the IRM target (kink).

    At or below target: 100 -> 80 linearly from 0 to target.
    Above target: 80 -> 0 over the next 20 percentage points, then 0.
    """
    state = market.state or MarketState()
    target = resolve_target_utilization(target_utilization)
    utilization = market_utilization(state)
    if utilization is None:
        return 0

    if utilization <= target:
        drop = UTILIZATION_SCORE_AT_ZERO - UTILIZATION_SCORE_AT_TARGET
        return UTILIZATION_SCORE_AT_ZERO - (utilization / target) * drop

    excess = utilization - target
    if excess >= UTILIZATION_EXCESS_WINDOW:
        return 0
    return clamp(UTILIZATION_SCORE_AT_TARGET * (1 - excess / UTILIZATION_EXCESS_WINDOW), 0, 100)


def liquidatable_borrow_usd(market: Market) -> Tuple[float, float]:
    """
    Borrow that becomes liquidatable under the price shock.

    Missing LLTV counts as zero borrowing power.

    Returns:
        Tuple of (liquidatable_borrow_usd, price_shock)
    """
    state = market.state or MarketState()
    shock = _price_shock(market)
    lltv_ratio = lltv_to_ratio(market.lltv) or 0.0
    collateral = non_negative(state.collateral_assets_usd)
    borrow = non_negative(state.borrow_assets_usd)
    return max(0.0, borrow - collateral * (1 - shock) * lltv_ratio), shock


def compute_coverage_ratio_score(market: Market) -> float:
    """
    Coverage = available liquidity / liquidatable borrow, mapped
    >= 1.0 -> 100, 0.8-1.0 -> 80-100, 0.5-0.8 -> 60-80,
    0.25-0.5 -> 40-60, 0-0.25 -> 0-40.
    """
    state = market.state or MarketState()
    liquidatable, _ = liquidatable_borrow_usd(market)
    if liquidatable <= 0:
        return 100

    coverage = available_liquidity_usd(state) / liquidatable
    return clamp(interpolate_score(coverage, COVERAGE_BREAKPOINTS), 0, 100)


# =============================================================================
# CAPS & OVERRIDES
# =============================================================================

def apply_global_caps(base_score: float, component_scores: Dict[str, float]) -> Tuple[float, List[dict]]:
    """
    Cap the aggregate score based on component scores. Caps only tighten.

    Returns:
        Tuple of (capped_score, list of triggered caps)
    """
    triggered = []
    score = base_score

    for name, cap in GLOBAL_CAPS.items():
        compare = CAP_COMPARISONS[cap["comparison"]]
        if not compare(component_scores[cap["component"]], cap["threshold"]):
            continue
        if score > cap["max_score"]:
            score = cap["max_score"]
        triggered.append({
            "name": name,
            "condition": cap["condition"],
            "effect": f"Score capped at {cap['max_score']} (Grade {score_to_grade(cap['max_score'])})",
            "justification": cap["justification"],
        })

    return score, triggered


def has_realized_bad_debt(market: Market) -> bool:
    state = market.state or MarketState()
    bad_debt = to_finite(state.realized_bad_debt_usd)
    return bad_debt is not None and bad_debt > BAD_DEBT_THRESHOLD_USD


# =============================================================================
# DERIVED DISPLAY METRICS
# =============================================================================

def compute_derived_metrics(
    market: Market,
    oracle_data: Optional[OracleTimestampData] = None,
) -> DerivedMetrics:
    """Human-friendly figures shown next to a grade (percentages, USD, ages)."""
    state = market.state or MarketState()
    lltv_ratio = lltv_to_ratio(market.lltv)
    headroom, shock = liquidation_headroom(market)
    borrow = non_negative(state.borrow_assets_usd)
    available = available_liquidity_usd(state)

    liquidatable = None
    if headroom is not None:
        liquidatable, _ = liquidatable_borrow_usd(market)

    coverage = None
    if liquidatable == 0:
        coverage = 1.0
    elif liquidatable is not None and available > 0:
        coverage = available / liquidatable

    utilization = market_utilization(state)
    age_seconds = to_finite(oracle_data.age_seconds) if oracle_data else None
    age_hours = age_seconds / 3600 if age_seconds is not None else None
    supply_apy = to_finite(state.supply_apy)
    borrow_apy = to_finite(state.borrow_apy)

    return DerivedMetrics(
        lltv_pct=lltv_ratio * 100 if lltv_ratio is not None else None,
        price_shock_pct=shock * 100,
        headroom_usd=headroom,
        headroom_ratio_pct=headroom / borrow * 100 if headroom is not None else None,
        utilization_pct=utilization * 100 if utilization is not None else None,
        available_liquidity_usd=available,
        liquidatable_borrow_usd=liquidatable,
        coverage_ratio=coverage,
        oracle_age_hours=age_hours,
        oracle_age_days=age_hours / 24 if age_hours is not None else None,
        supply_apy_pct=supply_apy * 100 if supply_apy is not None else None,
        borrow_apy_pct=borrow_apy * 100 if borrow_apy is not None else None,
    )


# =============================================================================
# MAIN GRADE
# =============================================================================

def compute_grade(
    market: Market,
    oracle_data: Optional[OracleTimestampData] = None,
    target_utilization: Optional[float] = None,
) -> MarketRiskResult:
    """
    Grade one market.

    Args:
        market: Market snapshot
        oracle_data: Oracle freshness; None is treated as unresolved
        target_utilization: IRM kink in [0, 1]; None uses the 90% default

    Returns:
        MarketRiskResult with component scores, capped score and grade
    """
    oracle_data = oracle_data or UNRESOLVED_ORACLE
    target = resolve_target_utilization(target_utilization)

    component_scores = {
        "oracle_score": compute_oracle_score(market, oracle_data),
        "liquidation_headroom_score": compute_liquidation_headroom_score(market),
        "utilization_score": compute_utilization_score(market, target),
        "coverage_ratio_score": compute_coverage_ratio_score(market),
    }

    base_score = (
        MARKET_RISK_WEIGHTS["oracle"] * component_scores["oracle_score"]
        + MARKET_RISK_WEIGHTS["liquidation_headroom"] * component_scores["liquidation_headroom_score"]
        + MARKET_RISK_WEIGHTS["utilization"] * component_scores["utilization_score"]
        + MARKET_RISK_WEIGHTS["coverage_ratio"] * component_scores["coverage_ratio_score"]
    )

    market_risk_score, triggered = apply_global_caps(base_score, component_scores)

    state = market.state or MarketState()
    bad_debt = to_finite(state.realized_bad_debt_usd)
    if has_realized_bad_debt(market):
        market_risk_score = 0
        grade = "F"
        triggered.append({
            "name": "realized_bad_debt",
            "effect": "Grade forced to F (score 0)",
            "justification": f"Market has realized ${bad_debt:,.2f} of bad debt.",
        })
        logger.info("Market %s has realized bad debt %.2f USD; grade forced to F", market.id, bad_debt)
    else:
        grade = score_to_grade(market_risk_score)

    return MarketRiskResult(
        market_id=market.id,
        base_score=base_score,
        market_risk_score=market_risk_score,
        grade=grade,
        risk_level=GRADE_SCALE[grade]["risk_level"],
        realized_bad_debt_usd=bad_debt,
        target_utilization=target,
        triggered_caps=triggered,
        derived=compute_derived_metrics(market, oracle_data),
        **component_scores,
    )


async def grade_market(
    market: Market,
    oracle_lookup: Optional[OracleLookup] = None,
    irm_lookup: Optional[IrmLookup] = None,
    oracle_data: Optional[OracleTimestampData] = None,
    target_utilization: Optional[float] = None,
) -> MarketRiskResult:
    """
    Grade one market, resolving oracle freshness and IRM target through the
    injected lookups when they were not supplied.

    Lookups should translate their own failures into the unresolved sentinel
    (age None / target None); the grader then applies its fallback scores.
    """
    if oracle_data is None and oracle_lookup is not None and not is_zero_address(market.oracle_address):
        oracle_data = await oracle_lookup(market.oracle_address, market.oracle_base_feed_address)

    if target_utilization is None and irm_lookup is not None:
        target_utilization = await irm_lookup(market.irm_address)

    return compute_grade(market, oracle_data, target_utilization)

