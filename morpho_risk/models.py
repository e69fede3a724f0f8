"""
Data model for the market risk engine.

Defines:
1. Market snapshots (what the fetch layer hands us)
2. Curator configuration (weights + scoring parameters)
3. Result records produced by the rating and grading pipelines

Market snapshots arrive as GraphQL-shaped dicts; `Market.from_dict` parses
them defensively so that the scoring code only ever sees finite numbers.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from .utils import to_finite


# =============================================================================
# MARKET SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class Asset:
    """Loan or collateral token."""
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Asset"]:
        if not data:
            return None
        decimals = to_finite(data.get("decimals"))
        return cls(
            symbol=data.get("symbol"),
            decimals=int(decimals) if decimals is not None else None,
            address=data.get("address"),
        )


@dataclass(frozen=True)
class MarketState:
    """
    Point-in-time market state. USD amounts are raw (possibly None); the
    scoring code floors them at zero.
    """
    supply_assets_usd: Optional[float] = None
    borrow_assets_usd: Optional[float] = None
    liquidity_assets_usd: Optional[float] = None
    collateral_assets_usd: Optional[float] = None
    utilization: Optional[float] = None
    supply_apy: Optional[float] = None
    borrow_apy: Optional[float] = None
    size_usd: Optional[float] = None
    realized_bad_debt_usd: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["MarketState"]:
        if data is None:
            return None
        bad_debt = data.get("realizedBadDebt")
        if isinstance(bad_debt, dict):
            bad_debt = bad_debt.get("usd")
        return cls(
            supply_assets_usd=to_finite(data.get("supplyAssetsUsd")),
            borrow_assets_usd=to_finite(data.get("borrowAssetsUsd")),
            liquidity_assets_usd=to_finite(data.get("liquidityAssetsUsd")),
            collateral_assets_usd=to_finite(data.get("collateralAssetsUsd")),
            utilization=to_finite(data.get("utilization")),
            supply_apy=to_finite(data.get("supplyApy")),
            borrow_apy=to_finite(data.get("borrowApy")),
            size_usd=to_finite(data.get("sizeUsd")),
            realized_bad_debt_usd=to_finite(bad_debt),
        )


@dataclass(frozen=True)
class Market:
    """A Morpho Blue market snapshot."""
    id: str
    unique_key: Optional[str] = None
    chain_id: Optional[int] = None
    loan_asset: Optional[Asset] = None
    collateral_asset: Optional[Asset] = None
    lltv: Optional[int] = None  # 1e18 fixed point
    oracle_address: Optional[str] = None
    irm_address: Optional[str] = None
    oracle_base_feed_address: Optional[str] = None
    state: Optional[MarketState] = None

    @property
    def loan_symbol(self) -> Optional[str]:
        return self.loan_asset.symbol if self.loan_asset else None

    @property
    def collateral_symbol(self) -> Optional[str]:
        return self.collateral_asset.symbol if self.collateral_asset else None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Market":
        """
        Parse a market from the Morpho API shape.

        Accepts `oracleAddress` or `oracle.address`, and the base feed from
        `oracle.data.baseFeedOne.address` when the API exposes it.
        """
        oracle = data.get("oracle") or {}
        oracle_data = oracle.get("data") or {}
        base_feed = (oracle_data.get("baseFeedOne") or {}).get("address")

        lltv_raw = data.get("lltv")
        lltv = None
        if lltv_raw not in (None, "", 0, "0"):
            try:
                lltv = int(lltv_raw)
            except (TypeError, ValueError):
                parsed = to_finite(lltv_raw)
                lltv = int(parsed) if parsed is not None else None

        irm = data.get("irmAddress")
        if irm is None and isinstance(data.get("irm"), dict):
            irm = data["irm"].get("address")

        chain_id = data.get("chainId")
        if chain_id is None and isinstance(data.get("morphoBlue"), dict):
            chain_id = (data["morphoBlue"].get("chain") or {}).get("id")

        return cls(
            id=str(data.get("id") or data.get("uniqueKey") or ""),
            unique_key=data.get("uniqueKey"),
            chain_id=chain_id,
            loan_asset=Asset.from_dict(data.get("loanAsset")),
            collateral_asset=Asset.from_dict(data.get("collateralAsset")),
            lltv=lltv,
            oracle_address=data.get("oracleAddress") or oracle.get("address"),
            irm_address=irm,
            oracle_base_feed_address=base_feed,
            state=MarketState.from_dict(data.get("state")),
        )


# =============================================================================
# CURATOR CONFIGURATION
# =============================================================================

WEIGHT_KEYS = [
    "utilization",
    "rate_alignment",
    "stress_exposure",
    "withdrawal_liquidity",
    "liquidation_capacity",
]


@dataclass(frozen=True)
class CuratorWeights:
    """Weights of the five curator sub-scores. Resolved weights sum to 1."""
    utilization: float = 0.20
    rate_alignment: float = 0.15
    stress_exposure: float = 0.30
    withdrawal_liquidity: float = 0.20
    liquidation_capacity: float = 0.15

    def total(self) -> float:
        return math.fsum(getattr(self, key) for key in WEIGHT_KEYS)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class CuratorConfig:
    """Immutable scoring configuration. Build it with `config.resolve_config`."""
    utilization_ceiling: float = 0.9
    max_utilization_beyond: float = 1.10
    rate_alignment_eps: float = 0.02
    rate_alignment_high_yield_buffer: float = 0.03
    rate_alignment_high_yield_eps: float = 0.01
    fallback_benchmark_rate: float = 0.05
    price_stress_pct: float = 0.30
    liquidity_stress_pct: float = 0.40
    withdrawal_liquidity_min_pct: float = 0.10
    insolvency_tolerance_pct_tvl: float = 0.01
    min_tvl_usd: float = 10_000
    weights: CuratorWeights = field(default_factory=CuratorWeights)
    config_version: str = "v1"


# =============================================================================
# RESULTS
# =============================================================================

@dataclass(frozen=True)
class CuratorRatingResult:
    """Curator health rating for one market. Sub-scores are in [0, 1]."""
    market_id: str
    symbol: str
    utilization: float
    utilization_score: float
    supply_rate: Optional[float]
    borrow_rate: Optional[float]
    benchmark_supply_rate: float
    rate_alignment_score: float
    potential_insolvency_usd: float
    insolvency_pct_of_tvl: float
    insolvency_tolerance_pct_tvl: float
    stress_exposure_score: float
    available_liquidity: float
    required_liquidity: float
    withdrawal_liquidity_score: float
    liquidator_capacity_post_stress: float
    liquidation_capacity_score: float
    tvl_usd: float
    insufficient_tvl: bool
    effective_weights: CuratorWeights
    rating: Optional[int]
    config_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OracleTimestampData:
    """Freshness of an oracle's price feed. `age_seconds=None` means unresolved."""
    feed_address: Optional[str] = None
    updated_at: Optional[int] = None
    age_seconds: Optional[float] = None

    @property
    def resolved(self) -> bool:
        return self.age_seconds is not None


UNRESOLVED_ORACLE = OracleTimestampData()


@dataclass(frozen=True)
class DerivedMetrics:
    """Display values computed alongside a grade."""
    lltv_pct: Optional[float] = None
    price_shock_pct: Optional[float] = None
    headroom_usd: Optional[float] = None
    headroom_ratio_pct: Optional[float] = None
    utilization_pct: Optional[float] = None
    available_liquidity_usd: Optional[float] = None
    liquidatable_borrow_usd: Optional[float] = None
    coverage_ratio: Optional[float] = None
    oracle_age_hours: Optional[float] = None
    oracle_age_days: Optional[float] = None
    supply_apy_pct: Optional[float] = None
    borrow_apy_pct: Optional[float] = None


@dataclass(frozen=True)
class MarketRiskResult:
    """Letter-grade risk assessment for one market. Sub-scores are in [0, 100]."""
    market_id: str
    oracle_score: float
    liquidation_headroom_score: float
    utilization_score: float
    coverage_ratio_score: float
    base_score: float
    market_risk_score: float
    grade: str
    realized_bad_debt_usd: Optional[float]
    target_utilization: float
    triggered_caps: List[Dict[str, Any]] = field(default_factory=list)
    derived: DerivedMetrics = field(default_factory=DerivedMetrics)
    risk_level: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
