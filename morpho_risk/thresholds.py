"""
Market Risk Thresholds and Tier Tables.

Breakpoints for the curator rating and the market risk grade live here so
they can be tested and tuned independently of the scoring code.

Each table entry includes:
- the numeric breakpoint(s)
- the score (or tolerance) assigned at that breakpoint
- justification where the choice is not self-explanatory
"""

# =============================================================================
# LETTER GRADE SCALE (MARKET RISK GRADE)
# =============================================================================

# Inclusive lower bounds, checked from best to worst.
GRADE_SCALE = {
    "A+": {"min": 93, "risk_level": "Minimal Risk"},
    "A": {"min": 90, "risk_level": "Minimal Risk"},
    "A−": {"min": 87, "risk_level": "Minimal Risk"},
    "B+": {"min": 84, "risk_level": "Low Risk"},
    "B": {"min": 80, "risk_level": "Low Risk"},
    "B−": {"min": 77, "risk_level": "Low Risk"},
    "C+": {"min": 74, "risk_level": "Moderate Risk"},
    "C": {"min": 70, "risk_level": "Moderate Risk"},
    "C−": {"min": 65, "risk_level": "Moderate Risk"},
    "D": {"min": 60, "risk_level": "Elevated Risk"},
    "F": {"min": 0, "risk_level": "High Risk"},
}

# =============================================================================
# MARKET RISK COMPONENT WEIGHTS
# =============================================================================

MARKET_RISK_WEIGHTS = {
    "oracle": 0.25,
    "liquidation_headroom": 0.25,
    "utilization": 0.25,
    "coverage_ratio": 0.25,
}

# =============================================================================
# ORACLE FRESHNESS
# =============================================================================

ORACLE_SCORE_NO_ORACLE = 20
ORACLE_SCORE_UNKNOWN_FRESHNESS = 60

# (age in hours, score). Under one hour is a perfect score.
ORACLE_FRESHNESS_BREAKPOINTS = [
    (1, 100),
    (24, 80),
    (168, 60),
    (720, 20),
]

# =============================================================================
# PRICE SHOCKS (ASSET CORRELATION AWARE)
# =============================================================================

CORRELATED_PRICE_SHOCK = 0.025
UNCORRELATED_PRICE_SHOCK = 0.05

# =============================================================================
# LIQUIDATION HEADROOM
# =============================================================================

# (headroom / borrow, score)
HEADROOM_BREAKPOINTS = [
    (0.0, 0),
    (0.10, 60),
    (0.20, 80),
    (0.30, 100),
]

# =============================================================================
# UTILIZATION VS IRM TARGET
# =============================================================================

DEFAULT_TARGET_UTILIZATION = 0.9
UTILIZATION_SCORE_AT_ZERO = 100
UTILIZATION_SCORE_AT_TARGET = 80
# Excess utilization over target at which the score reaches 0.
UTILIZATION_EXCESS_WINDOW = 0.20

# =============================================================================
# COVERAGE RATIO
# =============================================================================

# (available liquidity / liquidatable borrow, score)
COVERAGE_BREAKPOINTS = [
    (0.0, 0),
    (0.25, 40),
    (0.50, 60),
    (0.80, 80),
    (1.00, 100),
]

# =============================================================================
# GLOBAL CAPS & OVERRIDES
# =============================================================================

GLOBAL_CAPS = {
    "opaque_oracle": {
        "component": "oracle_score",
        "comparison": "<=",
        "threshold": 20,
        "condition": "Oracle score <= 20",
        "max_score": 54,
        "justification": "Opaque, fixed or very stale oracle. Liquidations cannot be "
                        "trusted to fire at the right price regardless of other metrics.",
    },
    "utilization_stress": {
        "component": "utilization_score",
        "comparison": "<=",
        "threshold": 20,
        "condition": "Utilization score <= 20",
        "max_score": 60,
        "justification": "Utilization far beyond the IRM kink. Suppliers may be unable "
                        "to withdraw and liquidators cannot source liquidity.",
    },
    "coverage_shortfall": {
        "component": "coverage_ratio_score",
        "comparison": "<",
        "threshold": 100,
        "condition": "Coverage ratio score < 100",
        "max_score": 68,
        "justification": "Available liquidity does not fully cover the borrow that "
                        "becomes liquidatable under the price shock.",
    },
}

BAD_DEBT_THRESHOLD_USD = 1.00

# =============================================================================
# CURATOR RATING: TVL TIERS
# =============================================================================

LARGE_MARKET_THRESHOLD = 50_000_000
ULTRA_LARGE_MARKET_THRESHOLD = 500_000_000
MEGA_MARKET_THRESHOLD = 2_000_000_000

# Insolvency tolerance (fraction of TVL) by market size. A "start" of None
# means the configured base tolerance. Larger markets have deeper liquidity
# and more liquidators, so they tolerate more absolute exposure.
TOLERANCE_TIERS = [
    {"min_tvl": 0, "max_tvl": LARGE_MARKET_THRESHOLD, "curve": "flat",
     "start": None, "end": None},
    {"min_tvl": LARGE_MARKET_THRESHOLD, "max_tvl": ULTRA_LARGE_MARKET_THRESHOLD, "curve": "sqrt",
     "start": None, "end": 0.20},
    {"min_tvl": ULTRA_LARGE_MARKET_THRESHOLD, "max_tvl": MEGA_MARKET_THRESHOLD, "curve": "linear",
     "start": 0.20, "end": 0.35},
]

# Large-market stress exposure curve
STRESS_KNEE_FRACTION = 0.8
STRESS_KNEE_MAX_PENALTY = 0.1
STRESS_EXCESS_EXPONENT = 1.5

# Large-market liquidation capacity curve: (min coverage, score at min, slope)
LIQUIDATION_CAPACITY_TIERS = [
    {"min_coverage": 0.5, "base_score": 0.6, "slope": 0.8},
    {"min_coverage": 0.3, "base_score": 0.3, "slope": 1.5},
    {"min_coverage": 0.0, "base_score": 0.0, "slope": 1.0},
]

# Utilization anomaly logging margin above max_utilization_beyond
UTILIZATION_ANOMALY_MARGIN = 0.05
UTILIZATION_SAFE_FACTOR = 0.98
