"""
Curator configuration resolver.

Layers, lowest priority first:
1. Compiled-in defaults (DEFAULT_CURATOR_CONFIG)
2. Environment variables (CURATOR_*)
3. Explicit caller overrides

Every field is independently optional in each layer. Values that do not
parse as finite numbers are treated as absent. Weights are merged the same
way and then normalized to sum to 1.
"""

import logging
import math
import os
from dataclasses import fields, replace
from typing import Any, Dict, Mapping, Optional

from .models import CuratorConfig, CuratorWeights, WEIGHT_KEYS
from .utils import finite_or_zero, to_finite

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = CuratorWeights()
DEFAULT_CURATOR_CONFIG = CuratorConfig(weights=DEFAULT_WEIGHTS)

# Numeric config field -> environment variable
ENV_VARS = {
    "utilization_ceiling": "CURATOR_UTILIZATION_CEILING",
    "max_utilization_beyond": "CURATOR_MAX_UTILIZATION_BEYOND",
    "rate_alignment_eps": "CURATOR_RATE_ALIGNMENT_EPS",
    "rate_alignment_high_yield_buffer": "CURATOR_RATE_ALIGNMENT_HIGH_YIELD_BUFFER",
    "rate_alignment_high_yield_eps": "CURATOR_RATE_ALIGNMENT_HIGH_YIELD_EPS",
    "fallback_benchmark_rate": "CURATOR_FALLBACK_BENCHMARK_RATE",
    "price_stress_pct": "CURATOR_PRICE_STRESS_PCT",
    "liquidity_stress_pct": "CURATOR_LIQUIDITY_STRESS_PCT",
    "withdrawal_liquidity_min_pct": "CURATOR_WITHDRAWAL_LIQUIDITY_MIN_PCT",
    "insolvency_tolerance_pct_tvl": "CURATOR_INSOLVENCY_TOLERANCE_PCT_TVL",
    "min_tvl_usd": "CURATOR_MIN_TVL_USD",
}
CONFIG_VERSION_ENV_VAR = "CURATOR_CONFIG_VERSION"
WEIGHT_ENV_PREFIX = "CURATOR_WEIGHT_"

NUMERIC_FIELDS = [f.name for f in fields(CuratorConfig) if f.name not in ("weights", "config_version")]


def _parse_number(value: Any, key: str) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    number = to_finite(value)
    if number is None:
        logger.debug("Ignoring non-numeric config value %s=%r", key, value)
    return number


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Read sparse overrides from CURATOR_* environment variables.

    Returns:
        Dict containing only the fields that were set and parsed
    """
    env = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}

    for name, env_key in ENV_VARS.items():
        value = _parse_number(env.get(env_key), env_key)
        if value is not None:
            overrides[name] = value

    version = env.get(CONFIG_VERSION_ENV_VAR)
    if version:
        overrides["config_version"] = version

    weights = {}
    for key in WEIGHT_KEYS:
        env_key = f"{WEIGHT_ENV_PREFIX}{key.upper()}"
        value = _parse_number(env.get(env_key), env_key)
        if value is not None:
            weights[key] = value
    if weights:
        overrides["weights"] = weights

    return overrides


def _clean_overrides(overrides: Optional[Mapping[str, Any]], source: str) -> Dict[str, Any]:
    """Drop absent, unknown and unparsable entries from one override layer."""
    cleaned: Dict[str, Any] = {}
    if not overrides:
        return cleaned

    for key, value in overrides.items():
        if key == "weights":
            if value is None:
                continue
            if not isinstance(value, Mapping):
                logger.warning("Ignoring non-mapping curator weights %r in %s overrides", value, source)
                continue
            weights = {}
            for weight_key, weight_value in value.items():
                if weight_key not in WEIGHT_KEYS:
                    logger.warning("Unknown curator weight %r in %s overrides", weight_key, source)
                    continue
                number = _parse_number(weight_value, f"weights.{weight_key}")
                if number is not None:
                    weights[weight_key] = number
            if weights:
                cleaned["weights"] = weights
        elif key == "config_version":
            if value:
                cleaned["config_version"] = str(value)
        elif key in NUMERIC_FIELDS:
            number = _parse_number(value, key)
            if number is not None:
                cleaned[key] = number
        else:
            logger.warning("Unknown curator config key %r in %s overrides", key, source)

    return cleaned


def normalize_weights(weights: Mapping[str, float]) -> CuratorWeights:
    """
    Scale weights so they sum to 1.

    Negative or non-finite weights count as 0. If nothing positive is left,
    the default weight vector is returned unchanged.
    """
    values = {key: max(finite_or_zero(weights.get(key)), 0.0) for key in WEIGHT_KEYS}
    largest = max(values.values())
    if largest <= 0:
        return DEFAULT_WEIGHTS

    # Scaled values lie in [0, 1], so their sum stays finite
    scaled = {key: value / largest for key, value in values.items()}
    total = math.fsum(scaled.values())
    return CuratorWeights(**{key: value / total for key, value in scaled.items()})


def resolve_config(
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> CuratorConfig:
    """
    Build a CuratorConfig from defaults < environment < caller overrides.

    Args:
        overrides: Sparse dict of CuratorConfig field names, with an optional
                   "weights" sub-dict keyed by weight name
        environ: Environment mapping to read instead of os.environ

    Returns:
        A new frozen CuratorConfig; DEFAULT_CURATOR_CONFIG is never mutated
    """
    env_layer = _clean_overrides(load_config_from_env(environ), "environment")
    caller_layer = _clean_overrides(overrides, "caller")

    merged_weights = DEFAULT_WEIGHTS.to_dict()
    merged_weights.update(env_layer.pop("weights", {}))
    merged_weights.update(caller_layer.pop("weights", {}))

    merged = {**env_layer, **caller_layer}
    return replace(DEFAULT_CURATOR_CONFIG, weights=normalize_weights(merged_weights), **merged)
