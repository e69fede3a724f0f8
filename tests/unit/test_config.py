"""
Unit tests for the curator configuration resolver.

Covers default handling, weight normalization and the
defaults < environment < caller layering.
"""

import dataclasses
import logging

import pytest

from morpho_risk.config import (
    DEFAULT_CURATOR_CONFIG,
    DEFAULT_WEIGHTS,
    load_config_from_env,
    normalize_weights,
    resolve_config,
)


class TestDefaults:
    """Tests for the compiled-in defaults."""

    @pytest.mark.unit
    @pytest.mark.config
    def test_defaults(self, default_config):
        assert default_config.utilization_ceiling == 0.9
        assert default_config.max_utilization_beyond == 1.10
        assert default_config.rate_alignment_eps == 0.02
        assert default_config.fallback_benchmark_rate == 0.05
        assert default_config.price_stress_pct == 0.30
        assert default_config.liquidity_stress_pct == 0.40
        assert default_config.withdrawal_liquidity_min_pct == 0.10
        assert default_config.insolvency_tolerance_pct_tvl == 0.01
        assert default_config.min_tvl_usd == 10_000
        assert default_config.config_version == "v1"

    @pytest.mark.unit
    @pytest.mark.config
    def test_default_weights_unchanged_by_normalization(self, default_config):
        weights = default_config.weights
        assert weights.utilization == pytest.approx(0.20)
        assert weights.rate_alignment == pytest.approx(0.15)
        assert weights.stress_exposure == pytest.approx(0.30)
        assert weights.withdrawal_liquidity == pytest.approx(0.20)
        assert weights.liquidation_capacity == pytest.approx(0.15)

    @pytest.mark.unit
    @pytest.mark.config
    def test_config_is_immutable(self, default_config):
        with pytest.raises(dataclasses.FrozenInstanceError):
            default_config.min_tvl_usd = 0


class TestNormalizeWeights:
    """Tests for weight normalization."""

    @pytest.mark.unit
    @pytest.mark.config
    def test_scales_to_one(self):
        weights = normalize_weights({
            "utilization": 2,
            "rate_alignment": 2,
            "stress_exposure": 2,
            "withdrawal_liquidity": 2,
            "liquidation_capacity": 2,
        })
        assert weights.total() == pytest.approx(1.0)
        assert weights.utilization == pytest.approx(0.2)

    @pytest.mark.unit
    @pytest.mark.config
    def test_all_zero_falls_back_to_defaults(self):
        weights = normalize_weights({key: 0 for key in DEFAULT_WEIGHTS.to_dict()})
        assert weights == DEFAULT_WEIGHTS

    @pytest.mark.unit
    @pytest.mark.config
    def test_non_finite_weights_count_as_zero(self):
        weights = normalize_weights({"utilization": float("inf"), "stress_exposure": 2})
        assert weights.utilization == 0
        assert weights.stress_exposure == pytest.approx(1.0)

    @pytest.mark.unit
    @pytest.mark.config
    def test_negative_weights_count_as_zero(self):
        weights = normalize_weights({"utilization": -5, "stress_exposure": 1})
        assert weights.utilization == 0
        assert weights.stress_exposure == pytest.approx(1.0)
        assert weights.total() == pytest.approx(1.0)


class TestResolveConfig:
    """Tests for layered config resolution."""

    @pytest.mark.unit
    @pytest.mark.config
    def test_partial_weight_override_renormalizes(self):
        config = resolve_config({"weights": {"utilization": 0.5}}, environ={})
        weights = config.weights

        assert weights.total() == pytest.approx(1.0)
        assert weights.utilization == pytest.approx(0.5 / 1.3)
        assert weights.utilization > 0.2
        assert weights.stress_exposure == pytest.approx(0.3 / 1.3)

    @pytest.mark.unit
    @pytest.mark.config
    def test_all_zero_weight_overrides_use_defaults(self):
        config = resolve_config(
            {"weights": {key: 0 for key in DEFAULT_WEIGHTS.to_dict()}},
            environ={},
        )
        assert config.weights == DEFAULT_WEIGHTS

    @pytest.mark.unit
    @pytest.mark.config
    def test_environment_layer(self):
        config = resolve_config(environ={
            "CURATOR_UTILIZATION_CEILING": "0.85",
            "CURATOR_MIN_TVL_USD": "50000",
            "CURATOR_WEIGHT_STRESS_EXPOSURE": "0.6",
            "CURATOR_CONFIG_VERSION": "v2",
        })

        assert config.utilization_ceiling == 0.85
        assert config.min_tvl_usd == 50_000
        assert config.config_version == "v2"
        assert config.weights.stress_exposure == pytest.approx(0.6 / 1.3)

    @pytest.mark.unit
    @pytest.mark.config
    def test_caller_beats_environment(self):
        config = resolve_config(
            {"utilization_ceiling": 0.8},
            environ={"CURATOR_UTILIZATION_CEILING": "0.85", "CURATOR_PRICE_STRESS_PCT": "0.5"},
        )
        assert config.utilization_ceiling == 0.8
        assert config.price_stress_pct == 0.5

    @pytest.mark.unit
    @pytest.mark.config
    @pytest.mark.parametrize("bad_value", ["abc", float("nan"), float("inf"), None, ""])
    def test_malformed_caller_value_falls_through(self, bad_value):
        config = resolve_config(
            {"utilization_ceiling": bad_value},
            environ={"CURATOR_UTILIZATION_CEILING": "0.85"},
        )
        assert config.utilization_ceiling == 0.85

    @pytest.mark.unit
    @pytest.mark.config
    def test_malformed_env_value_ignored(self):
        config = resolve_config(environ={"CURATOR_UTILIZATION_CEILING": "ninety"})
        assert config.utilization_ceiling == 0.9

    @pytest.mark.unit
    @pytest.mark.config
    def test_huge_finite_weights_normalize(self):
        config = resolve_config(
            {"weights": {"utilization": 1e308, "rate_alignment": 1e308}},
            environ={},
        )
        weights = config.weights

        assert weights.total() == pytest.approx(1.0)
        assert weights.utilization == pytest.approx(0.5)
        assert weights.rate_alignment == pytest.approx(0.5)
        assert weights.stress_exposure == pytest.approx(0.0, abs=1e-300)

    @pytest.mark.unit
    @pytest.mark.config
    def test_huge_env_weights_normalize(self):
        config = resolve_config(environ={
            "CURATOR_WEIGHT_STRESS_EXPOSURE": "1.5e308",
            "CURATOR_WEIGHT_WITHDRAWAL_LIQUIDITY": "1.5e308",
        })
        assert config.weights.total() == pytest.approx(1.0)
        assert config.weights.stress_exposure == pytest.approx(0.5)

    @pytest.mark.unit
    @pytest.mark.config
    @pytest.mark.parametrize("bad_weights", [0.5, "heavy", [0.2, 0.8], 3])
    def test_non_mapping_weights_ignored(self, bad_weights, caplog):
        with caplog.at_level(logging.WARNING, logger="morpho_risk.config"):
            config = resolve_config({"weights": bad_weights}, environ={})

        assert config.weights.utilization == pytest.approx(0.20)
        assert config.weights.total() == pytest.approx(1.0)
        assert "non-mapping curator weights" in caplog.text

    @pytest.mark.unit
    @pytest.mark.config
    def test_unknown_key_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="morpho_risk.config"):
            config = resolve_config({"utilisation_ceiling": 0.5}, environ={})

        assert config.utilization_ceiling == 0.9
        assert "utilisation_ceiling" in caplog.text

    @pytest.mark.unit
    @pytest.mark.config
    def test_defaults_never_mutated(self):
        resolve_config({"min_tvl_usd": 1, "weights": {"utilization": 1}}, environ={})
        assert DEFAULT_CURATOR_CONFIG.min_tvl_usd == 10_000
        assert DEFAULT_CURATOR_CONFIG.weights == DEFAULT_WEIGHTS


class TestLoadConfigFromEnv:
    """Tests for reading CURATOR_* variables."""

    @pytest.mark.unit
    @pytest.mark.config
    def test_only_set_values_returned(self):
        overrides = load_config_from_env({
            "CURATOR_RATE_ALIGNMENT_EPS": "0.03",
            "CURATOR_WEIGHT_UTILIZATION": "0.4",
            "UNRELATED": "1",
        })
        assert overrides == {"rate_alignment_eps": 0.03, "weights": {"utilization": 0.4}}

    @pytest.mark.unit
    @pytest.mark.config
    def test_empty_environment(self):
        assert load_config_from_env({}) == {}

    @pytest.mark.unit
    @pytest.mark.config
    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("CURATOR_LIQUIDITY_STRESS_PCT", "0.25")
        assert resolve_config().liquidity_stress_pct == 0.25
