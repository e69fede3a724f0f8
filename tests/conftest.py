"""
Pytest configuration and fixtures for the Morpho market risk engine.

This file contains shared fixtures used across all test modules.
Fixtures follow the pattern: factory functions returning fresh objects.
"""

import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from unittest.mock import MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from morpho_risk.config import resolve_config
from morpho_risk.models import Asset, CuratorConfig, Market, MarketState, OracleTimestampData


ORACLE_ADDRESS = "0x" + "a" * 40
IRM_ADDRESS = "0x" + "b" * 40
FEED_ADDRESS = "0x" + "c" * 40
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

NOW = 1_700_000_000


# =============================================================================
# MARKET FIXTURES
# =============================================================================

@pytest.fixture
def market_factory() -> Callable[..., Market]:
    """
    Factory fixture for Market snapshots.

    The default market is a healthy $1M USDC/WETH market at 86% LLTV:
    50% utilization, $500k idle liquidity, 5% supply APY.

    Usage:
        def test_something(market_factory):
            market = market_factory(borrow_assets_usd=900_000)
    """
    def _create(
        market_id: str = "test-market-1",
        loan_symbol: Optional[str] = "USDC",
        collateral_symbol: Optional[str] = "WETH",
        lltv: Optional[int] = 860000000000000000,
        oracle_address: Optional[str] = ORACLE_ADDRESS,
        irm_address: Optional[str] = IRM_ADDRESS,
        oracle_base_feed_address: Optional[str] = None,
        loan_address: Optional[str] = None,
        collateral_address: Optional[str] = None,
        state: Optional[MarketState] = None,
        **state_overrides: Any,
    ) -> Market:
        if state is None:
            state_fields = {
                "supply_assets_usd": 1_000_000,
                "borrow_assets_usd": 500_000,
                "liquidity_assets_usd": 500_000,
                "collateral_assets_usd": 1_000_000,
                "utilization": 0.5,
                "supply_apy": 0.05,
                "borrow_apy": 0.07,
                "size_usd": 1_000_000,
                "realized_bad_debt_usd": None,
            }
            state_fields.update(state_overrides)
            state = MarketState(**state_fields)

        return Market(
            id=market_id,
            unique_key=market_id,
            chain_id=1,
            loan_asset=Asset(symbol=loan_symbol, decimals=6, address=loan_address) if loan_symbol else None,
            collateral_asset=(
                Asset(symbol=collateral_symbol, decimals=18, address=collateral_address)
                if collateral_symbol else None
            ),
            lltv=lltv,
            oracle_address=oracle_address,
            irm_address=irm_address,
            oracle_base_feed_address=oracle_base_feed_address,
            state=state,
        )

    return _create


@pytest.fixture
def api_market_payload() -> Dict[str, Any]:
    """A market as returned by the Morpho GraphQL API."""
    return {
        "id": "0xmarket",
        "uniqueKey": "0xmarket",
        "lltv": "860000000000000000",
        "oracleAddress": ORACLE_ADDRESS,
        "irmAddress": IRM_ADDRESS,
        "morphoBlue": {"chain": {"id": 8453}},
        "loanAsset": {"symbol": "USDC", "decimals": 6, "address": "0x" + "1" * 40},
        "collateralAsset": {"symbol": "cbBTC", "decimals": 8, "address": "0x" + "2" * 40},
        "oracle": {"address": ORACLE_ADDRESS, "data": {"baseFeedOne": {"address": FEED_ADDRESS}}},
        "state": {
            "supplyAssetsUsd": 2_000_000,
            "borrowAssetsUsd": 1_500_000,
            "liquidityAssetsUsd": 500_000,
            "collateralAssetsUsd": 3_000_000,
            "utilization": 0.75,
            "supplyApy": 0.045,
            "borrowApy": 0.061,
            "sizeUsd": 2_000_000,
            "realizedBadDebt": {"usd": 0},
        },
    }


# =============================================================================
# CONFIG FIXTURES
# =============================================================================

@pytest.fixture
def default_config() -> CuratorConfig:
    """Defaults only; the process environment is ignored."""
    return resolve_config(environ={})


@pytest.fixture
def fresh_oracle() -> OracleTimestampData:
    """Oracle updated ten minutes ago."""
    return OracleTimestampData(feed_address=FEED_ADDRESS, updated_at=NOW - 600, age_seconds=600)


# =============================================================================
# WEB3 MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_web3() -> MagicMock:
    """
    Mock Web3 instance. `eth.contract` routes by address to contracts
    registered in `w3.contracts`.

    Usage:
        def test_lookup(mock_web3, mock_feed_contract):
            mock_web3.contracts[FEED_ADDRESS.lower()] = mock_feed_contract(updated_at=...)
    """
    w3 = MagicMock()
    w3.contracts = {}

    def _contract(address=None, abi=None):
        key = (address or "").lower()
        if key not in w3.contracts:
            raise ValueError(f"no contract at {address}")
        return w3.contracts[key]

    w3.eth.contract.side_effect = _contract
    return w3


@pytest.fixture
def mock_feed_contract() -> Callable[..., MagicMock]:
    """Factory fixture for a Chainlink aggregator mock."""
    def _create(updated_at: Optional[int] = NOW - 300, error: Optional[Exception] = None) -> MagicMock:
        contract = MagicMock()
        call = contract.functions.latestRoundData.return_value.call
        if error is not None:
            call.side_effect = error
        else:
            call.return_value = (110680464442257320000, 350000000000, updated_at, updated_at, 110680464442257320000)
        return contract

    return _create


@pytest.fixture
def mock_oracle_contract() -> Callable[..., MagicMock]:
    """
    Factory fixture for a Morpho oracle mock.

    `feeds` maps (function name, args) to the returned address; calls not
    listed revert.
    """
    def _create(feeds: Dict[tuple, str]) -> MagicMock:
        contract = MagicMock()

        def _feed_call(name):
            def _fn(*args):
                fn = MagicMock()
                if (name, args) in feeds:
                    fn.call.return_value = feeds[(name, args)]
                else:
                    fn.call.side_effect = Exception("execution reverted")
                return fn
            return _fn

        for name in ("getBaseFeed", "baseFeed", "feeds", "baseFeeds"):
            setattr(contract.functions, name, _feed_call(name))
        return contract

    return _create


@pytest.fixture
def mock_irm_contract() -> Callable[..., MagicMock]:
    """Factory fixture for an adaptive-curve IRM mock exposing kink()."""
    def _create(kink: Optional[int] = 900000000000000000, error: Optional[Exception] = None) -> MagicMock:
        contract = MagicMock()
        call = contract.functions.kink.return_value.call
        if error is not None:
            call.side_effect = error
        else:
            call.return_value = kink
        return contract

    return _create
