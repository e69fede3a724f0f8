"""
Lookup adapters - on-chain collaborators of the market risk grader.

Each adapter is an async callable that never raises for on-chain failures:
- oracle: OracleFreshnessLookup(oracle_address, base_feed_address) -> OracleTimestampData
- irm: IrmTargetLookup(irm_address) -> kink ratio or None
"""

from .oracle import OracleFreshnessLookup
from .irm import IrmTargetLookup
from .settings import make_web3

__all__ = [
    "OracleFreshnessLookup",
    "IrmTargetLookup",
    "make_web3",
]
