"""
Oracle Freshness Lookup.

Resolves the Chainlink feed behind a Morpho oracle and reads the age of its
latest price update:

1. Use the base feed address from the Morpho API when it is known
2. Otherwise query the oracle in order: getBaseFeed(1), getBaseFeed(0), baseFeed(),
   feeds(1), baseFeeds(1)
3. Read latestRoundData() on the feed and compute age from updatedAt

Any failure yields OracleTimestampData with age_seconds=None, which the
grader scores as "unknown freshness".
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from web3 import Web3

from ..models import OracleTimestampData, UNRESOLVED_ORACLE
from ..utils import is_zero_address
from .settings import make_web3

logger = logging.getLogger(__name__)

# Chainlink AggregatorV3Interface (minimal)
CHAINLINK_AGGREGATOR_ABI = [
    {"inputs": [], "name": "latestRoundData", "outputs": [{"name": "roundId", "type": "uint80"}, {"name": "answer", "type": "int256"}, {"name": "startedAt", "type": "uint256"}, {"name": "updatedAt", "type": "uint256"}, {"name": "answeredInRound", "type": "uint80"}], "stateMutability": "view", "type": "function"},
]

# MorphoChainlinkOracleV2 and common fallbacks
MORPHO_ORACLE_ABI = [
    {"inputs": [{"name": "index", "type": "uint256"}], "name": "getBaseFeed", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "baseFeed", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "", "type": "uint256"}], "name": "feeds", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "", "type": "uint256"}], "name": "baseFeeds", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
]

# (function name, args) in lookup order
FEED_CANDIDATES = [
    ("getBaseFeed", (1,)),
    ("getBaseFeed", (0,)),
    ("baseFeed", ()),
    ("feeds", (1,)),
    ("baseFeeds", (1,)),
]


class OracleFreshnessLookup:
    """
    Async oracle freshness port backed by web3.

    Usage:
        lookup = OracleFreshnessLookup()
        data = await lookup("0xOracle...", base_feed_address=None)
    """

    def __init__(self, w3: Optional[Web3] = None, clock: Callable[[], float] = time.time):
        self.w3 = w3 or make_web3()
        self.clock = clock

    async def __call__(
        self,
        oracle_address: Optional[str],
        base_feed_address: Optional[str] = None,
    ) -> OracleTimestampData:
        return await asyncio.to_thread(self.get_timestamp_data, oracle_address, base_feed_address)

    def resolve_feed(self, oracle_address: str) -> Optional[str]:
        """Query a Morpho oracle for the address of its Chainlink base feed."""
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(oracle_address), abi=MORPHO_ORACLE_ABI)

        for name, args in FEED_CANDIDATES:
            try:
                feed = getattr(contract.functions, name)(*args).call()
            except Exception as e:
                logger.debug("Oracle %s does not answer %s%s: %s", oracle_address, name, args, e)
                continue
            if feed and not is_zero_address(feed):
                return feed

        return None

    def latest_update(self, feed_address: str) -> Optional[int]:
        """updatedAt from latestRoundData(), or None if the feed does not implement it."""
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(feed_address), abi=CHAINLINK_AGGREGATOR_ABI)
        try:
            round_data = contract.functions.latestRoundData().call()
        except Exception as e:
            logger.warning("latestRoundData failed for feed %s: %s", feed_address, e)
            return None
        return int(round_data[3])

    def get_timestamp_data(
        self,
        oracle_address: Optional[str],
        base_feed_address: Optional[str] = None,
    ) -> OracleTimestampData:
        """
        Blocking freshness lookup.

        Args:
            oracle_address: Morpho oracle contract
            base_feed_address: Chainlink feed from the Morpho API, if known

        Returns:
            OracleTimestampData; age_seconds is None when unresolved
        """
        if is_zero_address(oracle_address):
            return UNRESOLVED_ORACLE

        try:
            feed_address = base_feed_address if not is_zero_address(base_feed_address) else self.resolve_feed(oracle_address)
        except Exception as e:
            logger.warning("Could not resolve feed for oracle %s: %s", oracle_address, e)
            return UNRESOLVED_ORACLE

        if not feed_address:
            logger.debug("No Chainlink feed found behind oracle %s", oracle_address)
            return UNRESOLVED_ORACLE

        try:
            updated_at = self.latest_update(feed_address)
        except Exception as e:
            logger.warning("Could not read feed %s for oracle %s: %s", feed_address, oracle_address, e)
            updated_at = None

        if updated_at is None:
            return OracleTimestampData(feed_address=feed_address)

        age_seconds = int(self.clock()) - updated_at
        logger.debug("Oracle %s feed %s updated %ss ago", oracle_address, feed_address, age_seconds)
        return OracleTimestampData(feed_address=feed_address, updated_at=updated_at, age_seconds=age_seconds)
