"""
IRM Target Utilization Lookup.

Most Morpho IRMs expose kink() as a 1e18 fixed-point ratio. Missing or
out-of-range values resolve to None so the grader falls back to 90%.
"""

import asyncio
import logging
from typing import Optional

from web3 import Web3

from ..thresholds import DEFAULT_TARGET_UTILIZATION
from ..utils import WAD, is_zero_address
from .settings import make_web3

logger = logging.getLogger(__name__)

IRM_ABI = [
    {"inputs": [], "name": "kink", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
]


class IrmTargetLookup:
    """
    Async IRM target utilization port backed by web3.

    Calling the instance returns the kink ratio or None; use
    `with_fallback` for a value that always resolves.
    """

    def __init__(self, w3: Optional[Web3] = None):
        self.w3 = w3 or make_web3()

    async def __call__(self, irm_address: Optional[str]) -> Optional[float]:
        return await asyncio.to_thread(self.get_target_utilization, irm_address)

    async def with_fallback(
        self,
        irm_address: Optional[str],
        default_target_utilization: float = DEFAULT_TARGET_UTILIZATION,
    ) -> float:
        target = await self(irm_address)
        return target if target is not None else default_target_utilization

    def get_target_utilization(self, irm_address: Optional[str]) -> Optional[float]:
        """Blocking kink() read. None for zero address, missing function or bad range."""
        if is_zero_address(irm_address):
            return None

        try:
            contract = self.w3.eth.contract(address=Web3.to_checksum_address(irm_address), abi=IRM_ABI)
            kink_raw = contract.functions.kink().call()
        except Exception as e:
            logger.debug("IRM %s has no readable kink(): %s", irm_address, e)
            return None

        kink = int(kink_raw) / WAD
        if kink < 0 or kink > 1:
            logger.warning("IRM %s returned out-of-range kink %s", irm_address, kink)
            return None
        return kink
