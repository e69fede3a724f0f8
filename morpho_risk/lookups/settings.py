"""
Lookup adapter configuration.

RPC settings for the on-chain oracle and IRM lookups.
"""

import os
from typing import Optional

from web3 import Web3

from ..utils import to_finite

DEFAULT_RPC_TIMEOUT_SECONDS = 10.0

RPC_URL = os.getenv("MORPHO_RISK_RPC_URL", "https://eth.llamarpc.com")


def parse_timeout(value: Optional[str]) -> float:
    """Positive finite seconds, else the default."""
    timeout = to_finite(value)
    if timeout is None or timeout <= 0:
        return DEFAULT_RPC_TIMEOUT_SECONDS
    return timeout


RPC_TIMEOUT_SECONDS = parse_timeout(os.getenv("MORPHO_RISK_RPC_TIMEOUT"))


def make_web3(rpc_url: Optional[str] = None, timeout: Optional[float] = None) -> Web3:
    """Build a Web3 client for the configured RPC endpoint."""
    return Web3(Web3.HTTPProvider(
        rpc_url or RPC_URL,
        request_kwargs={"timeout": timeout or RPC_TIMEOUT_SECONDS},
    ))
