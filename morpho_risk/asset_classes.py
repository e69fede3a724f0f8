"""
Asset correlation table.

Loan and collateral assets from the same family (an asset and its wrapped,
staked or bridged derivatives) move together, so the grader stresses them
with a smaller price shock. New derivative families only need a table entry.
"""

from typing import Optional

from .thresholds import CORRELATED_PRICE_SHOCK, UNCORRELATED_PRICE_SHOCK

ASSET_FAMILIES = {
    "ETH": ["ETH", "WETH", "STETH", "WSTETH", "RETH", "CBETH"],
    "BTC": ["BTC", "WBTC", "CBBTC", "LBTC"],
    "USDC": ["USDC", "USDC.E"],
    "USDT": ["USDT", "USDT.E"],
}

SYMBOL_TO_FAMILY = {
    symbol: family
    for family, symbols in ASSET_FAMILIES.items()
    for symbol in symbols
}


def asset_family(symbol: Optional[str]) -> Optional[str]:
    """Return the family key for a symbol, or None if it is not classified."""
    if not symbol:
        return None
    return SYMBOL_TO_FAMILY.get(symbol.strip().upper())


def are_correlated(
    loan_symbol: Optional[str],
    collateral_symbol: Optional[str],
    loan_address: Optional[str] = None,
    collateral_address: Optional[str] = None,
) -> bool:
    """
    Whether loan and collateral are the same asset or derivatives of one another.

    Matching addresses or identical symbols count as the same asset.
    """
    if loan_address and collateral_address and loan_address.lower() == collateral_address.lower():
        return True

    if not loan_symbol or not collateral_symbol:
        return False

    if loan_symbol.strip().upper() == collateral_symbol.strip().upper():
        return True

    loan_family = asset_family(loan_symbol)
    return loan_family is not None and loan_family == asset_family(collateral_symbol)


def price_shock_for(
    loan_symbol: Optional[str],
    collateral_symbol: Optional[str],
    loan_address: Optional[str] = None,
    collateral_address: Optional[str] = None,
) -> float:
    """Collateral price shock to apply: 2.5% for correlated pairs, 5% otherwise."""
    if are_correlated(loan_symbol, collateral_symbol, loan_address, collateral_address):
        return CORRELATED_PRICE_SHOCK
    return UNCORRELATED_PRICE_SHOCK
