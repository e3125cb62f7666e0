"""
Destination Selector
====================

Picks the chain whose protocol deposits should source a fill.

Cheaper chains are preferred: the designated expensive chain (usually the
settlement base chain) is left out of the primary search and only used
when nothing else can cover the amount. Chains in `exclude` (the fill's
own target chain) are never candidates. Chains with equal deposits keep
the table's insertion order; that tie order is implementation defined.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from .models import DepositTable

logger = logging.getLogger(__name__)


def rank_chains(
    deposits: DepositTable,
    asset: str,
    excluded_chain: Optional[str] = None,
    exclude: Iterable[str] = (),
) -> List[Tuple[str, int]]:
    """(chain_id, deposit) pairs for asset, largest first, excluded chains removed"""
    skipped = set(exclude)
    candidates = [
        (chain_id, amount)
        for chain_id, amount in deposits.get(asset, {}).items()
        if chain_id != excluded_chain and chain_id not in skipped
    ]
    # sorted() is stable, ties keep insertion order
    return sorted(candidates, key=lambda pair: pair[1], reverse=True)


def select_fill_destination(
    deposits: DepositTable,
    asset: str,
    required: int,
    excluded_chain: Optional[str] = None,
    exclude: Iterable[str] = (),
) -> Optional[str]:
    """
    Choose the source chain for a fill of `required` normalized units.

    Args:
        deposits: Normalized deposit table
        asset: Asset symbol
        required: Normalized amount the chain must cover
        excluded_chain: Chain only used as a last resort
        exclude: Chains never returned (e.g. the rebalance target)

    Returns:
        chain_id, or None when no chain holds enough
    """
    skipped = set(exclude)
    for chain_id, amount in rank_chains(deposits, asset, excluded_chain, skipped):
        if amount >= required:
            logger.info(f"Selected chain {chain_id} for {asset}: deposit {amount} >= {required}")
            return chain_id

    if excluded_chain is not None and excluded_chain not in skipped:
        fallback = deposits.get(asset, {}).get(excluded_chain)
        if fallback is not None and fallback >= required:
            logger.info(f"Falling back to expensive chain {excluded_chain} for {asset}")
            return excluded_chain

    logger.info(f"No chain holds {required} of {asset}")
    return None
