"""
Decimal Normalizer
==================

Converts raw token amounts between their native on-chain precision and the
canonical 18-decimal fixed-point unit used for every comparison in the
engine.

Assets with more than 18 decimals lose precision when normalized: the
division truncates toward zero. That loss is bounded by one native unit and
is accepted, not corrected.
"""

import logging

from .catalog import AssetCatalog

logger = logging.getLogger(__name__)

CANONICAL_DECIMALS = 18
MAX_DECIMALS = 255


def _check_decimals(decimals: int) -> None:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise ValueError(f"decimals must be an integer, got {decimals!r}")
    if not 0 <= decimals <= MAX_DECIMALS:
        raise ValueError(f"decimals must be within 0..{MAX_DECIMALS}, got {decimals}")


def normalize(raw_amount: int, source_decimals: int) -> int:
    """
    Scale a native amount to 18-decimal fixed point.

    Args:
        raw_amount: Amount in the asset's native units
        source_decimals: Native precision of the asset on its chain

    Returns:
        Normalized integer amount
    """
    _check_decimals(source_decimals)
    raw_amount = int(raw_amount)
    if source_decimals < CANONICAL_DECIMALS:
        return raw_amount * 10 ** (CANONICAL_DECIMALS - source_decimals)
    if source_decimals > CANONICAL_DECIMALS:
        # truncating; see module docstring
        return raw_amount // 10 ** (source_decimals - CANONICAL_DECIMALS)
    return raw_amount


def denormalize(amount: int, target_decimals: int) -> int:
    """Inverse of normalize(). Truncates when target_decimals < 18."""
    _check_decimals(target_decimals)
    amount = int(amount)
    if target_decimals < CANONICAL_DECIMALS:
        return amount // 10 ** (CANONICAL_DECIMALS - target_decimals)
    if target_decimals > CANONICAL_DECIMALS:
        return amount * 10 ** (target_decimals - CANONICAL_DECIMALS)
    return amount


def format_units(amount: int, decimals: int = CANONICAL_DECIMALS) -> str:
    """Render an integer amount as a decimal string, e.g. 1500000 @6 -> '1.5'"""
    _check_decimals(decimals)
    amount = int(amount)
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10 ** decimals)
    frac_text = str(frac).rjust(decimals, "0").rstrip("0") if decimals else ""
    return f"{sign}{whole}.{frac_text}" if frac_text else f"{sign}{whole}"


class AmountNormalizer:
    """Catalog-bound normalization for (asset, chain) pairs"""

    def __init__(self, catalog: AssetCatalog):
        self.catalog = catalog

    def normalize_for(self, asset: str, chain_id: str, raw_amount: int) -> int:
        descriptor = self.catalog.require_descriptor(asset, chain_id)
        return normalize(raw_amount, descriptor.decimals)

    def denormalize_for(self, asset: str, chain_id: str, amount: int) -> int:
        descriptor = self.catalog.require_descriptor(asset, chain_id)
        return denormalize(amount, descriptor.decimals)
