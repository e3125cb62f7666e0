"""
Balance Aggregator
==================

Builds the per-asset, per-chain tables the engine decides on:

- balances: what the filler wallet holds on each chain
- deposits: protocol-held liquidity available to source fills

Every (asset, chain) read is an isolated unit run on a thread pool. A read
that fails is logged and its entry omitted; it never aborts the asset or
the table. Absent entries mean "unknown", never zero.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from . import metrics
from .catalog import AssetCatalog
from .interfaces import ChainBalanceReader
from .models import BalanceTable, ChainConfig
from .normalizer import format_units, normalize

logger = logging.getLogger(__name__)


class BalanceAggregator:
    """Reads and normalizes balances across chains"""

    def __init__(self, catalog: AssetCatalog, reader: ChainBalanceReader, max_workers: int = 8):
        self.catalog = catalog
        self.reader = reader
        self.max_workers = max(1, max_workers)

    def aggregate_balances(
        self,
        wallet: str,
        assets: Iterable[str],
        chains: Mapping[str, ChainConfig],
    ) -> BalanceTable:
        """Wallet holdings for every configured (asset, chain) pair"""
        owners = {chain_id: wallet for chain_id in chains}
        return self._aggregate(owners, list(assets), chains, label="balance")

    def aggregate_deposits(
        self,
        protocol_addresses: Mapping[str, str],
        assets: Iterable[str],
        chains: Mapping[str, ChainConfig],
    ) -> BalanceTable:
        """Protocol-held liquidity, read at the protocol address of each chain"""
        owners = {}
        for chain_id in chains:
            address = protocol_addresses.get(chain_id)
            if not address:
                logger.info(f"No protocol address for chain {chain_id}, skipping deposits")
                continue
            owners[chain_id] = address
        return self._aggregate(owners, list(assets), chains, label="deposit")

    def refresh_entry(self, table: BalanceTable, owner: str, asset: str, chain_id: str) -> Optional[int]:
        """
        Re-read one entry in place.

        On failure the entry is dropped rather than left stale, and None is
        returned.
        """
        chain = self.catalog.chains.get(chain_id)
        amount = self._read_entry(asset, chain, owner, label="refresh") if chain else None
        chains = table.setdefault(asset, {})
        if amount is None:
            chains.pop(chain_id, None)
        else:
            chains[chain_id] = amount
        return amount

    # ------------------------------------------------------------------

    def _aggregate(
        self,
        owners: Mapping[str, str],
        assets: List[str],
        chains: Mapping[str, ChainConfig],
        label: str,
    ) -> BalanceTable:
        table: BalanceTable = {asset: {} for asset in assets}
        units: List[Tuple[str, str, str]] = []
        for asset in assets:
            logger.info(f"Checking {label}s for {asset}...")
            for chain_id in chains:
                if chain_id not in owners:
                    continue
                if self.catalog.descriptor(asset, chain_id) is None:
                    logger.info(f"No {asset} information for chain {chain_id}")
                    continue
                units.append((asset, chain_id, owners[chain_id]))

        if not units:
            return table

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(units))) as pool:
            futures = [
                pool.submit(self._read_entry, asset, chains[chain_id], owner, label)
                for asset, chain_id, owner in units
            ]
            # collected in submission order so the table order is deterministic
            for (asset, chain_id, _), future in zip(units, futures):
                amount = future.result()
                if amount is not None:
                    table[asset][chain_id] = amount

        read = sum(len(entries) for entries in table.values())
        logger.info(f"Built {label} table: {read}/{len(units)} entries read")
        return table

    def _read_entry(self, asset: str, chain: ChainConfig, owner: str, label: str) -> Optional[int]:
        descriptor = self.catalog.descriptor(asset, chain.chain_id)
        if descriptor is None:
            return None
        try:
            raw = self.reader.read_balance(chain.rpc_url, descriptor.address, owner)
            amount = normalize(raw, descriptor.decimals)
        except Exception as e:
            metrics.balance_read_failures_total.labels(chain=chain.chain_id).inc()
            logger.error(f"Error fetching {asset} {label} on chain {chain.chain_id}: {e}")
            return None
        logger.info(f"{label.capitalize()} on chain {chain.chain_id}: {format_units(amount)} {asset}")
        return amount


def has_enough_balance(table: BalanceTable, asset: str, chain_id: str, required: int) -> bool:
    """True when the normalized entry exists and covers the normalized requirement"""
    balance = table.get(asset, {}).get(chain_id)
    if balance is None:
        return False
    return balance >= required


def total_available(table: BalanceTable, asset: str) -> int:
    return sum(table.get(asset, {}).values())


def table_to_strings(table: BalanceTable) -> Dict[str, Dict[str, str]]:
    """Wire form of a table: integers encoded as strings"""
    return {asset: {chain_id: str(amount) for chain_id, amount in chains.items()} for asset, chains in table.items()}
