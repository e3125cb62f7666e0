from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

# asset -> chain_id -> amount in 18-decimal fixed point
BalanceTable = Dict[str, Dict[str, int]]
DepositTable = BalanceTable


class FillStatus(Enum):
    FILLED = "filled"
    SKIPPED_NO_ASSET = "skipped_no_asset"
    SKIPPED_NO_DESTINATION = "skipped_no_destination"
    SKIPPED_INSUFFICIENT = "skipped_insufficient"
    FAILED = "failed"


@dataclass(frozen=True)
class ChainConfig:
    chain_id: str
    rpc_url: str


@dataclass(frozen=True)
class ChainAssetDescriptor:
    """Token contract and native precision of an asset on one chain"""
    asset: str
    chain_id: str
    address: str
    decimals: int


@dataclass(frozen=True)
class Invoice:
    intent_id: str
    origin: str
    destinations: Tuple[str, ...]
    amount: str  # integer string, in the feed's fixed-point unit
    ticker_hash: str
    enqueued_timestamp: str


@dataclass(frozen=True)
class FillOutcome:
    """Terminal state of one invoice for one cycle"""
    intent_id: str
    status: FillStatus
    asset: Optional[str] = None
    destination_chain: Optional[str] = None
    source_chain: Optional[str] = None  # rebalance source, None for direct fills
    rebalanced: bool = False
    reason: str = ""
    error: Optional[str] = None

    @property
    def is_filled(self) -> bool:
        return self.status is FillStatus.FILLED


@dataclass
class LiquiditySnapshot:
    """
    Balance and deposit tables owned by a single processing cycle.

    The orchestrator mutates the snapshot as fills and rebalances happen so
    later invoices in the same cycle see what earlier ones consumed.
    """
    wallet: str
    balances: BalanceTable
    deposits: DepositTable
    # (asset, chain_id) -> amount submitted in fills this cycle, not yet settled on chain
    committed: Dict[Tuple[str, str], int] = field(default_factory=dict)

    def debit_balance(self, asset: str, chain_id: str, amount: int) -> None:
        _debit(self.balances, asset, chain_id, amount)

    def commit_fill(self, asset: str, chain_id: str, amount: int) -> None:
        """Debit the wallet balance and remember the amount as committed"""
        self.debit_balance(asset, chain_id, amount)
        key = (asset, chain_id)
        self.committed[key] = self.committed.get(key, 0) + amount

    def reapply_commitments(self, asset: str, chain_id: str) -> None:
        """
        Subtract this cycle's committed fills from a freshly re-read balance.

        An on-chain read does not reflect fills that were submitted but have
        not settled yet.
        """
        _debit(self.balances, asset, chain_id, self.committed.get((asset, chain_id), 0))

    def debit_deposit(self, asset: str, chain_id: str, amount: int) -> None:
        _debit(self.deposits, asset, chain_id, amount)


def _debit(table: BalanceTable, asset: str, chain_id: str, amount: int) -> None:
    chains = table.get(asset)
    if chains is None or chain_id not in chains:
        return
    chains[chain_id] = max(chains[chain_id] - amount, 0)


@dataclass
class CycleReport:
    cycle_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: List[FillOutcome] = field(default_factory=list)
    balances: BalanceTable = field(default_factory=dict)
    deposits: DepositTable = field(default_factory=dict)

    @property
    def duration_sec(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in FillStatus}
        for outcome in self.outcomes:
            counts[outcome.status.value] += 1
        return counts

    def outcome_set(self) -> set:
        return {(o.intent_id, o.status, o.destination_chain, o.source_chain) for o in self.outcomes}
