"""
In-memory collaborators.

Used by the test suite and by dry runs: balances come from a dict, bridge
and fill calls are recorded instead of executed.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..exceptions import ReadError, SubmissionError
from ..models import Invoice

logger = logging.getLogger(__name__)


class InMemoryBalanceReader:
    """Raw balances keyed by (rpc_url, token_address, owner), case-insensitive addresses"""

    def __init__(self, failing_endpoints: Iterable[str] = ()):
        self._balances: Dict[Tuple[str, str, str], int] = {}
        self._lock = threading.Lock()
        self.failing_endpoints: Set[str] = set(failing_endpoints)
        self.calls: List[Tuple[str, str, str]] = []

    @staticmethod
    def _key(rpc_url: str, token_address: str, owner: str) -> Tuple[str, str, str]:
        return rpc_url, token_address.lower(), owner.lower()

    def set_balance(self, rpc_url: str, token_address: str, owner: str, raw_amount: int) -> None:
        with self._lock:
            self._balances[self._key(rpc_url, token_address, owner)] = int(raw_amount)

    def credit(self, rpc_url: str, token_address: str, owner: str, raw_amount: int) -> None:
        with self._lock:
            key = self._key(rpc_url, token_address, owner)
            self._balances[key] = self._balances.get(key, 0) + int(raw_amount)

    def read_balance(self, rpc_url: str, token_address: str, owner_address: str) -> int:
        with self._lock:
            self.calls.append((rpc_url, token_address, owner_address))
            if rpc_url in self.failing_endpoints:
                raise ReadError("simulated RPC failure", endpoint=rpc_url)
            return self._balances.get(self._key(rpc_url, token_address, owner_address), 0)


class StaticInvoiceFeed:
    def __init__(self, invoices: Sequence[Invoice] = (), error: Optional[Exception] = None):
        self.invoices = list(invoices)
        self.error = error
        self.calls: List[str] = []

    def fetch_pending(self, api_url: str) -> List[Invoice]:
        self.calls.append(api_url)
        if self.error is not None:
            raise self.error
        return list(self.invoices)


@dataclass(frozen=True)
class RebalanceCall:
    asset: str
    source_chain: str
    target_chain: str
    amount: int


class RecordingBridgeExecutor:
    """
    Records rebalance calls.

    `on_rebalance` runs for every successful call; tests use it to credit the
    target chain so the post-rebalance refresh sees the new funds.
    """

    def __init__(
        self,
        succeed: bool = True,
        error: Optional[Exception] = None,
        on_rebalance: Optional[Callable[[RebalanceCall], None]] = None,
    ):
        self.succeed = succeed
        self.error = error
        self.on_rebalance = on_rebalance
        self.calls: List[RebalanceCall] = []

    def rebalance(self, asset: str, source_chain: str, target_chain: str, amount: int) -> bool:
        call = RebalanceCall(asset, source_chain, target_chain, amount)
        self.calls.append(call)
        logger.info(f"Mocking bridge: {amount} {asset} from chain {source_chain} to chain {target_chain}")
        if self.error is not None:
            raise self.error
        if self.succeed and self.on_rebalance is not None:
            self.on_rebalance(call)
        return self.succeed


@dataclass(frozen=True)
class FillCall:
    api_url: str
    origin_chain: str
    destination_chains: Tuple[str, ...]
    beneficiary: str
    asset_address: str
    amount: int
    max_fee: int


class RecordingIntentSubmitter:
    def __init__(self, error: Optional[Exception] = None, failing_chains: Iterable[str] = ()):
        self.error = error
        self.failing_chains: Set[str] = set(failing_chains)
        self.calls: List[FillCall] = []

    def submit_fill(
        self,
        api_url: str,
        origin_chain: str,
        destination_chains: Sequence[str],
        beneficiary: str,
        asset_address: str,
        amount: int,
        max_fee: int,
    ) -> Dict[str, Any]:
        call = FillCall(api_url, origin_chain, tuple(destination_chains), beneficiary, asset_address, amount, max_fee)
        self.calls.append(call)
        logger.info(f"Mocking fill: {amount} of {asset_address} from chain {origin_chain}")
        if self.error is not None:
            raise self.error
        if origin_chain in self.failing_chains:
            raise SubmissionError(f"simulated submission failure on chain {origin_chain}")
        return {"status": "submitted", "origin": origin_chain, "sequence": len(self.calls)}
