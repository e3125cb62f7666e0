"""
Collaborator contracts the engine depends on.

Production implementations live in invoice_filler.adapters; the in-memory
doubles in invoice_filler.adapters.memory satisfy the same protocols.
"""
from typing import Any, Dict, List, Protocol, Sequence

from .models import Invoice


class ChainBalanceReader(Protocol):
    def read_balance(self, rpc_url: str, token_address: str, owner_address: str) -> int:
        """Raw token balance of owner_address. Raises ReadError."""
        ...


class InvoiceFeed(Protocol):
    def fetch_pending(self, api_url: str) -> List[Invoice]:
        """Invoices older than the staleness threshold. Raises FeedError."""
        ...


class BridgeExecutor(Protocol):
    def rebalance(self, asset: str, source_chain: str, target_chain: str, amount: int) -> bool:
        """Move a normalized amount of asset between chains. Raises RebalanceError."""
        ...


class IntentSubmitter(Protocol):
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
        """Submit the settlement intent and return its receipt. Raises SubmissionError."""
        ...
