"""Collaborator implementations: production (web3, HTTP) and in-memory."""
from .http_bridge import HttpBridgeExecutor
from .http_feed import HttpInvoiceFeed
from .http_intents import HttpIntentSubmitter
from .memory import (
    InMemoryBalanceReader,
    RecordingBridgeExecutor,
    RecordingIntentSubmitter,
    StaticInvoiceFeed,
)
from .web3_reader import Web3BalanceReader

__all__ = [
    "HttpBridgeExecutor",
    "HttpIntentSubmitter",
    "HttpInvoiceFeed",
    "InMemoryBalanceReader",
    "RecordingBridgeExecutor",
    "RecordingIntentSubmitter",
    "StaticInvoiceFeed",
    "Web3BalanceReader",
]
