"""invoice_filler package"""
from .balances import BalanceAggregator, has_enough_balance
from .catalog import AssetCatalog
from .exceptions import (
    ConfigurationError,
    FeedError,
    InvoiceFillerError,
    ReadError,
    RebalanceError,
    SubmissionError,
    UnknownAssetOnChain,
)
from .invoices import order_invoices, resolve_asset
from .models import (
    ChainAssetDescriptor,
    ChainConfig,
    CycleReport,
    FillOutcome,
    FillStatus,
    Invoice,
    LiquiditySnapshot,
)
from .normalizer import AmountNormalizer, denormalize, normalize
from .orchestrator import FulfillmentOrchestrator
from .selector import select_fill_destination
from .settings import Settings


__all__ = [
    "AmountNormalizer",
    "AssetCatalog",
    "BalanceAggregator",
    "ChainAssetDescriptor",
    "ChainConfig",
    "ConfigurationError",
    "CycleReport",
    "FeedError",
    "FillOutcome",
    "FillStatus",
    "FulfillmentOrchestrator",
    "Invoice",
    "InvoiceFillerError",
    "LiquiditySnapshot",
    "ReadError",
    "RebalanceError",
    "Settings",
    "SubmissionError",
    "UnknownAssetOnChain",
    "denormalize",
    "has_enough_balance",
    "normalize",
    "order_invoices",
    "resolve_asset",
    "select_fill_destination",
]
