"""
Invoice Ordering & Asset Resolution
===================================

Oldest-first ordering of pending invoices, ticker-hash -> asset resolution,
and the payload parsing/staleness rules applied at the feed boundary.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from .catalog import AssetCatalog
from .models import Invoice

logger = logging.getLogger(__name__)

TIMESTAMP_UNITS = {"s": 1, "ms": 1000}


# ============================================================================
# ORDERING
# ============================================================================

def parse_timestamp(value: str) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def order_invoices(invoices: Sequence[Invoice]) -> List[Invoice]:
    """
    Sort invoices by enqueue timestamp, oldest first.

    The sort is stable. An invoice whose timestamp is not an integer compares
    equal to everything and keeps its index; the numeric invoices are sorted
    into the remaining slots.
    """
    ordered = list(invoices)
    numeric_slots = []
    numeric = []
    for index, invoice in enumerate(ordered):
        ts = parse_timestamp(invoice.enqueued_timestamp)
        if ts is None:
            logger.warning(
                f"Invoice {invoice.intent_id} has non-numeric timestamp "
                f"{invoice.enqueued_timestamp!r}, keeping its position"
            )
            continue
        numeric_slots.append(index)
        numeric.append((ts, invoice))

    numeric.sort(key=lambda pair: pair[0])
    for slot, (_, invoice) in zip(numeric_slots, numeric):
        ordered[slot] = invoice
    return ordered


def resolve_asset(catalog: AssetCatalog, ticker_hash: str) -> Optional[str]:
    """Case-insensitive exact match against the configured ticker hashes"""
    return catalog.asset_for_ticker_hash(ticker_hash)


# ============================================================================
# FEED BOUNDARY
# ============================================================================

class InvoicePayload(BaseModel):
    """One invoice as served by the hub API"""
    intent_id: str = Field(..., min_length=1)
    origin: str
    destinations: List[str] = Field(default_factory=list)
    amount: str
    ticker_hash: str
    hub_invoice_enqueued_timestamp: str

    @field_validator("origin", "amount", "hub_invoice_enqueued_timestamp", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("destinations", mode="before")
    @classmethod
    def _coerce_destinations(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(v) if isinstance(v, int) else v for v in value]
        return value

    @field_validator("amount")
    @classmethod
    def _amount_is_integer(cls, value: str) -> str:
        if not value.isdigit():
            raise ValueError(f"amount must be a non-negative integer string, got {value!r}")
        return value


class InvoiceBatch(BaseModel):
    invoices: List[InvoicePayload] = Field(default_factory=list)


def parse_invoice(payload: InvoicePayload) -> Invoice:
    return Invoice(
        intent_id=payload.intent_id,
        origin=payload.origin,
        destinations=tuple(payload.destinations),
        amount=payload.amount,
        ticker_hash=payload.ticker_hash,
        enqueued_timestamp=payload.hub_invoice_enqueued_timestamp,
    )


def enqueued_at_seconds(invoice: Invoice, unit: str = "s") -> Optional[float]:
    if unit not in TIMESTAMP_UNITS:
        raise ValueError(f"Unknown timestamp unit {unit!r}, expected one of {sorted(TIMESTAMP_UNITS)}")
    ts = parse_timestamp(invoice.enqueued_timestamp)
    if ts is None:
        return None
    return ts / TIMESTAMP_UNITS[unit]


def is_stale(
    invoice: Invoice,
    threshold_sec: float,
    unit: str = "s",
    now: Optional[float] = None,
) -> bool:
    """True when the invoice has waited longer than threshold_sec"""
    enqueued = enqueued_at_seconds(invoice, unit)
    if enqueued is None:
        return False
    now = time.time() if now is None else now
    return (now - enqueued) > threshold_sec


def invoices_from_response(data: Dict[str, Any]) -> List[Invoice]:
    batch = InvoiceBatch.model_validate(data)
    return [parse_invoice(item) for item in batch.invoices]
