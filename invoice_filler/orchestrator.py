"""
invoice_filler.orchestrator
Fulfillment Orchestrator: drives one processing cycle and the per-invoice
decision sequence.

Per invoice:
  1. Resolve the asset from the ticker hash      -> SKIPPED_NO_ASSET
  2. Fill directly from the first destination with enough wallet balance
                                                   -> FILLED
  3. Otherwise pick a deposit source chain other than the invoice origin,
     rebalance to the origin once, refresh the origin balance (less what
     this cycle already committed there) and retry the fill
                                                   -> FILLED / SKIPPED_INSUFFICIENT
  4. No source chain, or asset absent on the origin -> SKIPPED_NO_DESTINATION
  5. A collaborator raising at any step            -> FAILED

Invoices are processed one at a time in enqueue order; the cycle's
snapshot is updated after every fill and rebalance.
"""
from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from . import metrics
from .balances import BalanceAggregator, has_enough_balance, total_available
from .catalog import AssetCatalog
from .exceptions import FeedError
from .exporter import OutcomeExporter
from .interfaces import BridgeExecutor, ChainBalanceReader, IntentSubmitter, InvoiceFeed
from .invoices import order_invoices, resolve_asset
from .models import CycleReport, FillOutcome, FillStatus, Invoice, LiquiditySnapshot
from .normalizer import denormalize, format_units, normalize
from .selector import select_fill_destination
from .settings import Settings

logger = logging.getLogger(__name__)


class FulfillmentOrchestrator:
    """
    Wires the aggregator, selector and collaborators together.

    Collaborators are injected; tests and dry runs pass the in-memory
    doubles from invoice_filler.adapters.memory.
    """

    def __init__(
        self,
        catalog: AssetCatalog,
        reader: ChainBalanceReader,
        feed: InvoiceFeed,
        bridge: BridgeExecutor,
        submitter: IntentSubmitter,
        settings: Settings,
        exporter: Optional[OutcomeExporter] = None,
    ) -> None:
        self.catalog = catalog
        self.feed = feed
        self.bridge = bridge
        self.submitter = submitter
        self.settings = settings
        self.exporter = exporter
        self.aggregator = BalanceAggregator(catalog, reader, max_workers=settings.max_workers)
        self.expensive_chain = settings.resolve_expensive_chain(catalog.expensive_chain)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def build_snapshot(self) -> LiquiditySnapshot:
        assets = self.catalog.assets
        chains = self.catalog.chains
        balances = self.aggregator.aggregate_balances(self.settings.wallet_address, assets, chains)
        deposits = self.aggregator.aggregate_deposits(self.catalog.protocol_addresses, assets, chains)
        return LiquiditySnapshot(wallet=self.settings.wallet_address, balances=balances, deposits=deposits)

    def run_cycle(self) -> CycleReport:
        """
        Fetch fresh tables and pending invoices, then process every invoice.

        Raises:
            FeedError when the invoice feed fails; no invoice is processed.
        """
        start = time.time()
        report = CycleReport(cycle_id=str(uuid.uuid4()), started_at=datetime.now(timezone.utc))
        metrics.cycles_total.inc()
        logger.info(f"=== Cycle {report.cycle_id} ({self.catalog.network}) ===")

        snapshot = self.build_snapshot()

        try:
            invoices = self.feed.fetch_pending(self.settings.api_url)
        except FeedError:
            metrics.cycle_failures_total.inc()
            logger.error(f"Cycle {report.cycle_id} aborted: invoice feed failed")
            raise
        except Exception as e:
            metrics.cycle_failures_total.inc()
            logger.error(f"Cycle {report.cycle_id} aborted: invoice feed failed: {e}")
            raise FeedError(str(e)) from e

        logger.info(f"Invoices older than {self.settings.stale_after_hours:g} hours: {len(invoices)}")

        report.outcomes = self.process_invoices(order_invoices(invoices), snapshot)
        report.balances = snapshot.balances
        report.deposits = snapshot.deposits
        report.finished_at = datetime.now(timezone.utc)

        elapsed = time.time() - start
        metrics.cycle_duration_seconds.observe(elapsed)

        summary = report.summary()
        logger.info(f"{'='*60}")
        logger.info(f"CYCLE COMPLETE in {elapsed:.2f}s")
        for status, count in summary.items():
            logger.info(f"  {status}: {count}")
        logger.info(f"{'='*60}")

        if self.exporter is not None and self.settings.export_csv is not None:
            self.exporter.export_outcomes(report.outcomes, self.settings.export_csv)

        return report

    def process_invoices(self, invoices: Sequence[Invoice], snapshot: LiquiditySnapshot) -> List[FillOutcome]:
        outcomes = []
        for invoice in invoices:
            outcome = self.process_invoice(invoice, snapshot)
            metrics.invoice_outcomes_total.labels(status=outcome.status.value).inc()
            outcomes.append(outcome)
        return outcomes

    # ------------------------------------------------------------------
    # Per-invoice state machine
    # ------------------------------------------------------------------

    def process_invoice(self, invoice: Invoice, snapshot: LiquiditySnapshot) -> FillOutcome:
        logger.info(f"Processing invoice: {invoice.intent_id}")

        asset = resolve_asset(self.catalog, invoice.ticker_hash)
        if asset is None:
            logger.warning(f"Unknown asset for ticker hash: {invoice.ticker_hash} (invoice {invoice.intent_id})")
            return FillOutcome(
                intent_id=invoice.intent_id,
                status=FillStatus.SKIPPED_NO_ASSET,
                reason=f"unknown ticker hash {invoice.ticker_hash}",
            )

        try:
            required = normalize(int(invoice.amount), self.settings.invoice_amount_decimals)
        except ValueError as e:
            logger.error(f"Invoice {invoice.intent_id} has an invalid amount {invoice.amount!r}: {e}")
            return FillOutcome(
                intent_id=invoice.intent_id,
                status=FillStatus.FAILED,
                asset=asset,
                reason="invalid amount",
                error=str(e),
            )

        # Direct fill
        for chain_id in invoice.destinations:
            if has_enough_balance(snapshot.balances, asset, chain_id, required):
                return self._fill(invoice, asset, chain_id, required, snapshot)

        logger.info(
            f"Insufficient balance for {invoice.intent_id}: need {format_units(required)} {asset}, "
            f"wallet holds {format_units(total_available(snapshot.balances, asset))} across chains. "
            f"Attempting to rebalance..."
        )

        if self.catalog.descriptor(asset, invoice.origin) is None:
            logger.warning(
                f"{asset} is not configured on origin chain {invoice.origin}; "
                f"cannot rebalance for {invoice.intent_id}. Skipping invoice."
            )
            return FillOutcome(
                intent_id=invoice.intent_id,
                status=FillStatus.SKIPPED_NO_DESTINATION,
                asset=asset,
                reason=f"{asset} not configured on origin chain {invoice.origin}",
            )

        source_chain = select_fill_destination(
            snapshot.deposits, asset, required, self.expensive_chain, exclude=(invoice.origin,)
        )
        if source_chain is None:
            logger.warning(f"No chain can source {invoice.intent_id}. Skipping invoice.")
            return FillOutcome(
                intent_id=invoice.intent_id,
                status=FillStatus.SKIPPED_NO_DESTINATION,
                asset=asset,
                reason="no chain holds enough deposits",
            )

        return self._rebalance_and_fill(invoice, asset, source_chain, required, snapshot)

    def _rebalance_and_fill(
        self,
        invoice: Invoice,
        asset: str,
        source_chain: str,
        required: int,
        snapshot: LiquiditySnapshot,
    ) -> FillOutcome:
        target_chain = invoice.origin
        logger.info(
            f"Rebalancing {format_units(required)} {asset} from chain {source_chain} "
            f"to chain {target_chain} for {invoice.intent_id}"
        )
        try:
            succeeded = self.bridge.rebalance(asset, source_chain, target_chain, required)
        except Exception as e:
            metrics.rebalances_total.labels(result="error").inc()
            logger.error(
                f"Rebalance failed for invoice {invoice.intent_id} "
                f"({asset} {source_chain} -> {target_chain}): {e}"
            )
            return FillOutcome(
                intent_id=invoice.intent_id,
                status=FillStatus.FAILED,
                asset=asset,
                source_chain=source_chain,
                rebalanced=True,
                reason="rebalance error",
                error=str(e),
            )

        if not succeeded:
            metrics.rebalances_total.labels(result="declined").inc()
            logger.warning(f"Rebalance declined for {invoice.intent_id}. Skipping invoice.")
            return FillOutcome(
                intent_id=invoice.intent_id,
                status=FillStatus.SKIPPED_INSUFFICIENT,
                asset=asset,
                source_chain=source_chain,
                rebalanced=True,
                reason="rebalance declined",
            )

        metrics.rebalances_total.labels(result="success").inc()
        snapshot.debit_deposit(asset, source_chain, required)
        self.aggregator.refresh_entry(snapshot.balances, snapshot.wallet, asset, target_chain)
        snapshot.reapply_commitments(asset, target_chain)

        if not has_enough_balance(snapshot.balances, asset, target_chain, required):
            logger.warning(f"Still insufficient balance after rebalancing {invoice.intent_id}. Skipping invoice.")
            return FillOutcome(
                intent_id=invoice.intent_id,
                status=FillStatus.SKIPPED_INSUFFICIENT,
                asset=asset,
                source_chain=source_chain,
                rebalanced=True,
                reason="insufficient balance after rebalance",
            )

        return self._fill(invoice, asset, target_chain, required, snapshot, source_chain=source_chain)

    def _fill(
        self,
        invoice: Invoice,
        asset: str,
        chain_id: str,
        required: int,
        snapshot: LiquiditySnapshot,
        source_chain: Optional[str] = None,
    ) -> FillOutcome:
        rebalanced = source_chain is not None
        try:
            descriptor = self.catalog.require_descriptor(asset, chain_id)
            amount = denormalize(required, descriptor.decimals)
            logger.info(f"Filling invoice {invoice.intent_id} from chain {chain_id}: {format_units(required)} {asset}")
            receipt = self.submitter.submit_fill(
                self.settings.fill_api_url,
                chain_id,
                list(invoice.destinations),
                self.settings.wallet_address,
                descriptor.address,
                amount,
                self.settings.max_fee,
            )
        except Exception as e:
            logger.error(f"Fill failed for invoice {invoice.intent_id} ({asset} on chain {chain_id}): {e}")
            return FillOutcome(
                intent_id=invoice.intent_id,
                status=FillStatus.FAILED,
                asset=asset,
                destination_chain=chain_id,
                source_chain=source_chain,
                rebalanced=rebalanced,
                reason="fill submission error",
                error=str(e),
            )

        snapshot.commit_fill(asset, chain_id, required)
        logger.info(f"✓ Filled {invoice.intent_id} on chain {chain_id}: {receipt}")
        return FillOutcome(
            intent_id=invoice.intent_id,
            status=FillStatus.FILLED,
            asset=asset,
            destination_chain=chain_id,
            source_chain=source_chain,
            rebalanced=rebalanced,
            reason="filled after rebalance" if rebalanced else "direct fill",
        )
