"""
Pytest tests for the Fulfillment Orchestrator
=============================================

Drives full cycles against the in-memory collaborators: direct fills,
fills after a rebalance, every skip path and collaborator failures.
"""
from dataclasses import replace

import pandas as pd
import pytest
from prometheus_client import REGISTRY

from invoice_filler.adapters.memory import RebalanceCall
from invoice_filler.exceptions import FeedError, RebalanceError
from invoice_filler.exporter import OUTCOME_COLUMNS, OutcomeExporter
from invoice_filler.models import FillStatus, Invoice, LiquiditySnapshot
from invoice_filler.orchestrator import FulfillmentOrchestrator

from conftest import ONE, USDC, WALLET, WETH, fund_protocol, fund_wallet, make_invoice


def _outcomes(report):
    return {outcome.intent_id: outcome for outcome in report.outcomes}


class TestDirectFill:
    """Wallet already holds enough on one of the invoice destinations"""

    def test_fills_from_first_funded_destination(self, orchestrator, reader, feed, bridge, submitter, settings):
        fund_wallet(reader, USDC, "10", 100_000_000)
        feed.invoices = [make_invoice("i1", origin="1", destinations=("1", "10"), amount=50 * ONE)]

        report = orchestrator.run_cycle()

        outcome = report.outcomes[0]
        assert outcome.status is FillStatus.FILLED
        assert outcome.destination_chain == "10"
        assert outcome.source_chain is None
        assert outcome.rebalanced is False
        assert outcome.reason == "direct fill"
        assert bridge.calls == []

        [call] = submitter.calls
        assert call.api_url == settings.api_url
        assert call.origin_chain == "10"
        assert call.destination_chains == ("1", "10")
        assert call.beneficiary == WALLET
        assert call.asset_address == USDC["10"]
        assert call.amount == 50_000_000  # native 6-decimal units
        assert call.max_fee == 0

    def test_fill_debits_snapshot(self, orchestrator, reader, feed):
        fund_wallet(reader, USDC, "10", 100_000_000)
        feed.invoices = [make_invoice("i1", destinations=("10",), amount=30 * ONE)]

        report = orchestrator.run_cycle()

        assert report.balances["USDC"]["10"] == 70 * ONE

    def test_earlier_invoice_consumes_balance(self, orchestrator, reader, feed, submitter):
        fund_wallet(reader, USDC, "10", 100_000_000)
        feed.invoices = [
            make_invoice("newer", destinations=("10",), amount=80 * ONE, ts="2000"),
            make_invoice("older", destinations=("10",), amount=80 * ONE, ts="1000"),
        ]

        report = orchestrator.run_cycle()

        assert [o.intent_id for o in report.outcomes] == ["older", "newer"]
        outcomes = _outcomes(report)
        assert outcomes["older"].status is FillStatus.FILLED
        assert outcomes["newer"].status is FillStatus.SKIPPED_NO_DESTINATION
        assert len(submitter.calls) == 1

    def test_unreadable_chain_is_treated_as_insufficient(self, orchestrator, reader, feed):
        reader.failing_endpoints.add("http://rpc-ethereum")
        fund_wallet(reader, USDC, "10", 100_000_000)
        feed.invoices = [make_invoice("i1", destinations=("1", "10"), amount=ONE)]

        report = orchestrator.run_cycle()

        assert "1" not in report.balances["USDC"]
        assert report.outcomes[0].destination_chain == "10"

    def test_invoice_amount_decimals(self, catalog, reader, feed, bridge, submitter, settings):
        orchestrator = FulfillmentOrchestrator(
            catalog, reader, feed, bridge, submitter, replace(settings, invoice_amount_decimals=6)
        )
        fund_wallet(reader, USDC, "10", 2_000_000)
        feed.invoices = [make_invoice("i1", destinations=("10",), amount=2_000_000)]

        report = orchestrator.run_cycle()

        assert report.outcomes[0].status is FillStatus.FILLED
        assert submitter.calls[0].amount == 2_000_000


class TestRebalance:
    """No destination is funded, protocol deposits source the fill"""

    def test_fills_after_single_rebalance(self, orchestrator, reader, feed, bridge, submitter):
        fund_protocol(reader, USDC, "42161", 500_000_000)
        fund_protocol(reader, USDC, "1", 1_000_000_000)
        bridge.on_rebalance = lambda call: fund_wallet(reader, USDC, call.target_chain, 100_000_000)
        feed.invoices = [make_invoice("i1", origin="10", destinations=("1",), amount=100 * ONE)]

        report = orchestrator.run_cycle()

        outcome = report.outcomes[0]
        assert outcome.status is FillStatus.FILLED
        assert outcome.destination_chain == "10"
        assert outcome.source_chain == "42161"
        assert outcome.rebalanced is True
        assert outcome.reason == "filled after rebalance"
        assert bridge.calls == [RebalanceCall("USDC", "42161", "10", 100 * ONE)]

        [call] = submitter.calls
        assert call.origin_chain == "10"
        assert call.destination_chains == ("1",)
        assert report.deposits["USDC"]["42161"] == 400 * ONE
        assert report.balances["USDC"]["10"] == 0

    def test_partially_funded_destination(self, orchestrator, reader, feed, bridge):
        fund_wallet(reader, USDC, "10", 50_000_000)
        fund_protocol(reader, USDC, "42161", 150_000_000)
        fund_protocol(reader, USDC, "10", 40_000_000)
        bridge.on_rebalance = lambda call: reader.credit(
            "http://rpc-optimism", USDC[call.target_chain], WALLET, call.amount // 10 ** 12
        )
        feed.invoices = [make_invoice("i1", origin="10", destinations=("10",), amount=100 * ONE)]

        report = orchestrator.run_cycle()

        assert report.outcomes[0].status is FillStatus.FILLED
        assert len(bridge.calls) == 1
        assert report.balances["USDC"]["10"] == 50 * ONE

    def test_refresh_keeps_earlier_fills_committed(self, orchestrator, reader, feed, bridge, submitter):
        fund_wallet(reader, USDC, "10", 100_000_000)
        fund_protocol(reader, USDC, "42161", 150_000_000)
        bridge.on_rebalance = lambda call: reader.credit(
            "http://rpc-optimism", USDC[call.target_chain], WALLET, 100_000_000
        )
        feed.invoices = [
            make_invoice("a", origin="10", destinations=("10",), amount=100 * ONE, ts="1"),
            make_invoice("b", origin="10", destinations=("10",), amount=100 * ONE, ts="2"),
            make_invoice("c", origin="10", destinations=("10",), amount=100 * ONE, ts="3"),
        ]

        report = orchestrator.run_cycle()

        outcomes = _outcomes(report)
        assert outcomes["a"].status is FillStatus.FILLED
        assert outcomes["a"].rebalanced is False
        assert outcomes["b"].status is FillStatus.FILLED
        assert outcomes["b"].source_chain == "42161"
        assert outcomes["c"].status is FillStatus.SKIPPED_NO_DESTINATION
        # the wallet only ever held 200 USDC on chain 10
        assert sum(call.amount for call in submitter.calls) == 200_000_000
        assert report.balances["USDC"]["10"] == 0

    def test_asset_missing_on_origin_skips_bridge(self, orchestrator, reader, feed, bridge):
        fund_protocol(reader, WETH, "10", 500 * ONE)
        feed.invoices = [make_invoice("i1", origin="42161", destinations=("42161",), amount=ONE, asset="WETH")]

        report = orchestrator.run_cycle()

        outcome = report.outcomes[0]
        assert outcome.status is FillStatus.SKIPPED_NO_DESTINATION
        assert "42161" in outcome.reason
        assert bridge.calls == []

    def test_origin_deposits_are_not_a_source(self, orchestrator, reader, feed, bridge):
        fund_protocol(reader, USDC, "10", 500_000_000)
        feed.invoices = [make_invoice("i1", origin="10", destinations=("10",), amount=100 * ONE)]

        report = orchestrator.run_cycle()

        assert report.outcomes[0].status is FillStatus.SKIPPED_NO_DESTINATION
        assert bridge.calls == []

    def test_remote_chain_chosen_over_origin(self, orchestrator, reader, feed, bridge):
        fund_protocol(reader, USDC, "10", 900_000_000)
        fund_protocol(reader, USDC, "42161", 200_000_000)
        feed.invoices = [make_invoice("i1", origin="10", destinations=("10",), amount=100 * ONE)]

        orchestrator.run_cycle()

        assert [(call.source_chain, call.target_chain) for call in bridge.calls] == [("42161", "10")]

    def test_insufficient_system_deposits(self, orchestrator, reader, feed, bridge):
        fund_protocol(reader, USDC, "42161", 25_000_000)
        fund_protocol(reader, USDC, "1", 15_000_000)
        feed.invoices = [make_invoice("i1", amount=100 * ONE)]

        report = orchestrator.run_cycle()

        assert report.outcomes[0].status is FillStatus.SKIPPED_NO_DESTINATION
        assert bridge.calls == []

    def test_expensive_chain_used_as_last_resort(self, orchestrator, reader, feed, bridge):
        fund_protocol(reader, USDC, "42161", 5_000_000)
        fund_protocol(reader, USDC, "1", 1_000_000_000)
        bridge.on_rebalance = lambda call: fund_wallet(reader, USDC, call.target_chain, 100_000_000)
        feed.invoices = [make_invoice("i1", origin="10", destinations=("10",), amount=100 * ONE)]

        report = orchestrator.run_cycle()

        assert orchestrator.expensive_chain == "1"
        assert report.outcomes[0].source_chain == "1"
        assert report.outcomes[0].status is FillStatus.FILLED

    def test_no_source_chain_skips_without_rebalancing(self, orchestrator, reader, feed, bridge, submitter):
        fund_protocol(reader, USDC, "42161", 1_000_000)
        feed.invoices = [make_invoice("i1", amount=100 * ONE)]

        report = orchestrator.run_cycle()

        outcome = report.outcomes[0]
        assert outcome.status is FillStatus.SKIPPED_NO_DESTINATION
        assert outcome.asset == "USDC"
        assert bridge.calls == []
        assert submitter.calls == []

    def test_declined_rebalance(self, orchestrator, reader, feed, bridge, submitter):
        fund_protocol(reader, USDC, "42161", 500_000_000)
        bridge.succeed = False
        feed.invoices = [make_invoice("i1", amount=100 * ONE)]

        report = orchestrator.run_cycle()

        outcome = report.outcomes[0]
        assert outcome.status is FillStatus.SKIPPED_INSUFFICIENT
        assert outcome.reason == "rebalance declined"
        assert report.deposits["USDC"]["42161"] == 500 * ONE
        assert submitter.calls == []

    def test_still_insufficient_after_rebalance(self, orchestrator, reader, feed, bridge, submitter):
        fund_protocol(reader, USDC, "42161", 500_000_000)
        feed.invoices = [make_invoice("i1", amount=100 * ONE)]

        report = orchestrator.run_cycle()

        outcome = report.outcomes[0]
        assert outcome.status is FillStatus.SKIPPED_INSUFFICIENT
        assert outcome.reason == "insufficient balance after rebalance"
        assert len(bridge.calls) == 1
        assert submitter.calls == []


class TestSkipsAndFailures:
    def test_unknown_ticker_hash(self, orchestrator, feed, submitter, bridge):
        feed.invoices = [make_invoice("i1", asset="DAI")]

        report = orchestrator.run_cycle()

        outcome = report.outcomes[0]
        assert outcome.status is FillStatus.SKIPPED_NO_ASSET
        assert outcome.asset is None
        assert submitter.calls == []
        assert bridge.calls == []

    def test_invalid_amount(self, orchestrator, feed):
        invoice = make_invoice("i1")
        feed.invoices = [Invoice(
            intent_id="bad",
            origin="10",
            destinations=("10",),
            amount="lots",
            ticker_hash=invoice.ticker_hash,
            enqueued_timestamp="1",
        )]

        report = orchestrator.run_cycle()

        assert report.outcomes[0].status is FillStatus.FAILED
        assert report.outcomes[0].reason == "invalid amount"

    def test_submission_failure_does_not_stop_cycle(self, orchestrator, reader, feed, submitter):
        fund_wallet(reader, USDC, "10", 100_000_000)
        fund_wallet(reader, USDC, "1", 100_000_000)
        submitter.failing_chains = {"10"}
        feed.invoices = [
            make_invoice("i1", destinations=("10",), amount=ONE, ts="1"),
            make_invoice("i2", destinations=("1",), amount=ONE, ts="2"),
        ]

        report = orchestrator.run_cycle()

        outcomes = _outcomes(report)
        assert outcomes["i1"].status is FillStatus.FAILED
        assert outcomes["i1"].reason == "fill submission error"
        assert "simulated" in outcomes["i1"].error
        assert outcomes["i2"].status is FillStatus.FILLED
        assert report.balances["USDC"]["10"] == 100 * ONE

    def test_bridge_exception(self, orchestrator, reader, feed, bridge):
        fund_protocol(reader, USDC, "42161", 500_000_000)
        bridge.error = RebalanceError("bridge unavailable")
        feed.invoices = [make_invoice("i1", amount=100 * ONE), make_invoice("i2", asset="DAI", ts="2000")]

        report = orchestrator.run_cycle()

        outcomes = _outcomes(report)
        assert outcomes["i1"].status is FillStatus.FAILED
        assert outcomes["i1"].rebalanced is True
        assert outcomes["i1"].error == "bridge unavailable"
        assert outcomes["i2"].status is FillStatus.SKIPPED_NO_ASSET

    def test_feed_error_aborts_cycle(self, orchestrator, feed, submitter):
        feed.error = FeedError("hub down")
        with pytest.raises(FeedError):
            orchestrator.run_cycle()
        assert submitter.calls == []

    def test_unexpected_feed_exception_is_wrapped(self, orchestrator, feed):
        feed.error = RuntimeError("socket closed")
        with pytest.raises(FeedError, match="socket closed"):
            orchestrator.run_cycle()


class TestCycle:
    def test_empty_feed(self, orchestrator):
        report = orchestrator.run_cycle()
        assert report.outcomes == []
        assert set(report.summary().values()) == {0}
        assert report.finished_at is not None

    def test_repeated_cycles_are_idempotent(self, orchestrator, reader, feed):
        fund_wallet(reader, USDC, "10", 100_000_000)
        feed.invoices = [
            make_invoice("i1", destinations=("10",), amount=50 * ONE),
            make_invoice("i2", asset="DAI"),
            make_invoice("i3", amount=500 * ONE),
        ]

        first = orchestrator.run_cycle()
        second = orchestrator.run_cycle()

        assert first.outcome_set() == second.outcome_set()
        assert first.cycle_id != second.cycle_id

    def test_summary_counts(self, orchestrator, reader, feed):
        fund_wallet(reader, USDC, "10", 100_000_000)
        feed.invoices = [make_invoice("i1", destinations=("10",)), make_invoice("i2", asset="DAI")]

        summary = orchestrator.run_cycle().summary()

        assert summary["filled"] == 1
        assert summary["skipped_no_asset"] == 1
        assert summary["failed"] == 0

    def test_outcome_metrics(self, orchestrator, reader, feed):
        before = REGISTRY.get_sample_value("filler_invoice_outcomes_total", {"status": "filled"}) or 0.0
        fund_wallet(reader, USDC, "10", 100_000_000)
        feed.invoices = [make_invoice("i1", destinations=("10",))]

        orchestrator.run_cycle()

        assert REGISTRY.get_sample_value("filler_invoice_outcomes_total", {"status": "filled"}) == before + 1

    def test_exports_outcomes(self, catalog, reader, feed, bridge, submitter, settings, tmp_path):
        path = tmp_path / "outputs" / "outcomes.csv"
        orchestrator = FulfillmentOrchestrator(
            catalog, reader, feed, bridge, submitter, replace(settings, export_csv=path), exporter=OutcomeExporter()
        )
        fund_wallet(reader, USDC, "10", 100_000_000)
        feed.invoices = [make_invoice("i1", destinations=("10",)), make_invoice("i2", asset="DAI")]

        orchestrator.run_cycle()

        df = pd.read_csv(path)
        assert list(df.columns) == OUTCOME_COLUMNS
        assert df["intent_id"].tolist() == ["i1", "i2"]
        assert df["status"].tolist() == ["filled", "skipped_no_asset"]


class TestOutcomeExporter:
    def test_empty_frame_has_columns(self):
        df = OutcomeExporter.to_frame([])
        assert list(df.columns) == OUTCOME_COLUMNS
        assert df.empty


class TestLiquiditySnapshot:
    def test_commitments_survive_refresh(self):
        snapshot = LiquiditySnapshot(wallet=WALLET, balances={"USDC": {"10": 100 * ONE}}, deposits={})

        snapshot.commit_fill("USDC", "10", 60 * ONE)
        assert snapshot.balances["USDC"]["10"] == 40 * ONE

        # an on-chain re-read still shows the unsettled fill plus a bridged 100
        snapshot.balances["USDC"]["10"] = 200 * ONE
        snapshot.reapply_commitments("USDC", "10")
        assert snapshot.balances["USDC"]["10"] == 140 * ONE

    def test_reapply_without_commitments_is_noop(self):
        snapshot = LiquiditySnapshot(wallet=WALLET, balances={"USDC": {"10": ONE}}, deposits={})
        snapshot.reapply_commitments("USDC", "10")
        snapshot.reapply_commitments("WETH", "1")
        assert snapshot.balances == {"USDC": {"10": ONE}}
