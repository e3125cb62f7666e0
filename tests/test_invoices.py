"""
Unit tests for invoice ordering, asset resolution and feed payload parsing
"""
import pytest
from pydantic import ValidationError

from invoice_filler.catalog import default_ticker_hash
from invoice_filler.invoices import (
    enqueued_at_seconds,
    invoices_from_response,
    is_stale,
    order_invoices,
    resolve_asset,
)

from conftest import make_invoice

SIX_HOURS = 6 * 3600


def _ids(invoices):
    return [invoice.intent_id for invoice in invoices]


class TestOrderInvoices:
    def test_oldest_first(self):
        invoices = [make_invoice("a", ts="300"), make_invoice("b", ts="100"), make_invoice("c", ts="200")]
        assert _ids(order_invoices(invoices)) == ["b", "c", "a"]

    def test_equal_timestamps_keep_input_order(self):
        invoices = [make_invoice("a", ts="5"), make_invoice("b", ts="5"), make_invoice("c", ts="1")]
        assert _ids(order_invoices(invoices)) == ["c", "a", "b"]

    def test_non_numeric_timestamp_keeps_position(self):
        invoices = [make_invoice("a", ts="300"), make_invoice("b", ts="soon"), make_invoice("c", ts="100")]
        assert _ids(order_invoices(invoices)) == ["c", "b", "a"]

    def test_compares_numerically(self):
        invoices = [make_invoice("a", ts="1000"), make_invoice("b", ts="999")]
        assert _ids(order_invoices(invoices)) == ["b", "a"]

    def test_empty(self):
        assert order_invoices([]) == []

    def test_input_is_not_mutated(self):
        invoices = [make_invoice("a", ts="2"), make_invoice("b", ts="1")]
        order_invoices(invoices)
        assert _ids(invoices) == ["a", "b"]


class TestResolveAsset:
    def test_known_hash(self, catalog):
        assert resolve_asset(catalog, default_ticker_hash("USDC")) == "USDC"

    def test_case_insensitive(self, catalog):
        ticker_hash = default_ticker_hash("WETH")
        assert resolve_asset(catalog, "0x" + ticker_hash[2:].upper()) == "WETH"

    def test_unknown_hash(self, catalog):
        assert resolve_asset(catalog, default_ticker_hash("DAI")) is None
        assert resolve_asset(catalog, "") is None


class TestStaleness:
    def test_older_than_threshold(self):
        invoice = make_invoice("a", ts="10000")
        assert is_stale(invoice, SIX_HOURS, now=10000 + SIX_HOURS + 1)

    def test_exactly_at_threshold_is_not_stale(self):
        invoice = make_invoice("a", ts="10000")
        assert not is_stale(invoice, SIX_HOURS, now=10000 + SIX_HOURS)

    def test_milliseconds(self):
        invoice = make_invoice("a", ts="10000000")
        assert enqueued_at_seconds(invoice, "ms") == 10000
        assert is_stale(invoice, SIX_HOURS, unit="ms", now=10000 + SIX_HOURS + 1)
        assert not is_stale(invoice, SIX_HOURS, unit="s", now=10000 + SIX_HOURS + 1)

    def test_non_numeric_is_never_stale(self):
        assert not is_stale(make_invoice("a", ts="n/a"), 0, now=10 ** 12)

    def test_unknown_unit(self):
        with pytest.raises(ValueError):
            enqueued_at_seconds(make_invoice("a"), "ns")


class TestInvoicesFromResponse:
    def test_parses_payload(self):
        data = {"invoices": [{
            "intent_id": "0xintent",
            "origin": 10,
            "destinations": [1, "42161"],
            "amount": 5000000000000000000,
            "ticker_hash": "0xabc",
            "hub_invoice_enqueued_timestamp": 1700000000,
        }]}
        [invoice] = invoices_from_response(data)
        assert invoice.intent_id == "0xintent"
        assert invoice.origin == "10"
        assert invoice.destinations == ("1", "42161")
        assert invoice.amount == "5000000000000000000"
        assert invoice.enqueued_timestamp == "1700000000"

    def test_empty_batch(self):
        assert invoices_from_response({"invoices": []}) == []
        assert invoices_from_response({}) == []

    @pytest.mark.parametrize("amount", ["12.5", "-1", "abc"])
    def test_rejects_non_integer_amount(self, amount):
        data = {"invoices": [{
            "intent_id": "x",
            "origin": "10",
            "destinations": ["10"],
            "amount": amount,
            "ticker_hash": "0xabc",
            "hub_invoice_enqueued_timestamp": "1",
        }]}
        with pytest.raises(ValidationError):
            invoices_from_response(data)
