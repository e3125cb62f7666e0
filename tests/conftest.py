"""
Shared fixtures: a three-chain catalog, in-memory collaborators and an
orchestrator wired to them.
"""
import pytest

from invoice_filler.adapters import (
    InMemoryBalanceReader,
    RecordingBridgeExecutor,
    RecordingIntentSubmitter,
    StaticInvoiceFeed,
)
from invoice_filler.catalog import AssetCatalog, default_ticker_hash
from invoice_filler.models import Invoice
from invoice_filler.orchestrator import FulfillmentOrchestrator
from invoice_filler.settings import Settings

WALLET = "0x1111111111111111111111111111111111111111"
PROTOCOL = {
    "1": "0x00000000000000000000000000000000000000a1",
    "10": "0x00000000000000000000000000000000000000a2",
    "42161": "0x00000000000000000000000000000000000000a3",
}
RPC = {
    "1": "http://rpc-ethereum",
    "10": "http://rpc-optimism",
    "42161": "http://rpc-arbitrum",
}
USDC = {
    "1": "0x00000000000000000000000000000000000000c1",
    "10": "0x00000000000000000000000000000000000000c2",
    "42161": "0x00000000000000000000000000000000000000c3",
}
WETH = {
    "1": "0x00000000000000000000000000000000000000e1",
    "10": "0x00000000000000000000000000000000000000e2",
}

ONE = 10 ** 18  # one whole token, normalized


def catalog_data():
    return {
        "network": "mainnet",
        "expensive_chain": "1",
        "chains": {
            "1": {"rpc_env": "RPC_ETHEREUM"},
            "10": {"rpc_env": "RPC_OPTIMISM"},
            "42161": {"rpc_url": RPC["42161"]},
        },
        "protocol_addresses": dict(PROTOCOL),
        "assets": {
            "USDC": {"chains": {chain_id: {"address": address, "decimals": 6} for chain_id, address in USDC.items()}},
            "WETH": {"chains": {chain_id: {"address": address, "decimals": 18} for chain_id, address in WETH.items()}},
        },
    }


def make_invoice(intent_id, origin="10", destinations=("10",), amount=ONE, asset="USDC", ts="1000"):
    return Invoice(
        intent_id=intent_id,
        origin=origin,
        destinations=tuple(destinations),
        amount=str(amount),
        ticker_hash=default_ticker_hash(asset),
        enqueued_timestamp=ts,
    )


@pytest.fixture
def catalog():
    return AssetCatalog.from_dict(catalog_data(), env={"RPC_ETHEREUM": RPC["1"], "RPC_OPTIMISM": RPC["10"]})


@pytest.fixture
def reader():
    return InMemoryBalanceReader()


@pytest.fixture
def settings():
    return Settings(
        api_url="http://hub.test/invoices",
        wallet_address=WALLET,
        bridge_api_url="http://bridge.test",
        dry_run=True,
        max_workers=4,
    )


@pytest.fixture
def feed():
    return StaticInvoiceFeed()


@pytest.fixture
def bridge():
    return RecordingBridgeExecutor()


@pytest.fixture
def submitter():
    return RecordingIntentSubmitter()


@pytest.fixture
def orchestrator(catalog, reader, feed, bridge, submitter, settings):
    return FulfillmentOrchestrator(
        catalog=catalog,
        reader=reader,
        feed=feed,
        bridge=bridge,
        submitter=submitter,
        settings=settings,
    )


def fund_wallet(reader, asset_addresses, chain_id, raw_amount):
    reader.set_balance(RPC[chain_id], asset_addresses[chain_id], WALLET, raw_amount)


def fund_protocol(reader, asset_addresses, chain_id, raw_amount):
    reader.set_balance(RPC[chain_id], asset_addresses[chain_id], PROTOCOL[chain_id], raw_amount)
