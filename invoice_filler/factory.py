"""
Builds a production orchestrator from Settings.

Collaborators are chosen here, once, and injected; nothing downstream
branches on the environment.
"""
import logging
from typing import Optional

from .adapters import (
    HttpBridgeExecutor,
    HttpIntentSubmitter,
    HttpInvoiceFeed,
    RecordingBridgeExecutor,
    RecordingIntentSubmitter,
    Web3BalanceReader,
)
from .catalog import AssetCatalog
from .exceptions import ConfigurationError
from .exporter import OutcomeExporter
from .orchestrator import FulfillmentOrchestrator
from .settings import Settings

logger = logging.getLogger(__name__)


def load_catalog(settings: Settings) -> AssetCatalog:
    catalog = AssetCatalog.from_file(settings.asset_config_path)
    missing = catalog.missing_rpc_urls()
    if missing:
        raise ConfigurationError(f"No RPC endpoint configured for chains: {', '.join(missing)}")
    return catalog


def build_orchestrator(settings: Settings, catalog: Optional[AssetCatalog] = None) -> FulfillmentOrchestrator:
    settings.validate()
    catalog = catalog or load_catalog(settings)

    if settings.dry_run:
        logger.info("DRY_RUN enabled: bridge and fill calls are recorded, not sent")
        bridge = RecordingBridgeExecutor()
        submitter = RecordingIntentSubmitter()
    else:
        bridge = HttpBridgeExecutor(settings.bridge_api_url, sender=settings.wallet_address,
                                    timeout_sec=settings.http_timeout_sec)
        submitter = HttpIntentSubmitter(timeout_sec=settings.http_timeout_sec)

    return FulfillmentOrchestrator(
        catalog=catalog,
        reader=Web3BalanceReader(timeout_sec=settings.http_timeout_sec),
        feed=HttpInvoiceFeed(
            stale_after_sec=settings.stale_after_sec,
            timestamp_unit=settings.timestamp_unit,
            timeout_sec=settings.http_timeout_sec,
        ),
        bridge=bridge,
        submitter=submitter,
        settings=settings,
        exporter=OutcomeExporter(),
    )
