"""
Invoice feed served by the hub HTTP API.

GET <api_url> -> {"invoices": [...]}. Only invoices that have been waiting
longer than the staleness threshold are returned. The timestamp unit is
fixed by configuration and applied here, at the boundary.
"""
import logging
import time
from typing import Callable, List, Optional

import requests
from pydantic import ValidationError

from ..exceptions import FeedError
from ..invoices import invoices_from_response, is_stale, parse_timestamp
from ..models import Invoice

logger = logging.getLogger(__name__)


class HttpInvoiceFeed:
    def __init__(
        self,
        stale_after_sec: float = 6 * 3600,
        timestamp_unit: str = "s",
        timeout_sec: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.stale_after_sec = stale_after_sec
        self.timestamp_unit = timestamp_unit
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        self.clock = clock

    def fetch_pending(self, api_url: str) -> List[Invoice]:
        try:
            response = self.session.get(api_url, timeout=self.timeout_sec)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"Error fetching invoices from {api_url}: {e}")
            raise FeedError(f"Invoice feed request failed: {e}") from e
        except ValueError as e:
            logger.error(f"Invoice feed returned invalid JSON: {e}")
            raise FeedError(f"Invoice feed returned invalid JSON: {e}") from e

        try:
            invoices = invoices_from_response(data)
        except ValidationError as e:
            logger.error(f"Invoice feed payload rejected: {e}")
            raise FeedError(f"Invoice feed payload is malformed: {e}") from e

        now = self.clock()
        pending = []
        for invoice in invoices:
            if parse_timestamp(invoice.enqueued_timestamp) is None:
                logger.warning(
                    f"Dropping invoice {invoice.intent_id}: timestamp {invoice.enqueued_timestamp!r} is not numeric"
                )
                continue
            if is_stale(invoice, self.stale_after_sec, self.timestamp_unit, now=now):
                pending.append(invoice)

        logger.info(f"Fetched {len(invoices)} invoices, {len(pending)} older than {self.stale_after_sec:g}s")
        return pending
