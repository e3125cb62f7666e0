"""
Intent submitter for the hub HTTP API.

POST <api_url>/intents builds the fill intent; the response is returned as
the receipt.
"""
import logging
from typing import Any, Dict, Optional, Sequence

import requests

from ..exceptions import SubmissionError

logger = logging.getLogger(__name__)


class HttpIntentSubmitter:
    def __init__(self, timeout_sec: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

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
        payload = {
            "origin": origin_chain,
            "destinations": list(destination_chains),
            "to": beneficiary,
            "inputAsset": asset_address,
            "amount": str(amount),
            "callData": "0x",
            "maxFee": str(max_fee),
        }
        url = f"{api_url.rstrip('/')}/intents"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout_sec)
            response.raise_for_status()
            receipt = response.json()
        except requests.RequestException as e:
            raise SubmissionError(f"Intent submission to {url} failed: {e}") from e
        except ValueError as e:
            raise SubmissionError(f"Intent API returned invalid JSON: {e}") from e

        if not isinstance(receipt, dict):
            raise SubmissionError(f"Unexpected intent receipt: {receipt!r}")
        return receipt
