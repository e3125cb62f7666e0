"""
Bridge executor that hands rebalances to a bridge aggregator HTTP service.

POST <bridge_api_url>/rebalance with the asset, chains and normalized
amount. The service answers {"success": bool, ...}; routing, signing and
settlement of the bridge transfer happen on its side.
"""
import logging
from typing import Optional

import requests

from ..exceptions import RebalanceError

logger = logging.getLogger(__name__)


class HttpBridgeExecutor:
    def __init__(
        self,
        bridge_api_url: str,
        sender: str,
        timeout_sec: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.bridge_api_url = bridge_api_url.rstrip("/")
        self.sender = sender
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    def rebalance(self, asset: str, source_chain: str, target_chain: str, amount: int) -> bool:
        payload = {
            "asset": asset,
            "source_chain": source_chain,
            "target_chain": target_chain,
            "amount": str(amount),
            "sender": self.sender,
        }
        logger.info(f"Requesting bridge: {amount} {asset} from chain {source_chain} to chain {target_chain}")
        try:
            response = self.session.post(f"{self.bridge_api_url}/rebalance", json=payload, timeout=self.timeout_sec)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise RebalanceError(f"Bridge request failed: {e}") from e
        except ValueError as e:
            raise RebalanceError(f"Bridge returned invalid JSON: {e}") from e

        success = bool(body.get("success", False)) if isinstance(body, dict) else False
        if not success:
            logger.warning(f"Bridge declined rebalance of {asset} {source_chain} -> {target_chain}: {body}")
        return success
