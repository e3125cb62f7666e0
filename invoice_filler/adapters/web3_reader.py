"""
ERC-20 balance reader backed by web3.py.
"""
import logging
import threading
from typing import Dict

from web3 import Web3

from ..exceptions import ReadError

logger = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
]


class Web3BalanceReader:
    """Reads balanceOf(owner) over JSON-RPC, one Web3 client per endpoint"""

    def __init__(self, timeout_sec: float = 10.0):
        self.timeout_sec = timeout_sec
        self._clients: Dict[str, Web3] = {}
        self._lock = threading.Lock()

    def _client(self, rpc_url: str) -> Web3:
        with self._lock:
            client = self._clients.get(rpc_url)
            if client is None:
                client = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": self.timeout_sec}))
                self._clients[rpc_url] = client
            return client

    def read_balance(self, rpc_url: str, token_address: str, owner_address: str) -> int:
        if not rpc_url:
            raise ReadError(f"no RPC endpoint configured for token {token_address}")
        try:
            w3 = self._client(rpc_url)
            token = w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)
            return int(token.functions.balanceOf(Web3.to_checksum_address(owner_address)).call())
        except Exception as e:
            raise ReadError(f"balanceOf({owner_address}) on {token_address} failed: {e}", endpoint=rpc_url) from e
