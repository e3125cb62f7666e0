"""
invoice_filler.catalog
Static asset/chain configuration, loaded once at startup.

Config file layout (config/<network>.json):

    {
      "network": "mainnet",
      "expensive_chain": "1",
      "chains": {"1": {"rpc_env": "RPC_ETHEREUM", "protocol_env": "PROTOCOL_ETHEREUM"}},
      "protocol_addresses": {"1": "0x..."},
      "assets": {
        "USDC": {
          "ticker_hash": "0x...",            # optional, keccak256(symbol)
          "chains": {"1": {"address": "0x...", "decimals": 6}}
        }
      }
    }
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError
from web3 import Web3

from .exceptions import ConfigurationError, UnknownAssetOnChain
from .models import ChainAssetDescriptor, ChainConfig

logger = logging.getLogger(__name__)


# ============================================================================
# FILE SCHEMA
# ============================================================================

class ChainAssetEntry(BaseModel):
    address: str = Field(..., min_length=1)
    decimals: int = Field(..., ge=0, le=255)


class AssetEntry(BaseModel):
    ticker_hash: Optional[str] = None
    chains: Dict[str, ChainAssetEntry] = Field(default_factory=dict)


class ChainEntry(BaseModel):
    rpc_url: Optional[str] = None
    rpc_env: Optional[str] = None
    protocol_env: Optional[str] = None  # env var holding the protocol contract address


class CatalogFile(BaseModel):
    network: str = "mainnet"
    expensive_chain: Optional[str] = None
    chains: Dict[str, ChainEntry] = Field(default_factory=dict)
    protocol_addresses: Dict[str, str] = Field(default_factory=dict)
    assets: Dict[str, AssetEntry]


def default_ticker_hash(symbol: str) -> str:
    """keccak256 of the ticker symbol, 0x-prefixed"""
    return Web3.to_hex(Web3.keccak(text=symbol))


# ============================================================================
# CATALOG
# ============================================================================

class AssetCatalog:
    """
    Read-only view of the configured assets, chains and protocol addresses.

    Built once and passed by reference into every component; nothing in the
    engine mutates it.
    """

    def __init__(
        self,
        descriptors: Iterable[ChainAssetDescriptor],
        ticker_hashes: Mapping[str, str],
        chains: Mapping[str, ChainConfig],
        protocol_addresses: Optional[Mapping[str, str]] = None,
        network: str = "mainnet",
        expensive_chain: Optional[str] = None,
    ) -> None:
        self.network = network
        self.expensive_chain = expensive_chain

        by_pair: Dict[Tuple[str, str], ChainAssetDescriptor] = {}
        for descriptor in descriptors:
            key = (descriptor.asset, descriptor.chain_id)
            if key in by_pair:
                raise ConfigurationError(f"Duplicate descriptor for {descriptor.asset} on chain {descriptor.chain_id}")
            by_pair[key] = descriptor

        by_hash: Dict[str, str] = {}
        for asset, ticker_hash in ticker_hashes.items():
            if not ticker_hash:
                raise ConfigurationError(f"Asset {asset} has no ticker hash")
            key = ticker_hash.lower()
            if key in by_hash:
                raise ConfigurationError(
                    f"Ticker hash {ticker_hash} is shared by {by_hash[key]} and {asset}"
                )
            by_hash[key] = asset

        for asset, chain_id in by_pair:
            if asset not in ticker_hashes:
                raise ConfigurationError(f"Descriptor for unknown asset {asset} on chain {chain_id}")

        self._descriptors = MappingProxyType(by_pair)
        self._ticker_hashes = MappingProxyType(dict(ticker_hashes))
        self._assets_by_hash = MappingProxyType(by_hash)
        self._chains = MappingProxyType(dict(chains))
        self._protocol_addresses = MappingProxyType(dict(protocol_addresses or {}))

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict, env: Optional[Mapping[str, str]] = None) -> "AssetCatalog":
        env = os.environ if env is None else env
        try:
            parsed = CatalogFile.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Malformed asset configuration: {e}") from e

        chains = {}
        protocol_addresses = dict(parsed.protocol_addresses)
        for chain_id, entry in parsed.chains.items():
            rpc_url = entry.rpc_url or (env.get(entry.rpc_env, "") if entry.rpc_env else "")
            chains[chain_id] = ChainConfig(chain_id=chain_id, rpc_url=rpc_url)
            if entry.protocol_env and env.get(entry.protocol_env):
                protocol_addresses[chain_id] = env[entry.protocol_env]

        descriptors: List[ChainAssetDescriptor] = []
        ticker_hashes: Dict[str, str] = {}
        for asset, entry in parsed.assets.items():
            ticker_hashes[asset] = entry.ticker_hash or default_ticker_hash(asset)
            for chain_id, chain_asset in entry.chains.items():
                if chain_id not in chains:
                    raise ConfigurationError(f"{asset} references chain {chain_id} which is not configured")
                descriptors.append(ChainAssetDescriptor(
                    asset=asset,
                    chain_id=chain_id,
                    address=chain_asset.address,
                    decimals=chain_asset.decimals,
                ))

        for chain_id in parsed.protocol_addresses:
            if chain_id not in chains:
                raise ConfigurationError(f"Protocol address given for unconfigured chain {chain_id}")

        if parsed.expensive_chain is not None and parsed.expensive_chain not in chains:
            raise ConfigurationError(f"Expensive chain {parsed.expensive_chain} is not configured")

        catalog = cls(
            descriptors=descriptors,
            ticker_hashes=ticker_hashes,
            chains=chains,
            protocol_addresses=protocol_addresses,
            network=parsed.network,
            expensive_chain=parsed.expensive_chain,
        )
        logger.info(
            f"Loaded {parsed.network} catalog: {len(ticker_hashes)} assets, "
            f"{len(chains)} chains, {len(descriptors)} descriptors"
        )
        return catalog

    @classmethod
    def from_file(cls, path, env: Optional[Mapping[str, str]] = None) -> "AssetCatalog":
        path = Path(path)
        try:
            with open(path) as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Asset configuration not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Asset configuration {path} is not valid JSON: {e}") from e
        return cls.from_dict(data, env=env)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def assets(self) -> List[str]:
        return list(self._ticker_hashes)

    @property
    def chains(self) -> Mapping[str, ChainConfig]:
        return self._chains

    @property
    def protocol_addresses(self) -> Mapping[str, str]:
        return self._protocol_addresses

    def descriptor(self, asset: str, chain_id: str) -> Optional[ChainAssetDescriptor]:
        return self._descriptors.get((asset, chain_id))

    def require_descriptor(self, asset: str, chain_id: str) -> ChainAssetDescriptor:
        descriptor = self.descriptor(asset, chain_id)
        if descriptor is None:
            raise UnknownAssetOnChain(asset, chain_id)
        return descriptor

    def ticker_hash(self, asset: str) -> Optional[str]:
        return self._ticker_hashes.get(asset)

    def asset_for_ticker_hash(self, ticker_hash: str) -> Optional[str]:
        if not ticker_hash:
            return None
        return self._assets_by_hash.get(ticker_hash.lower())

    def missing_rpc_urls(self) -> List[str]:
        return [chain_id for chain_id, chain in self._chains.items() if not chain.rpc_url]
