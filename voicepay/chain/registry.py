"""Chain registry: chain names, RPC endpoints and one shared client per endpoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, get_args

if TYPE_CHECKING:
    from voicepay.chain.client import ChainClient

logger = logging.getLogger(__name__)

ChainName = Literal["polkadot", "asset-hub-polkadot", "moonbeam"]
AddressFormat = Literal["ss58", "h160"]

CHAIN_NAMES: tuple[ChainName, ...] = get_args(ChainName)

DEFAULT_ENDPOINTS: dict[ChainName, str] = {
    "polkadot": "wss://rpc.polkadot.io",
    "asset-hub-polkadot": "wss://polkadot-asset-hub-rpc.polkadot.io",
    "moonbeam": "wss://wss.api.moonbeam.network",
}


@dataclass(frozen=True)
class ChainInfo:
    """Static routing facts about a chain."""

    name: ChainName
    para_id: int | None
    address_format: AddressFormat
    xcm_pallet: str


CHAINS: dict[ChainName, ChainInfo] = {
    "polkadot": ChainInfo("polkadot", None, "ss58", "XcmPallet"),
    "asset-hub-polkadot": ChainInfo("asset-hub-polkadot", 1000, "ss58", "PolkadotXcm"),
    "moonbeam": ChainInfo("moonbeam", 2004, "h160", "PolkadotXcm"),
}


def is_known_chain(name: str) -> bool:
    return name in CHAINS


def get_chain_info(name: str) -> ChainInfo:
    """Return chain facts or raise `KeyError` for names outside the registry."""

    return CHAINS[name]  # type: ignore[index]


ClientFactory = Callable[[str], "ChainClient"]


class ChainRegistry:
    """Resolves chain names to endpoints and caches one live client per endpoint.

    Clients are created lazily on first use and live as long as the registry; the application
    container owns a single registry for the process and closes it on shutdown.
    """

    def __init__(
            self,
            client_factory: ClientFactory,
            overrides: Mapping[str, str] | None = None,
    ) -> None:
        self._factory = client_factory
        self._endpoints: dict[str, str] = {**DEFAULT_ENDPOINTS, **(overrides or {})}
        self._clients: dict[str, ChainClient] = {}
        self._lock = asyncio.Lock()

    def endpoint_for(self, chain: str) -> str:
        try:
            return self._endpoints[chain]
        except KeyError:
            raise KeyError(f"unknown chain: {chain}") from None

    async def client_for(self, chain: str) -> ChainClient:
        """Return the shared client for the chain's endpoint, creating it on first use."""

        endpoint = self.endpoint_for(chain)
        async with self._lock:
            client = self._clients.get(endpoint)
            if client is None:
                logger.info("chain client created chain=%s endpoint=%s", chain, endpoint)
                client = self._factory(endpoint)
                self._clients[endpoint] = client
        return client

    async def close(self) -> None:
        async with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            await client.close()
