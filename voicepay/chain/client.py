"""Chain RPC collaborator.

The pipeline needs very little from a node: encode a call, estimate its fee, submit a signed
extrinsic and read a balance. `ChainClient` is that contract; `SubstrateChainClient` implements it
with `substrate-interface`, whose blocking websocket calls are moved to worker threads.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from substrateinterface import Keypair, SubstrateInterface
from substrateinterface.exceptions import SubstrateRequestException
from websocket import WebSocketException

from voicepay.chain.calls import ChainCall
from voicepay.errors import UpstreamError

logger = logging.getLogger(__name__)


class ChainClient(Protocol):
    """What the pipeline needs from a chain node."""

    async def encode_call(self, call: ChainCall) -> str:
        """Return the SCALE-encoded call as ``0x`` hex."""

    async def estimate_fee(self, call: ChainCall, sender: str) -> int:
        """Return the partial fee for the call in the chain's smallest units."""

    async def submit_extrinsic(self, signed_hex: str) -> str:
        """Submit a signed extrinsic and return its hash."""

    async def free_balance(self, address: str, asset_id: int | None = None) -> int:
        """Return the free balance of an account (native or pallet-assets)."""

    async def close(self) -> None:
        """Release the underlying connection."""


def _normalize_hex(value: str) -> str:
    value = value.strip()
    return value if value.startswith("0x") else f"0x{value}"


# Transport failures (websocket-client errors do not derive from OSError) and SCALE encoding
# failures raised by scalecodec for params the node's metadata does not accept.
_CONNECT_ERRORS = (WebSocketException, ConnectionError, OSError)
_RPC_ERRORS = (
    SubstrateRequestException,
    WebSocketException,
    ConnectionError,
    OSError,
    ValueError,
    TypeError,
    KeyError,
    NotImplementedError,
)


class SubstrateChainClient:
    """`ChainClient` backed by one `SubstrateInterface` websocket connection.

    The connection is a single socket read by whichever thread is waiting on it, so requests
    are serialized: at most one worker thread talks to the node at a time.
    """

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        self._substrate: SubstrateInterface | None = None
        self._lock = asyncio.Lock()
        self._request_lock = asyncio.Lock()

    async def _connection(self) -> SubstrateInterface:
        async with self._lock:
            if self._substrate is None:
                try:
                    self._substrate = await asyncio.to_thread(SubstrateInterface, url=self.endpoint)
                except _CONNECT_ERRORS as exc:
                    logger.warning("chain connect failed endpoint=%s error=%s", self.endpoint, exc)
                    raise UpstreamError(f"chain connection failed: {self.endpoint}") from exc
            return self._substrate

    async def _run(self, what: str, fn: Any, *args: Any, **kwargs: Any) -> Any:
        substrate = await self._connection()
        try:
            async with self._request_lock:
                return await asyncio.to_thread(fn, substrate, *args, **kwargs)
        except _RPC_ERRORS as exc:
            logger.warning("chain rpc failed op=%s endpoint=%s error=%s", what, self.endpoint, exc)
            raise UpstreamError(f"chain {what} failed: {exc}") from exc

    @staticmethod
    def _compose(substrate: SubstrateInterface, call: ChainCall) -> Any:
        return substrate.compose_call(
            call_module=call.module,
            call_function=call.function,
            call_params=call.params,
        )

    async def encode_call(self, call: ChainCall) -> str:
        def _encode(substrate: SubstrateInterface) -> str:
            return self._compose(substrate, call).data.to_hex()

        return await self._run("encode", _encode)

    async def estimate_fee(self, call: ChainCall, sender: str) -> int:
        def _fee(substrate: SubstrateInterface) -> int:
            composed = self._compose(substrate, call)
            info = substrate.get_payment_info(call=composed, keypair=Keypair(ss58_address=sender))
            return int((info or {}).get("partialFee", 0))

        return await self._run("fee estimation", _fee)

    async def submit_extrinsic(self, signed_hex: str) -> str:
        def _submit(substrate: SubstrateInterface) -> str:
            response = substrate.rpc_request("author_submitExtrinsic", [_normalize_hex(signed_hex)])
            if "error" in response:
                raise SubstrateRequestException(response["error"].get("message", "rejected"))
            return str(response["result"])

        return await self._run("submit", _submit)

    async def free_balance(self, address: str, asset_id: int | None = None) -> int:
        def _balance(substrate: SubstrateInterface) -> int:
            if asset_id is None:
                account = substrate.query("System", "Account", [address])
                return int(account.value["data"]["free"])
            account = substrate.query("Assets", "Account", [asset_id, address])
            return int((account.value or {}).get("balance", 0))

        return await self._run("balance query", _balance)

    async def close(self) -> None:
        async with self._lock, self._request_lock:
            if self._substrate is not None:
                await asyncio.to_thread(self._substrate.close)
                self._substrate = None
