"""Transfer call builder.

Given a validated `IntentItem`, pick the right call shape:

    - same chain, native token      -> `Balances.transfer_keep_alive`
    - same chain, pallet-assets token -> `Assets.transfer`
    - different chains             -> an XCM teleport or reserve transfer on the origin chain

Amounts are converted to smallest units with the token's catalog decimals. Fee estimation is
advisory: any estimation failure yields `None` instead of an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from voicepay.chain.address import account_id_hex
from voicepay.chain.calls import ChainCall
from voicepay.chain.registry import ChainRegistry, get_chain_info
from voicepay.chain.tokens import TokenInfo, require_token
from voicepay.chain.units import decimal_to_units
from voicepay.errors import PaymentError, ValidationError
from voicepay.intent.schema import IntentItem

logger = logging.getLogger(__name__)

TransferKind = Literal["native", "asset", "xcm"]

_ASSETS_PALLET_INSTANCE = 50
_TELEPORT_PAIRS = {("polkadot", "asset-hub-polkadot"), ("asset-hub-polkadot", "polkadot")}


@dataclass(frozen=True)
class BuiltTransfer:
    """A transfer call plus the facts needed to audit it."""

    kind: TransferKind
    call: ChainCall
    token: str
    amount_units: int
    min_receive_units: int | None = None


def is_cross_chain(item: IntentItem) -> bool:
    return item.origin_chain != item.destination_chain


def to_units(amount: str, token: TokenInfo) -> int:
    """Convert a decimal amount for a token, mapping format errors to `ValidationError`."""

    try:
        return decimal_to_units(amount, token.decimals)
    except ValueError as exc:
        raise ValidationError(f"invalid amount: {amount}") from exc


def _multilocation(parents: int, *junctions: dict[str, Any]) -> dict[str, Any]:
    if not junctions:
        interior: Any = "Here"
    elif len(junctions) == 1:
        interior = {"X1": junctions[0]}
    else:
        interior = {f"X{len(junctions)}": list(junctions)}
    return {"parents": parents, "interior": interior}


def _destination(origin: str, destination: str) -> dict[str, Any]:
    dest_info = get_chain_info(destination)
    parents = 0 if get_chain_info(origin).para_id is None else 1
    if dest_info.para_id is None:
        return _multilocation(parents)
    return _multilocation(parents, {"Parachain": dest_info.para_id})


def _asset_location(token: TokenInfo, origin: str) -> dict[str, Any]:
    """Locate the token relative to the origin chain."""

    asset_junctions: list[dict[str, Any]] = []
    if not token.is_native:
        asset_junctions = [
            {"PalletInstance": _ASSETS_PALLET_INSTANCE},
            {"GeneralIndex": token.asset_id},
        ]

    if token.chain == origin:
        return _multilocation(0, *asset_junctions)

    home = get_chain_info(token.chain)
    parents = 0 if get_chain_info(origin).para_id is None else 1
    if home.para_id is None:
        return _multilocation(parents, *asset_junctions)
    return _multilocation(parents, {"Parachain": home.para_id}, *asset_junctions)


def _beneficiary(recipient: str, destination: str) -> dict[str, Any]:
    account = account_id_hex(recipient)
    if get_chain_info(destination).address_format == "h160":
        return _multilocation(0, {"AccountKey20": {"network": None, "key": account}})
    return _multilocation(0, {"AccountId32": {"network": None, "id": account}})


def _build_xcm_call(item: IntentItem, token: TokenInfo, units: int) -> ChainCall:
    origin, destination = item.origin_chain, item.destination_chain
    teleport = token.symbol == "DOT" and (origin, destination) in _TELEPORT_PAIRS
    function = "limited_teleport_assets" if teleport else "limited_reserve_transfer_assets"
    return ChainCall(
        chain=origin,
        module=get_chain_info(origin).xcm_pallet,
        function=function,
        params={
            "dest": {"V3": _destination(origin, destination)},
            "beneficiary": {"V3": _beneficiary(item.recipient, destination)},
            "assets": {
                "V3": [
                    {
                        "id": {"Concrete": _asset_location(token, origin)},
                        "fun": {"Fungible": units},
                    }
                ]
            },
            "fee_asset_item": 0,
            "weight_limit": "Unlimited",
        },
    )


def build_transfer(item: IntentItem, *, min_receive: str | None = None) -> BuiltTransfer:
    """Build the call for one transfer item.

    Raises:
        ValidationError: For unsupported tokens, malformed amounts or a same-chain transfer of a
            token that is not managed on that chain.
    """

    token = require_token(item.token)
    units = to_units(item.amount, token)

    if is_cross_chain(item):
        min_units = to_units(min_receive, token) if min_receive is not None else None
        return BuiltTransfer(
            kind="xcm",
            call=_build_xcm_call(item, token, units),
            token=token.symbol,
            amount_units=units,
            min_receive_units=min_units,
        )

    chain = item.origin_chain
    if token.chain != chain:
        raise ValidationError(f"token {token.symbol} is not transferable on {chain}")

    if token.is_native:
        call = ChainCall(
            chain=chain,
            module="Balances",
            function="transfer_keep_alive",
            params={"dest": item.recipient, "value": units},
        )
        return BuiltTransfer(kind="native", call=call, token=token.symbol, amount_units=units)

    call = ChainCall(
        chain=chain,
        module="Assets",
        function="transfer",
        params={"id": token.asset_id, "target": item.recipient, "amount": units},
    )
    return BuiltTransfer(kind="asset", call=call, token=token.symbol, amount_units=units)


class TransferBuilder:
    """Encodes built transfers and estimates their fees through the chain registry."""

    def __init__(self, registry: ChainRegistry) -> None:
        self._registry = registry

    async def encode(self, built: BuiltTransfer) -> str:
        client = await self._registry.client_for(built.call.chain)
        return await client.encode_call(built.call)

    async def estimate_fee(self, built: BuiltTransfer, sender: str | None) -> int | None:
        """Estimate the fee on the origin chain; `None` means unknown."""

        if not sender:
            return None
        try:
            client = await self._registry.client_for(built.call.chain)
            return await client.estimate_fee(built.call, sender)
        except PaymentError as exc:
            logger.info("fee estimation unavailable call=%s reason=%s", built.call.name, exc)
            return None
