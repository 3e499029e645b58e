"""Token catalog: where each supported token lives and how precise it is."""

from __future__ import annotations

from dataclasses import dataclass

from voicepay.chain.registry import ChainName
from voicepay.errors import ValidationError


@dataclass(frozen=True)
class TokenInfo:
    """Catalog entry for a supported token."""

    symbol: str
    chain: ChainName
    decimals: int
    is_native: bool
    asset_id: int | None = None


TOKENS: dict[str, TokenInfo] = {
    "DOT": TokenInfo(symbol="DOT", chain="polkadot", decimals=10, is_native=True),
    "USDT": TokenInfo(
        symbol="USDT", chain="asset-hub-polkadot", decimals=6, is_native=False, asset_id=1984
    ),
    "GLMR": TokenInfo(symbol="GLMR", chain="moonbeam", decimals=18, is_native=True),
}


def get_token_info(symbol: str) -> TokenInfo | None:
    return TOKENS.get((symbol or "").strip().upper())


def require_token(symbol: str) -> TokenInfo:
    """Return the catalog entry or raise `ValidationError("unsupported token: ...")`."""

    info = get_token_info(symbol)
    if info is None:
        raise ValidationError(f"unsupported token: {symbol}")
    return info
