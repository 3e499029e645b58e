"""Account address format checks.

Substrate chains use SS58 addresses; the check is a full decode followed by a re-encode so that
checksum and length errors are caught. EVM-style chains (Moonbeam) use 20-byte hex accounts.
"""

from __future__ import annotations

import re

from scalecodec.utils.ss58 import ss58_decode, ss58_encode

from voicepay.chain.registry import AddressFormat

_H160_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_valid_ss58_address(address: str) -> bool:
    """Whether the value decodes as SS58 and re-encodes cleanly."""

    value = (address or "").strip()
    if not value or value.startswith("0x"):
        return False
    try:
        public_key = ss58_decode(value)
        ss58_encode(public_key)
    except (ValueError, TypeError, IndexError):
        return False
    return True


def is_valid_h160_address(address: str) -> bool:
    return _H160_RE.fullmatch((address or "").strip()) is not None


def is_valid_address(address: str, address_format: AddressFormat = "ss58") -> bool:
    """Validate an address under the given chain address format."""

    if address_format == "h160":
        return is_valid_h160_address(address)
    return is_valid_ss58_address(address)


def account_id_hex(address: str) -> str:
    """Return the raw account id of an address as ``0x``-prefixed hex."""

    value = address.strip()
    if is_valid_h160_address(value):
        return value.lower()
    return "0x" + ss58_decode(value)
