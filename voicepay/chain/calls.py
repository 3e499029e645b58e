"""Structural chain calls.

A `ChainCall` names a pallet function and its parameters in the shape `substrate-interface`
expects. Calls are plain values so they can be built, compared and logged without a node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ChainCall:
    """A pallet call on a specific chain."""

    chain: str
    module: str
    function: str
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.module}.{self.function}"
