"""Chain-facing building blocks: registries, unit math, address checks, call building.

Nothing in this package talks to the network except the `client` module; everything else is a pure
function of the static chain/token tables.
"""
