"""Execution: cross-chain safety checks and submission of pre-signed extrinsics."""
