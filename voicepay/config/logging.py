"""Logging configuration for the payment service."""

from __future__ import annotations

import logging
import os


def configure_logging(level: str | None = None) -> None:
    """Configure Python logging for the process.

    Logs are intended for internal diagnostics only and must never be sent back to the client.
    """

    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # Reduce noisy third-party logs by default.
    for name in ("aiogram.event", "httpx", "substrateinterface"):
        logging.getLogger(name).setLevel(logging.WARNING)


def short_address(address: str) -> str:
    """Abbreviate an account address for logs and spoken prompts."""

    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"
