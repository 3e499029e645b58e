"""Telegram front-end (aiogram) for the payment service."""
