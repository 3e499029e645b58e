"""HTTP front-end (FastAPI) for the payment service."""
