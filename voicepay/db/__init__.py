"""Postgres pool and schema migrations."""
