"""Persistence — append-only audit ledger."""
