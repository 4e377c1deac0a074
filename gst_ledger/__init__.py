"""GST ledger engine: tax computation, invoice sync, backfill and return filing."""

__version__ = "0.1.0"
