"""timeledger - auditable time-tracking ledger."""

__version__ = "0.1.0"
