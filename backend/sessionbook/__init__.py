"""Session booking engine: slot scheduling and session-credit ledger."""

__version__ = "0.1.0"
