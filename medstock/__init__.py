"""Ward medication stock ledger with dual-signature supply and disposal workflows."""

__version__ = "0.1.0"
