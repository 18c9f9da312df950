"""Ledger kernel: store contract, numbering, notifications, logging and errors."""
