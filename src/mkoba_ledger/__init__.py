"""MKoba contribution ledger: monthly savings-group contributions, totals and exports."""

__version__ = "0.4.0"
