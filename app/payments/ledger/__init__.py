"""
Settlement ledger: balance accounts, balance credits and per-item ledger entries.

Usage:
    from payments.ledger import ledger, compute_revenue_split
"""

from .services import LedgerService, ledger
from .types import CreditParams, Money, RevenueSplit, compute_revenue_split

__all__ = [
    "CreditParams",
    "LedgerService",
    "Money",
    "RevenueSplit",
    "compute_revenue_split",
    "ledger",
]
