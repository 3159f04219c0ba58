"""
Payment domain models.

- PaymentOrder: One payment attempt and its canonical status
- BalanceAccount, BalanceCredit, LedgerEntry: Settlement ledger
  (defined in payments.ledger.models, registered with this app)
"""

from payments.ledger.models import BalanceAccount, BalanceCredit, LedgerEntry
from payments.models.payment_order import PaymentOrder

__all__ = [
    "BalanceAccount",
    "BalanceCredit",
    "LedgerEntry",
    "PaymentOrder",
]
