"""Njord - Export bank transactions with inter-account transfers collapsed."""

from njord.matcher import TransferMatcher, match_transactions
from njord.models import (
    Account,
    NormalTransaction,
    RawTransaction,
    Transaction,
    TransferTransaction,
)

__version__ = "0.1.0"
__all__ = [
    "Account",
    "NormalTransaction",
    "RawTransaction",
    "Transaction",
    "TransferMatcher",
    "TransferTransaction",
    "match_transactions",
]
