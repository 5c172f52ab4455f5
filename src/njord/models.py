"""Data models for accounts and transactions."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class Account:
    """A bank-held account as reported by the aggregator."""

    id: str
    iban: str | None = None
    bban: str | None = None
    name: str | None = None
    display_name: str | None = None
    status: str = "enabled"

    @property
    def is_available(self) -> bool:
        """Return True if the aggregator reports the account as usable."""
        return self.status == "enabled"

    def __str__(self) -> str:
        for label in (self.display_name, self.name, self.bban, self.iban):
            if label:
                return label
        return self.id


@dataclass(frozen=True)
class RawTransaction:
    """A booked transaction as delivered by the ingestion layer."""

    id: str
    date: date
    currency: str
    amount: Decimal
    additional_info: str = ""


@dataclass(frozen=True)
class NormalTransaction:
    """A single movement on one account (negative amount = debit)."""

    account: Account
    amount: Decimal
    currency: str
    date: date
    additional_info: str = ""

    @property
    def is_debit(self) -> bool:
        """Return True if money left the account."""
        return self.amount < 0

    def __str__(self) -> str:
        if self.is_debit:
            head = f"{self.date} from: {self.account} {-self.amount} {self.currency}"
        else:
            head = f"{self.date} to: {self.account} {self.amount} {self.currency}"
        return f"{head} {self.additional_info}".rstrip()

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for CSV output."""
        return {
            "date": self.date.isoformat(),
            "account_from": str(self.account),
            "account_to": "",
            "amount": str(self.amount),
            "currency": self.currency,
            "description": self.additional_info,
        }


@dataclass(frozen=True)
class TransferTransaction:
    """Two normal transactions on different accounts collapsed into one move."""

    from_account: Account
    to_account: Account
    amount: Decimal
    currency: str
    date: date
    from_additional_info: str = ""
    to_additional_info: str = ""

    @property
    def description(self) -> str:
        """Combined description of both legs."""
        return f"from: {self.from_additional_info} to: {self.to_additional_info}"

    def __str__(self) -> str:
        return (
            f"{self.date} from: {self.from_account} to: {self.to_account} "
            f"{self.amount} {self.currency} "
            f"{self.from_additional_info} {self.to_additional_info}"
        ).rstrip()

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for CSV output."""
        return {
            "date": self.date.isoformat(),
            "account_from": str(self.from_account),
            "account_to": str(self.to_account),
            "amount": str(self.amount),
            "currency": self.currency,
            "description": self.description,
        }


# Element of the working list; discriminate with isinstance().
Transaction = NormalTransaction | TransferTransaction
