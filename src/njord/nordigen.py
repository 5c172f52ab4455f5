"""GoCardless Bank Account Data (formerly Nordigen) API client."""

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

from njord.models import Account, RawTransaction
from njord.utils import parse_amount, parse_date, parse_datetime

DEFAULT_BASE_URL = "https://bankaccountdata.gocardless.com/api/v2"
DEFAULT_REDIRECT_URL = "https://localhost/njord/requisition_return"

# Bounds the aggregator puts on end-user agreements
MAX_HISTORICAL_DAYS = 730
DEFAULT_HISTORICAL_DAYS = 90
DEFAULT_ACCESS_VALID_FOR_DAYS = 90

# Requisition statuses that can never become linked again
EXPIRED_STATUSES = frozenset({"EX", "RJ", "SU"})

# Tokens this close to expiry are treated as expired
EXPIRY_MARGIN = timedelta(seconds=30)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ClientCredentials:
    """User secrets issued by the aggregator's developer portal."""

    secret_id: str
    secret_key: str

    def to_dict(self) -> dict[str, str]:
        return {"secret_id": self.secret_id, "secret_key": self.secret_key}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClientCredentials":
        return cls(secret_id=data["secret_id"], secret_key=data["secret_key"])


@dataclass
class TokenPart:
    """One half (access or refresh) of a JWT pair."""

    secret: str
    expires_at: datetime

    def is_fresh(self, now: datetime | None = None) -> bool:
        """Return True if the secret is usable for at least EXPIRY_MARGIN."""
        now = now or _utcnow()
        return self.expires_at - now > EXPIRY_MARGIN

    def to_dict(self) -> dict[str, str]:
        return {"secret": self.secret, "expires_at": self.expires_at.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenPart":
        expires_at = parse_datetime(data.get("expires_at"))
        if expires_at is None:
            raise ValueError(f"Invalid token expiry: {data.get('expires_at')!r}")
        return cls(secret=data["secret"], expires_at=expires_at)


@dataclass
class Token:
    """Access/refresh token pair."""

    access: TokenPart
    refresh: TokenPart

    def to_dict(self) -> dict[str, Any]:
        return {"access": self.access.to_dict(), "refresh": self.refresh.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Token":
        return cls(
            access=TokenPart.from_dict(data["access"]),
            refresh=TokenPart.from_dict(data["refresh"]),
        )


@dataclass
class Institution:
    """A bank the user holds accounts with, plus what we remember about it."""

    id: str
    name: str
    countries: list[str] = field(default_factory=list)
    requisition_id: str | None = None
    # account id -> ids of transactions already exported
    observed_transactions: dict[str, list[str]] = field(default_factory=dict)
    # None uses the aggregator's default agreement
    max_historical_days: int | None = None

    def __str__(self) -> str:
        return f"{self.name} [{', '.join(self.countries)}]"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "countries": list(self.countries),
            "requisition_id": self.requisition_id,
            "max_historical_days": self.max_historical_days,
            "observed_transactions": {
                k: list(v) for k, v in self.observed_transactions.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Institution":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            countries=list(data.get("countries", [])),
            requisition_id=data.get("requisition_id"),
            observed_transactions={
                k: list(v) for k, v in data.get("observed_transactions", {}).items()
            },
            max_historical_days=data.get("max_historical_days"),
        )


@dataclass
class Requisition:
    """A consent flow linking one institution's accounts."""

    id: str
    status: str
    institution_id: str
    accounts: list[str]
    link: str
    agreement: str | None = None

    @property
    def is_linked(self) -> bool:
        """Return True once the user has completed the consent flow."""
        return self.status == "LN"

    @property
    def is_expired(self) -> bool:
        """Return True if the consent expired, was rejected or was suspended."""
        return self.status in EXPIRED_STATUSES

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "Requisition":
        return cls(
            id=data["id"],
            status=data.get("status", ""),
            institution_id=data.get("institution_id", ""),
            accounts=list(data.get("accounts", [])),
            link=data.get("link", ""),
            agreement=data.get("agreement"),
        )


@dataclass
class EndUserAgreement:
    """How far back, and for how long, an institution's data may be read."""

    id: str
    institution_id: str
    max_historical_days: int
    access_valid_for_days: int
    access_scope: list[str] = field(default_factory=list)
    created: datetime | None = None
    accepted: datetime | None = None

    @property
    def is_accepted(self) -> bool:
        """Accepted agreements are in use by a requisition and can't be deleted."""
        return self.accepted is not None

    def __str__(self) -> str:
        created = f"{self.created:%Y-%m-%d}" if self.created else "-"
        state = "accepted" if self.is_accepted else "not accepted"
        return (
            f"{self.institution_id}: {self.max_historical_days} days of history, "
            f"valid {self.access_valid_for_days} days, created {created} ({state})"
        )

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "EndUserAgreement":
        return cls(
            id=data["id"],
            institution_id=data.get("institution_id", ""),
            max_historical_days=int(data.get("max_historical_days", DEFAULT_HISTORICAL_DAYS)),
            access_valid_for_days=int(
                data.get("access_valid_for_days", DEFAULT_ACCESS_VALID_FOR_DAYS)
            ),
            access_scope=list(data.get("access_scope", [])),
            created=parse_datetime(data.get("created")),
            accepted=parse_datetime(data.get("accepted")),
        )


def parse_booked_transaction(booked: dict[str, Any]) -> RawTransaction:
    """Convert one entry of ``transactions.booked`` to a RawTransaction.

    Raises:
        ValueError: If the id, date or amount is missing or malformed
    """
    tx_id = booked.get("transactionId") or booked.get("internalTransactionId")
    if not tx_id:
        raise ValueError("Booked transaction without transactionId")

    tx_date = parse_date(booked.get("valueDate")) or parse_date(booked.get("bookingDate"))
    if tx_date is None:
        raise ValueError(f"Transaction {tx_id}: missing or invalid date")

    amount_info = booked.get("transactionAmount") or {}
    amount = parse_amount(amount_info.get("amount"))
    if amount is None:
        raise ValueError(f"Transaction {tx_id}: invalid amount {amount_info.get('amount')!r}")

    currency = amount_info.get("currency") or ""
    if not currency:
        raise ValueError(f"Transaction {tx_id}: missing currency")

    additional_info = (
        booked.get("additionalInformation")
        or booked.get("remittanceInformationUnstructured")
        or ""
    )

    return RawTransaction(
        id=str(tx_id),
        date=tx_date,
        currency=currency,
        amount=amount,
        additional_info=additional_info,
    )


def account_from_response(account_id: str, details: dict[str, Any]) -> Account:
    """Build an Account from the ``details`` endpoint payload."""
    info = details.get("account", details)
    return Account(
        id=account_id,
        iban=info.get("iban"),
        bban=info.get("bban"),
        name=info.get("name") or info.get("ownerName"),
        display_name=info.get("displayName"),
        status=info.get("status") or "enabled",
    )


class NordigenClient:
    """Client for the Bank Account Data API."""

    def __init__(
        self,
        credentials: ClientCredentials,
        token: Token | None = None,
        base_url: str | None = None,
        redirect_url: str = DEFAULT_REDIRECT_URL,
    ) -> None:
        """Initialize client with the user's secrets and an optional cached token."""
        self.credentials = credentials
        self.token = token
        self.base_url = (base_url or os.getenv("NJORD_API_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.redirect_url = redirect_url
        self._session = requests.Session()
        self._session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    def _request(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        authenticated: bool = True,
    ) -> Any:
        """Make an API request."""
        url = f"{self.base_url}/{endpoint.strip('/')}/"
        headers: dict[str, str] = {}
        if authenticated:
            headers["Authorization"] = f"Bearer {self.access_token()}"
        response = self._session.request(method, url, json=json, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    def new_token(self) -> Token:
        """Exchange the client credentials for a fresh token pair."""
        start = _utcnow()
        result = self._request(
            "POST",
            "token/new",
            json=self.credentials.to_dict(),
            authenticated=False,
        )
        self.token = Token(
            access=TokenPart(result["access"], start + timedelta(seconds=result["access_expires"])),
            refresh=TokenPart(
                result["refresh"], start + timedelta(seconds=result["refresh_expires"])
            ),
        )
        return self.token

    def access_token(self) -> str:
        """Return a usable access secret, refreshing or renewing as needed."""
        if self.token is None or not self.token.refresh.is_fresh():
            return self.new_token().access.secret

        if self.token.access.is_fresh():
            return self.token.access.secret

        start = _utcnow()
        result = self._request(
            "POST",
            "token/refresh",
            json={"refresh": self.token.refresh.secret},
            authenticated=False,
        )
        self.token.access = TokenPart(
            result["access"], start + timedelta(seconds=result["access_expires"])
        )
        return self.token.access.secret

    def list_institutions(self, country: str | None = None) -> list[Institution]:
        """List the institutions available, optionally for one country."""
        params = {"country": country.lower()} if country else None
        result = self._request("GET", "institutions", params=params)
        return [
            Institution(id=item["id"], name=item["name"], countries=list(item.get("countries", [])))
            for item in result
        ]

    def create_requisition(self, institution_id: str, agreement: str | None = None) -> Requisition:
        """Start a new consent flow for an institution.

        Without ``agreement`` the aggregator applies its default end-user
        agreement (90 days of history).
        """
        body = {"redirect": self.redirect_url, "institution_id": institution_id}
        if agreement:
            body["agreement"] = agreement
        result = self._request("POST", "requisitions", json=body)
        return Requisition.from_response(result)

    def list_agreements(self) -> list[EndUserAgreement]:
        """List every end-user agreement, following the paginated results."""
        agreements: list[EndUserAgreement] = []
        while True:
            result = self._request(
                "GET", "agreements/enduser", params={"offset": str(len(agreements))}
            )
            page = result.get("results", [])
            agreements.extend(EndUserAgreement.from_response(item) for item in page)
            if not page or not result.get("next"):
                return agreements

    def create_agreement(
        self,
        institution_id: str,
        max_historical_days: int,
        access_valid_for_days: int = DEFAULT_ACCESS_VALID_FOR_DAYS,
    ) -> EndUserAgreement:
        """Create an end-user agreement reaching ``max_historical_days`` back.

        Raises:
            ValueError: If the history depth is outside 1..MAX_HISTORICAL_DAYS
        """
        if not 1 <= max_historical_days <= MAX_HISTORICAL_DAYS:
            raise ValueError(
                f"max_historical_days must be between 1 and {MAX_HISTORICAL_DAYS}, "
                f"got {max_historical_days}"
            )
        result = self._request(
            "POST",
            "agreements/enduser",
            json={
                "institution_id": institution_id,
                "max_historical_days": max_historical_days,
                "access_valid_for_days": access_valid_for_days,
            },
        )
        return EndUserAgreement.from_response(result)

    def delete_agreement(self, agreement_id: str) -> None:
        """Delete an agreement that no requisition has accepted yet."""
        self._request("DELETE", f"agreements/enduser/{agreement_id}")

    def get_requisition(self, requisition_id: str) -> Requisition:
        """Fetch the current state of a consent flow."""
        return Requisition.from_response(self._request("GET", f"requisitions/{requisition_id}"))

    def get_account(self, account_id: str) -> Account:
        """Fetch an account's metadata and display labels."""
        details = self._request("GET", f"accounts/{account_id}/details")
        return account_from_response(account_id, details)

    def list_transactions(self, account_id: str) -> list[RawTransaction]:
        """Fetch the booked transactions of an account (pending are ignored)."""
        result = self._request("GET", f"accounts/{account_id}/transactions")
        booked = result.get("transactions", {}).get("booked", [])
        return [parse_booked_transaction(entry) for entry in booked]
