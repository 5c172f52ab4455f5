"""Collect raw transactions from the aggregator or from JSON dumps."""

import webbrowser
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import requests

from njord.config import get_selected_institutions, set_selected_institutions, set_token
from njord.interactions import confirm
from njord.models import Account, RawTransaction
from njord.nordigen import (
    Institution,
    NordigenClient,
    Requisition,
    account_from_response,
    parse_booked_transaction,
)
from njord.utils import read_json_file

RawPair = tuple[RawTransaction, Account]


class LinkError(Exception):
    """An institution's accounts could not be linked."""


def open_in_browser(institution: Institution, requisition: Requisition) -> None:
    """Send the user through the consent flow in their browser."""
    print(f"\nOpening page to authorise access to {institution} in your browser.")
    print(f"If nothing opens, visit: {requisition.link}")
    webbrowser.open(requisition.link)
    confirm("Done authorising?", default=True)


def sort_raw_transactions(pairs: Iterable[RawPair]) -> list[RawPair]:
    """Sort by (date, account id, transaction id) for reproducible runs."""
    return sorted(pairs, key=lambda pair: (pair[0].date, pair[1].id, pair[0].id))


class TransactionCollector:
    """
    Fetches new booked transactions for every selected institution.

    Usage:
        collector = TransactionCollector(client, config)
        pairs = collector.collect()
        save_json_config(config)
    """

    def __init__(
        self,
        client: NordigenClient,
        config: dict[str, Any],
        authorize: Callable[[Institution, Requisition], None] | None = None,
    ) -> None:
        """
        Initialize collector.

        Args:
            client: Authenticated aggregator client
            config: Loaded JSON config; updated in place with requisition ids,
                observed transaction ids and the current token
            authorize: Called for each requisition the user still has to
                approve (default: open it in the browser and wait)
        """
        self.client = client
        self.config = config
        self.authorize = authorize or open_in_browser
        self.institutions = get_selected_institutions(config)
        self._errors: list[tuple[str, str]] = []
        self._accounts = 0

    @property
    def errors(self) -> list[tuple[str, str]]:
        """Get list of (account, error_message) for accounts that failed."""
        return self._errors.copy()

    @property
    def accounts(self) -> int:
        """Number of accounts read during the last collect()."""
        return self._accounts

    def requisition_for(self, institution: Institution) -> Requisition:
        """Reuse the institution's stored requisition, or start a new one.

        A stored requisition that the aggregator no longer knows, or whose
        consent expired, was rejected or was suspended, is replaced.
        """
        if institution.requisition_id:
            try:
                requisition = self.client.get_requisition(institution.requisition_id)
            except requests.HTTPError:
                requisition = None
            if requisition is not None and not requisition.is_expired:
                return requisition

        agreement = None
        if institution.max_historical_days:
            agreement = self.client.create_agreement(
                institution.id, institution.max_historical_days
            ).id

        requisition = self.client.create_requisition(institution.id, agreement=agreement)
        institution.requisition_id = requisition.id
        return requisition

    def requisitions(self) -> list[Requisition]:
        """Get a linked requisition for every selected institution.

        Raises:
            LinkError: If the user returns without completing the consent flow
        """
        requisitions: list[Requisition] = []
        for institution in self.institutions:
            requisition = self.requisition_for(institution)
            if not requisition.is_linked:
                self.authorize(institution, requisition)
                requisition = self.client.get_requisition(requisition.id)
                if not requisition.is_linked:
                    raise LinkError(f"{institution} is still unlinked after returning")
            requisitions.append(requisition)

        self._store()
        return requisitions

    def collect(self) -> list[RawPair]:
        """
        Fetch transactions not seen in earlier runs.

        Returns:
            List of (RawTransaction, Account) pairs in fetch order
        """
        self._errors = []
        self._accounts = 0
        pairs: list[RawPair] = []

        for institution, requisition in zip(self.institutions, self.requisitions()):
            for account_id in requisition.accounts:
                try:
                    account = self.client.get_account(account_id)
                    if not account.is_available:
                        continue
                    transactions = self.client.list_transactions(account_id)
                except (requests.RequestException, ValueError) as e:
                    self._errors.append((account_id, str(e)))
                    continue

                self._accounts += 1
                observed = institution.observed_transactions.setdefault(account.id, [])
                seen = set(observed)
                for tx in transactions:
                    if tx.id in seen:
                        continue
                    seen.add(tx.id)
                    observed.append(tx.id)
                    pairs.append((tx, account))

        self._store()
        return pairs

    def _store(self) -> None:
        set_selected_institutions(self.config, self.institutions)
        set_token(self.config, self.client.token)


def load_raw_transactions(paths: Iterable[Path]) -> list[RawPair]:
    """
    Read aggregator-shaped JSON dumps.

    Each file holds ``{"accounts": [{"id": ..., "iban": ..., ...,
    "transactions": {"booked": [...]}}]}``. A transaction id seen twice for
    the same account is kept once.

    Raises:
        ValueError: If a file cannot be read or holds a malformed transaction
    """
    pairs: list[RawPair] = []
    seen: set[tuple[str, str]] = set()

    for path in paths:
        document = read_json_file(path)
        if not isinstance(document, dict) or not isinstance(document.get("accounts"), list):
            raise ValueError(f"{path}: expected an object with an 'accounts' list")

        for entry in document["accounts"]:
            if "id" not in entry:
                raise ValueError(f"{path}: account without id")
            account = account_from_response(str(entry["id"]), entry)
            booked = entry.get("transactions", {}).get("booked", [])
            for item in booked:
                try:
                    tx = parse_booked_transaction(item)
                except ValueError as e:
                    raise ValueError(f"{path}: {e}") from e
                key = (account.id, tx.id)
                if key in seen:
                    continue
                seen.add(key)
                pairs.append((tx, account))

    return pairs
