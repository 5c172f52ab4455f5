"""Interactive setup wizard for njord."""

from datetime import date, timedelta
from pathlib import Path
from typing import Any

import requests

from njord.config import (
    create_default_config,
    get_client_credentials,
    get_redirect_url,
    get_selected_institutions,
    get_token,
    load_config,
    save_json_config,
    set_client_credentials,
    set_selected_institutions,
    set_token,
)
from njord.interactions import confirm, prompt_text, select_many
from njord.nordigen import (
    DEFAULT_HISTORICAL_DAYS,
    MAX_HISTORICAL_DAYS,
    ClientCredentials,
    Institution,
    NordigenClient,
)
from njord.utils import parse_date


def mask_secret(secret: str) -> str:
    """Mask a secret for display, showing only the first and last characters."""
    if len(secret) > 12:
        return secret[:4] + "..." + secret[-4:]
    return "***"


def ask_credentials(existing: ClientCredentials | None) -> ClientCredentials:
    """Reuse the stored credentials or ask for new ones."""
    if existing:
        print(f"\nExisting secret id: {mask_secret(existing.secret_id)}")
        if confirm("Use these credentials?", default=True):
            return existing

    print("\nCreate user secrets at: https://bankaccountdata.gocardless.com/user-secrets/")
    secret_id = prompt_text("Secret id")
    secret_key = prompt_text("Secret key")
    return ClientCredentials(secret_id=secret_id, secret_key=secret_key)


def choose_institutions(
    available: list[Institution],
    previous: list[Institution],
) -> list[Institution]:
    """Let the user pick institutions, keeping what we remember about old picks."""
    if previous:
        print("\nThese institutions were selected last time:")
        for institution in previous:
            print(f"  - {institution}")
        if confirm("Reuse them?", default=True):
            return previous

    print(f"\nFound {len(available)} institution(s):\n")
    indices = select_many(
        [str(institution) for institution in available],
        "Choose the institutions you have accounts with",
    )

    remembered = {institution.id: institution for institution in previous}
    return [remembered.get(available[i].id, available[i]) for i in indices]


def ask_history_days(institution: Institution, today: date | None = None) -> int | None:
    """Ask from which date to read transactions; returns days of history.

    The date must lie between MAX_HISTORICAL_DAYS ago and yesterday. Answering
    's' keeps the aggregator's default agreement and returns None.
    """
    today = today or date.today()
    earliest = today - timedelta(days=MAX_HISTORICAL_DAYS)
    latest = today - timedelta(days=1)
    days = institution.max_historical_days or DEFAULT_HISTORICAL_DAYS
    suggested = today - timedelta(days=days)

    while True:
        answer = prompt_text(
            f"Read {institution.name} transactions from (YYYY-MM-DD, 's' for the bank default)",
            default=suggested.isoformat(),
        )
        if answer.lower() == "s":
            return None
        start = parse_date(answer)
        if start is not None and earliest <= start <= latest:
            return (today - start).days
        print(f"  Enter a date between {earliest} and {latest}.")


def choose_history(institutions: list[Institution], today: date | None = None) -> None:
    """Let the user set how far back each institution is read.

    Changing the depth drops the stored requisition, since a requisition's
    agreement is fixed once created.
    """
    if not institutions:
        return
    if not confirm("\nChoose how far back to read transactions?", default=False):
        return

    for institution in institutions:
        days = ask_history_days(institution, today)
        if days != institution.max_historical_days:
            institution.max_historical_days = days
            institution.requisition_id = None


def manage_agreements(client: NordigenClient) -> int:
    """List end-user agreements and delete the unaccepted ones the user picks.

    Returns:
        Number of agreements deleted
    """
    agreements = client.list_agreements()

    print("\nCurrent end-user agreements:")
    if not agreements:
        print("  (none)")
    for agreement in agreements:
        print(f"  - {agreement}")

    deletable = [agreement for agreement in agreements if not agreement.is_accepted]
    if not deletable:
        print("\nNo unaccepted agreements to delete. Accepted ones can't be deleted.")
        return 0

    print("\nUnaccepted agreements:")
    indices = select_many([str(agreement) for agreement in deletable], "Delete which?")
    for i in indices:
        client.delete_agreement(deletable[i].id)
        print(f"  Deleted {deletable[i]}")
    return len(indices)


def run_setup(
    config_path: Path | None = None,
    country: str | None = None,
) -> dict[str, Any]:
    """Run the setup wizard.

    The flow:
    1. Ask for (or reuse) the aggregator client credentials
    2. Fetch a token and the list of institutions
    3. User picks the institutions they hold accounts with
    4. Save everything to the config file

    Args:
        config_path: Explicit config file location
        country: ISO country code to narrow the institution list

    Returns:
        The configuration dictionary
    """
    print("\n" + "=" * 50)
    print("  NJORD SETUP")
    print("=" * 50)

    config = load_config(config_path) if config_path and config_path.exists() else load_config()
    if config is None:
        config = create_default_config()

    credentials = ask_credentials(get_client_credentials(config))
    set_client_credentials(config, credentials)

    client = NordigenClient(
        credentials,
        token=get_token(config),
        redirect_url=get_redirect_url(config),
    )

    print("\nFetching institutions...")
    try:
        available = client.list_institutions(country)
    except requests.RequestException as e:
        print(f"Error fetching institutions: {e}")
        print("Please check your credentials and try again.")
        return config

    set_token(config, client.token)

    previous = get_selected_institutions(config)
    if not available and not previous:
        print("No institutions found.")
        return config

    selected = choose_institutions(available, previous)
    choose_history(selected)
    set_selected_institutions(config, selected)

    saved_path = save_json_config(config, config_path)

    print("\n" + "=" * 50)
    print("SETUP COMPLETE")
    print("=" * 50)
    print(f"\nConfiguration saved to: {saved_path}")

    if selected:
        print(f"\nSelected {len(selected)} institution(s):")
        for institution in selected:
            print(f"  - {institution}")
    else:
        print("\nNo institutions selected. Run setup again to choose some.")

    print("\nYou can now run:")
    print("  njord -o ledger.csv")

    return config


def show_current_config(config: dict[str, Any]) -> None:
    """Display the current configuration."""
    print("\n" + "=" * 50)
    print("CURRENT CONFIGURATION")
    print("=" * 50)

    credentials = get_client_credentials(config)
    if credentials:
        print(f"\nSecret id: {mask_secret(credentials.secret_id)}")
        print(f"Secret key: {mask_secret(credentials.secret_key)}")
    else:
        print("\nClient credentials: Not configured")

    token = get_token(config)
    if token:
        print(f"Refresh token valid until: {token.refresh.expires_at:%Y-%m-%d %H:%M} UTC")

    institutions = get_selected_institutions(config)
    if institutions:
        print("\nInstitutions:")
        for institution in institutions:
            linked = "linked" if institution.requisition_id else "not linked yet"
            observed = sum(len(ids) for ids in institution.observed_transactions.values())
            history = (
                f"{institution.max_historical_days} days"
                if institution.max_historical_days
                else "bank default"
            )
            print(f"  - {institution} ({linked}, history: {history})")
            print(f"    Accounts seen: {len(institution.observed_transactions)}, "
                  f"transactions exported: {observed}")
    else:
        print("\nNo institutions selected.")

    print(f"\nRedirect URL: {get_redirect_url(config)}")
