"""Parsing utilities for aggregator payloads and dump files."""

import json
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any


def parse_date(date_str: str | None) -> date | None:
    """
    Parse an ISO calendar date.

    Accepts ``YYYY-MM-DD`` and full ISO timestamps (the time part is
    dropped, some institutions send ``2024-01-10T00:00:00``).

    Args:
        date_str: Date string to parse

    Returns:
        date object if successful, None otherwise
    """
    if not date_str:
        return None

    date_str = date_str.strip().strip('"').strip()
    if not date_str:
        return None

    try:
        return date.fromisoformat(date_str[:10])
    except ValueError:
        return None


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO timestamp; naive values are taken to be UTC."""
    if not value:
        return None
    try:
        # fromisoformat only reads a "Z" suffix from Python 3.11 on
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_amount(amount: str | int | Decimal | None) -> Decimal | None:
    """
    Parse an amount to an exact Decimal.

    The aggregator sends amounts as decimal strings (``"-50.00"``). Floats
    are refused so that binary rounding never reaches the matcher.

    Args:
        amount: Amount string (or int, or Decimal from a JSON dump) to parse

    Returns:
        Decimal if successful, None otherwise
    """
    if amount is None or isinstance(amount, (bool, float)):
        return None
    if isinstance(amount, Decimal):
        return amount if amount.is_finite() else None
    if isinstance(amount, int):
        return Decimal(amount)

    amount = amount.strip().strip('"').strip()
    if not amount:
        return None

    try:
        value = Decimal(amount)
    except InvalidOperation:
        return None

    if not value.is_finite():
        return None
    return value


def read_json_file(filepath: Path) -> Any:
    """
    Read and decode a JSON file.

    Args:
        filepath: Path to the file

    Returns:
        Decoded JSON document (floats decoded as Decimal)

    Raises:
        ValueError: If the file cannot be read or is not valid JSON
    """
    if not filepath.exists():
        raise ValueError(f"File not found: {filepath}")

    try:
        with open(filepath, encoding="utf-8-sig") as f:
            return json.load(f, parse_float=Decimal)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Could not read {filepath}: {e}") from e
