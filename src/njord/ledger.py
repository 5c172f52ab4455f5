"""Write the matched ledger to CSV."""

import csv
from collections.abc import Iterable
from pathlib import Path

from njord.models import Transaction

FIELDNAMES = ["date", "account_from", "account_to", "amount", "currency", "description"]


def write_csv(
    transactions: Iterable[Transaction],
    output_path: Path,
    delimiter: str = ",",
) -> int:
    """
    Write transactions to a CSV file in list order.

    Args:
        transactions: Normal and transfer transactions
        output_path: Output file path
        delimiter: CSV delimiter (default comma)

    Returns:
        Number of rows written
    """
    rows = 0
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=FIELDNAMES, delimiter=delimiter)
        writer.writeheader()
        for tx in transactions:
            writer.writerow(tx.to_dict())
            rows += 1
    return rows
