"""Tests for ledger output."""

import csv
from datetime import date
from decimal import Decimal
from pathlib import Path

from builders import normal

from njord.ledger import FIELDNAMES, write_csv
from njord.models import Account, TransferTransaction


class TestWriteCsv:
    """Tests for write_csv function."""

    def test_writes_rows_in_order(self, tmp_path: Path, a1: Account, a2: Account) -> None:
        """Test normals and transfers are written in list order with a header."""
        transfer = TransferTransaction(
            from_account=a1,
            to_account=a2,
            amount=Decimal("100.00"),
            currency="EUR",
            date=date(2024, 3, 1),
            from_additional_info="out",
            to_additional_info="in",
        )
        ledger = [normal(a2, "2024-02-01", "-4.50", "Coffee, large"), transfer]
        output = tmp_path / "ledger.csv"

        rows = write_csv(ledger, output)

        assert rows == 2
        with open(output, newline="") as f:
            reader = csv.DictReader(f)
            assert reader.fieldnames == FIELDNAMES
            written = list(reader)
        assert written[0] == {
            "date": "2024-02-01",
            "account_from": "Savings",
            "account_to": "",
            "amount": "-4.50",
            "currency": "EUR",
            "description": "Coffee, large",
        }
        assert written[1]["account_to"] == "Savings"
        assert written[1]["description"] == "from: out to: in"

    def test_tab_delimiter(self, tmp_path: Path, a1: Account) -> None:
        """Test TSV output."""
        output = tmp_path / "ledger.tsv"

        write_csv([normal(a1, "2024-02-01", "1")], output, delimiter="\t")

        lines = output.read_text().splitlines()
        assert lines[0] == "\t".join(FIELDNAMES)
        assert lines[1] == "2024-02-01\tChecking\t\t1\tEUR\t"

    def test_empty_ledger_writes_header(self, tmp_path: Path) -> None:
        """Test an empty ledger still gets a header row."""
        output = tmp_path / "ledger.csv"

        assert write_csv([], output) == 0
        assert output.read_text().splitlines() == [",".join(FIELDNAMES)]
