"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from njord.models import Account


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep every test away from the real config file and credentials."""
    xdg = tmp_path / "xdg_config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    monkeypatch.delenv("NJORD_SECRET_ID", raising=False)
    monkeypatch.delenv("NJORD_SECRET_KEY", raising=False)
    monkeypatch.delenv("NJORD_API_URL", raising=False)
    monkeypatch.chdir(tmp_path)
    return xdg


@pytest.fixture
def a1() -> Account:
    """Checking account."""
    return Account(id="A1", iban="SE0000000000000000000001", name="Checking")


@pytest.fixture
def a2() -> Account:
    """Savings account."""
    return Account(id="A2", iban="SE0000000000000000000002", display_name="Savings")


@pytest.fixture
def a3() -> Account:
    """Account without any labels."""
    return Account(id="A3")
