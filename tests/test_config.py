"""Tests for configuration management."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from njord.config import (
    config_exists,
    create_default_config,
    find_config_file,
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
from njord.nordigen import (
    DEFAULT_REDIRECT_URL,
    ClientCredentials,
    Institution,
    Token,
    TokenPart,
)


def make_token() -> Token:
    return Token(
        access=TokenPart("acc", datetime(2030, 1, 1, tzinfo=timezone.utc)),
        refresh=TokenPart("ref", datetime(2030, 1, 30, tzinfo=timezone.utc)),
    )


class TestFindConfigFile:
    """Tests for find_config_file function."""

    def test_finds_config_in_current_dir(self, tmp_path: Path) -> None:
        """Test finding config.json in current directory."""
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        result = find_config_file()

        assert result is not None
        assert result.resolve() == config_file.resolve()

    def test_finds_config_in_xdg_dir(self, isolated_config: Path) -> None:
        """Test finding config in XDG config directory."""
        config_dir = isolated_config / "njord"
        config_dir.mkdir(parents=True)
        config_file = config_dir / "config.json"
        config_file.write_text("{}")

        result = find_config_file()

        assert result == config_file

    def test_current_dir_takes_precedence(self, tmp_path: Path, isolated_config: Path) -> None:
        """Test current directory config takes precedence over XDG."""
        config_dir = isolated_config / "njord"
        config_dir.mkdir(parents=True)
        (config_dir / "config.json").write_text("{}")

        cwd_config = tmp_path / "config.json"
        cwd_config.write_text("{}")

        result = find_config_file()

        assert result is not None
        assert result.resolve() == cwd_config.resolve()

    def test_returns_none_when_no_config(self) -> None:
        """Test returns None when no config file exists."""
        assert find_config_file() is None


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_explicit_path(self, tmp_path: Path) -> None:
        """Test loading from explicit path."""
        config_file = tmp_path / "elsewhere.json"
        config_data = {"selected_institutions": [{"id": "BANK_X", "name": "Bank X"}]}
        config_file.write_text(json.dumps(config_data))

        result = load_config(config_file)

        assert result == config_data

    def test_returns_none_when_no_config(self) -> None:
        """Test returns None when no config exists."""
        assert load_config() is None

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        """Test a corrupt config file is an error, not an empty config."""
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with pytest.raises(ValueError):
            load_config(config_file)


class TestSaveJsonConfig:
    """Tests for save_json_config function."""

    def test_saves_to_explicit_path(self, tmp_path: Path) -> None:
        """Test saving to explicit path."""
        config_file = tmp_path / "config.json"
        config_data = create_default_config()

        result = save_json_config(config_data, config_file)

        assert result == config_file
        assert json.loads(config_file.read_text()) == config_data

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        """Test creates parent directories if needed."""
        config_file = tmp_path / "subdir" / "config.json"

        save_json_config({}, config_file)

        assert config_file.exists()

    def test_defaults_to_xdg_location(self, isolated_config: Path) -> None:
        """Test saving without a path goes to the XDG config file."""
        result = save_json_config({"token": None})

        assert result == isolated_config / "njord" / "config.json"
        assert result.exists()

    def test_overwrites_file_that_was_found(self, tmp_path: Path) -> None:
        """Test saving without a path updates the config that is in use."""
        cwd_config = tmp_path / "config.json"
        cwd_config.write_text("{}")

        result = save_json_config({"token": None})

        assert result.resolve() == cwd_config.resolve()
        assert json.loads(cwd_config.read_text()) == {"token": None}


class TestConfigExists:
    """Tests for config_exists function."""

    def test_returns_true_when_exists(self, tmp_path: Path) -> None:
        """Test returns True when config exists."""
        (tmp_path / "config.json").write_text("{}")

        assert config_exists() is True

    def test_returns_false_when_not_exists(self) -> None:
        """Test returns False when no config exists."""
        assert config_exists() is False


class TestClientCredentials:
    """Tests for get_client_credentials and set_client_credentials."""

    def test_returns_none_when_no_config(self) -> None:
        """Test returns None when nothing is configured."""
        assert get_client_credentials(None) is None

    def test_reads_from_config(self) -> None:
        """Test credentials come from the config file."""
        config = {"client_credentials": {"secret_id": "id", "secret_key": "key"}}

        assert get_client_credentials(config) == ClientCredentials("id", "key")

    def test_environment_takes_precedence(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test both environment variables override the config."""
        monkeypatch.setenv("NJORD_SECRET_ID", "env-id")
        monkeypatch.setenv("NJORD_SECRET_KEY", "env-key")
        config = {"client_credentials": {"secret_id": "id", "secret_key": "key"}}

        assert get_client_credentials(config) == ClientCredentials("env-id", "env-key")

    def test_environment_needs_both_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a lone environment variable is ignored."""
        monkeypatch.setenv("NJORD_SECRET_ID", "env-id")

        assert get_client_credentials({}) is None

    def test_changing_credentials_drops_token(self) -> None:
        """Test a token issued for other credentials is discarded."""
        config = create_default_config()
        set_client_credentials(config, ClientCredentials("id", "key"))
        set_token(config, make_token())

        set_client_credentials(config, ClientCredentials("id", "other"))

        assert config["token"] is None
        assert config["client_credentials"] == {"secret_id": "id", "secret_key": "other"}

    def test_same_credentials_keep_token(self) -> None:
        """Test storing the same credentials again keeps the token."""
        config = create_default_config()
        set_client_credentials(config, ClientCredentials("id", "key"))
        set_token(config, make_token())

        set_client_credentials(config, ClientCredentials("id", "key"))

        assert get_token(config) == make_token()


class TestToken:
    """Tests for get_token and set_token."""

    def test_round_trip(self) -> None:
        """Test a stored token reads back equal."""
        config: dict = {}

        set_token(config, make_token())

        assert get_token(config) == make_token()

    def test_clearing(self) -> None:
        """Test storing None clears the token."""
        config = {"token": make_token().to_dict()}

        set_token(config, None)

        assert get_token(config) is None

    def test_unreadable_token_is_ignored(self) -> None:
        """Test a damaged token is treated as absent."""
        config = {"token": {"access": {"secret": "x", "expires_at": "soon"}, "refresh": {}}}

        assert get_token(config) is None


class TestSelectedInstitutions:
    """Tests for get_selected_institutions and set_selected_institutions."""

    def test_returns_empty_list_when_no_config(self) -> None:
        """Test returns empty list when config is None."""
        assert get_selected_institutions(None) == []

    def test_round_trip_keeps_observed_ids(self) -> None:
        """Test requisitions and observed ids survive a save and load."""
        config = create_default_config()
        institution = Institution(
            id="BANK_X",
            name="Bank X",
            countries=["SE"],
            requisition_id="req-1",
            observed_transactions={"acc-1": ["t1", "t2"]},
        )

        set_selected_institutions(config, [institution])
        reloaded = get_selected_institutions(json.loads(json.dumps(config)))

        assert reloaded == [institution]


class TestRedirectUrl:
    """Tests for get_redirect_url function."""

    def test_default(self) -> None:
        """Test the default redirect applies when none is configured."""
        assert get_redirect_url({}) == DEFAULT_REDIRECT_URL

    def test_configured(self) -> None:
        """Test a configured redirect is used."""
        assert get_redirect_url({"redirect_url": "https://example.org/back"}) == (
            "https://example.org/back"
        )


class TestCreateDefaultConfig:
    """Tests for create_default_config function."""

    def test_creates_valid_structure(self) -> None:
        """Test creates valid config structure."""
        config = create_default_config()

        assert config["client_credentials"] is None
        assert config["token"] is None
        assert config["selected_institutions"] == []
        assert config["redirect_url"] == DEFAULT_REDIRECT_URL
