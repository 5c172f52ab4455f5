"""Configuration management for njord."""

import json
import os
from pathlib import Path
from typing import Any

from njord.nordigen import DEFAULT_REDIRECT_URL, ClientCredentials, Institution, Token

# Default config filename
CONFIG_FILENAME = "config.json"


def get_config_dir() -> Path:
    """Get the config directory path (XDG compliant)."""
    xdg_config_home = os.getenv("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config_home) / "njord"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_config_dir() / CONFIG_FILENAME


def find_config_file() -> Path | None:
    """Find the config file in standard locations.

    Searches for config in the following order:
    1. config.json in current directory
    2. XDG config: ~/.config/njord/config.json
    """
    config_paths = [
        Path(CONFIG_FILENAME),
        get_config_path(),
    ]

    for path in config_paths:
        if path.exists():
            return path

    return None


def load_json_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(config_path) as f:
        return json.load(f)  # type: ignore[no-any-return]


def save_json_config(config: dict[str, Any], config_path: Path | None = None) -> Path:
    """Save configuration to a JSON file.

    Args:
        config: Configuration dictionary to save
        config_path: Path to save to (defaults to XDG config location)

    Returns:
        Path where config was saved
    """
    if config_path is None:
        config_path = find_config_file() or get_config_path()

    # Ensure directory exists
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        json.dump(config, f, indent=2)
        f.write("\n")

    return config_path


def load_config(config_path: Path | None = None) -> dict[str, Any] | None:
    """Load configuration from config file.

    Args:
        config_path: Explicit path to config.json file

    Returns:
        Loaded config dict or None if not found
    """
    if config_path:
        return load_json_config(config_path)

    config_file = find_config_file()
    if config_file:
        return load_json_config(config_file)

    return None


def config_exists() -> bool:
    """Check if any config file exists."""
    return find_config_file() is not None


def create_default_config() -> dict[str, Any]:
    """Create a default empty configuration."""
    return {
        "client_credentials": None,
        "token": None,
        "selected_institutions": [],
        "redirect_url": DEFAULT_REDIRECT_URL,
    }


def get_client_credentials(config: dict[str, Any] | None = None) -> ClientCredentials | None:
    """Get the aggregator client credentials.

    The NJORD_SECRET_ID / NJORD_SECRET_KEY environment variables take
    precedence over the config file when both are set.

    Args:
        config: Loaded JSON config

    Returns:
        ClientCredentials or None if not configured
    """
    secret_id = os.getenv("NJORD_SECRET_ID")
    secret_key = os.getenv("NJORD_SECRET_KEY")
    if secret_id and secret_key:
        return ClientCredentials(secret_id=secret_id, secret_key=secret_key)

    if config and config.get("client_credentials"):
        return ClientCredentials.from_dict(config["client_credentials"])

    return None


def set_client_credentials(config: dict[str, Any], credentials: ClientCredentials) -> None:
    """Store credentials, dropping any token issued for other credentials."""
    previous = config.get("client_credentials")
    if previous != credentials.to_dict():
        config["token"] = None
    config["client_credentials"] = credentials.to_dict()


def get_token(config: dict[str, Any] | None = None) -> Token | None:
    """Get the cached token pair, if any and if readable."""
    if not config or not config.get("token"):
        return None
    try:
        return Token.from_dict(config["token"])
    except (KeyError, TypeError, ValueError):
        return None


def set_token(config: dict[str, Any], token: Token | None) -> None:
    """Cache the token pair in the config."""
    config["token"] = token.to_dict() if token else None


def get_selected_institutions(config: dict[str, Any] | None = None) -> list[Institution]:
    """Get the institutions chosen during setup.

    Args:
        config: Loaded JSON config

    Returns:
        List of Institution objects (empty when not configured)
    """
    if not config:
        return []
    return [Institution.from_dict(item) for item in config.get("selected_institutions", [])]


def set_selected_institutions(config: dict[str, Any], institutions: list[Institution]) -> None:
    """Store the chosen institutions along with their requisitions and observed ids."""
    config["selected_institutions"] = [institution.to_dict() for institution in institutions]


def get_redirect_url(config: dict[str, Any] | None = None) -> str:
    """Get the URL the consent flow returns to."""
    if config and config.get("redirect_url"):
        return config["redirect_url"]  # type: ignore[no-any-return]
    return DEFAULT_REDIRECT_URL
