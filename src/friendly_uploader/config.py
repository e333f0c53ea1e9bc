"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path

from friendly_uploader.errors import ConfigurationError

DEFAULT_CLIENT_ID = "f9b7e56c-0d02-4ba4-b1ee-24a98f591be4"
DEFAULT_REDIRECT_URI = "http://127.0.0.1:8080/"
DEFAULT_SCOPES = ("onedrive.readwrite", "offline_access")
DEFAULT_AUTHORIZE_URL = "https://login.live.com/oauth20_authorize.srf"
DEFAULT_TOKEN_URL = "https://login.live.com/oauth20_token.srf"
DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_CONFIG_DIR = Path.home() / ".onedrive_manager"
CREDENTIALS_FILENAME = "credentials.json"


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    Every field has a default matching the registered OneDrive application,
    so the tool works without any environment set. Each default can be
    overridden via environment variables.
    """

    client_id: str = DEFAULT_CLIENT_ID
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    authorize_url: str = DEFAULT_AUTHORIZE_URL
    token_url: str = DEFAULT_TOKEN_URL
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    config_dir: Path = DEFAULT_CONFIG_DIR
    request_timeout: float = 60.0
    login_timeout: float = 300.0

    @property
    def credentials_path(self) -> Path:
        """Location of the persisted token pair."""
        return self.config_dir / CREDENTIALS_FILENAME


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number of seconds, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Optional environment variables (with defaults):
        FU_CLIENT_ID: OAuth application (client) ID.
        FU_REDIRECT_URI: Redirect URI registered for the application.
        FU_SCOPES: Space-separated OAuth scopes.
        FU_AUTHORIZE_URL: Identity provider authorization endpoint.
        FU_TOKEN_URL: Identity provider token endpoint.
        FU_GRAPH_BASE_URL: Microsoft Graph base URL.
        FU_CONFIG_DIR: Directory holding the credentials file (default: ~/.onedrive_manager).
        FU_REQUEST_TIMEOUT: Per-request HTTP timeout in seconds (default: 60).
        FU_LOGIN_TIMEOUT: Seconds to wait for the browser redirect (default: 300).

    Returns:
        Configured AppConfig instance.

    Raises:
        ConfigurationError: If a numeric setting is not a positive number.
    """
    scopes = os.environ.get("FU_SCOPES")
    config_dir = os.environ.get("FU_CONFIG_DIR")
    return AppConfig(
        client_id=os.environ.get("FU_CLIENT_ID", DEFAULT_CLIENT_ID),
        redirect_uri=os.environ.get("FU_REDIRECT_URI", DEFAULT_REDIRECT_URI),
        scopes=tuple(scopes.split()) if scopes else DEFAULT_SCOPES,
        authorize_url=os.environ.get("FU_AUTHORIZE_URL", DEFAULT_AUTHORIZE_URL),
        token_url=os.environ.get("FU_TOKEN_URL", DEFAULT_TOKEN_URL),
        graph_base_url=os.environ.get("FU_GRAPH_BASE_URL", DEFAULT_GRAPH_BASE_URL).rstrip("/"),
        config_dir=Path(config_dir).expanduser() if config_dir else DEFAULT_CONFIG_DIR,
        request_timeout=_float_env("FU_REQUEST_TIMEOUT", 60.0),
        login_timeout=_float_env("FU_LOGIN_TIMEOUT", 300.0),
    )
