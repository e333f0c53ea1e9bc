"""Persistence of the token pair in a user-only readable JSON file."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from friendly_uploader.auth.tokens import TokenPair
from friendly_uploader.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Credentials file keys
FIELD_AUTH_TOKEN = "auth_token"
FIELD_REFRESH_TOKEN = "refresh_token"

_FILE_MODE = 0o600
_DIR_MODE = 0o700


class CredentialStore:
    """Loads and saves the access/refresh token pair."""

    def __init__(self, path: Path) -> None:
        """Initialise the store.

        Args:
            path: Location of the credentials file. Its parent directory is
                created on first save.
        """
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> TokenPair:
        """Read the stored pair.

        Raises:
            ConfigurationError: If the file is missing, unreadable or lacks
                either token.
        """
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigurationError(
                f"No credentials found at {self.path}. Run init to authenticate."
            ) from exc
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Unable to read credentials at {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError(f"Credentials file {self.path} is not a JSON object")
        missing = [key for key in (FIELD_AUTH_TOKEN, FIELD_REFRESH_TOKEN) if not data.get(key)]
        if missing:
            raise ConfigurationError(
                f"Credentials file {self.path} is missing {', '.join(missing)}. "
                "Run init to authenticate."
            )
        return TokenPair(
            access_token=str(data[FIELD_AUTH_TOKEN]),
            refresh_token=str(data[FIELD_REFRESH_TOKEN]),
        )

    def save(self, pair: TokenPair) -> None:
        """Write the pair, restricting access to the current user.

        The file is created with mode 0600 before any token is written to it.

        Raises:
            ConfigurationError: If the directory or file cannot be written.
        """
        directory = self.path.parent
        payload = json.dumps(
            {FIELD_AUTH_TOKEN: pair.access_token, FIELD_REFRESH_TOKEN: pair.refresh_token},
            indent=2,
        )
        try:
            if not directory.is_dir():
                directory.mkdir(mode=_DIR_MODE, parents=True)
                logger.info("[save] created config directory; path:%s", directory)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                os.chmod(self.path, _FILE_MODE)
                handle.write(payload)
        except OSError as exc:
            raise ConfigurationError(f"Unable to save credentials to {self.path}: {exc}") from exc
        logger.info("[save] saved credentials; path:%s", self.path)
