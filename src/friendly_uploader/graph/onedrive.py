"""Session entry point: wires tokens, auth flow and transport together."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from friendly_uploader.auth.flow import AuthFlow, auth_flow_from_config
from friendly_uploader.auth.tokens import TokenPair, TokenStore
from friendly_uploader.credentials import CredentialStore
from friendly_uploader.graph.client import ApiTransport
from friendly_uploader.graph.models import Drive, User

if TYPE_CHECKING:
    from friendly_uploader.config import AppConfig

logger = logging.getLogger(__name__)


class OneDrive:
    """Primary entry point for OneDrive operations.

    All entities returned from here borrow the same ApiTransport, and through
    it the one TokenStore of the session.
    """

    def __init__(self, transport: ApiTransport) -> None:
        self.transport = transport

    @property
    def tokens(self) -> TokenStore:
        return self.transport.tokens

    def me(self) -> User:
        """Retrieve the profile of the signed-in user (requires user.read or onedrive scopes)."""
        url = self.transport.url("/me")
        return User.from_response(self.transport.get_json(url), url, self.transport)

    def drive(self) -> Drive:
        """Retrieve the signed-in user's default drive."""
        url = self.transport.url("/me/drive")
        return Drive.from_response(self.transport.get_json(url), url, self.transport)


def onedrive_session(
    pair: TokenPair,
    auth_flow: AuthFlow,
    base_url: str,
    timeout: float,
) -> OneDrive:
    """Construct a OneDrive session around an existing token pair."""
    tokens = TokenStore(pair)
    transport = ApiTransport(tokens, auth_flow, base_url=base_url, timeout=timeout)
    return OneDrive(transport)


def onedrive_from_config(config: AppConfig, credentials: CredentialStore) -> OneDrive:
    """Construct a OneDrive session from configuration and stored credentials.

    Every refreshed token pair is written back to ``credentials``.

    Raises:
        ConfigurationError: If no usable credentials are stored.
    """
    session = onedrive_session(
        credentials.load(),
        auth_flow_from_config(config),
        base_url=config.graph_base_url,
        timeout=config.request_timeout,
    )
    session.tokens.subscribe(credentials.save)
    logger.info("[onedrive_from_config] session ready; credentials:%s", credentials.path)
    return session
