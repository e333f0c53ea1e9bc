"""OAuth2 authorization code flow against the Microsoft account identity provider.

App registration: https://aka.ms/AppRegistrations
Protocol reference:
https://learn.microsoft.com/onedrive/developer/rest-api/getting-started/msa-oauth
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib import request as urllib_request
from urllib.parse import parse_qs, quote, urlencode, urlparse

from friendly_uploader import net
from friendly_uploader.auth.tokens import TokenPair
from friendly_uploader.errors import (
    MalformedResponseError,
    MissingCodeError,
    TokenEndpointError,
    TokenExchangeError,
    TokenRefreshError,
)

if TYPE_CHECKING:
    from friendly_uploader.config import AppConfig

logger = logging.getLogger(__name__)

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"
RESPONSE_TYPE_CODE = "code"
PARAM_CODE = "code"
PARAM_ERROR = "error"
PARAM_ERROR_DESCRIPTION = "error_description"


@dataclass(frozen=True)
class AuthorizationRequest:
    """Parameters of the browser-facing authorization request."""

    client_id: str
    redirect_uri: str
    scopes: tuple[str, ...]
    response_type: str = RESPONSE_TYPE_CODE

    def to_url(self, authorize_url: str) -> str:
        """Render the request as a URL on ``authorize_url``."""
        # Scopes are fully escaped (spaces as %20); the redirect URI keeps ':' and '/'.
        query = "&".join(
            (
                f"client_id={quote(self.client_id, safe='')}",
                f"scope={quote(' '.join(self.scopes), safe='')}",
                f"response_type={self.response_type}",
                f"redirect_uri={quote(self.redirect_uri, safe=':/')}",
            )
        )
        return f"{authorize_url}?{query}"


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: Iterable[str],
    authorize_url: str = "https://login.live.com/oauth20_authorize.srf",
) -> str:
    """Build the URL the user opens in a browser to grant access.

    Pure string construction; no network call is made.

    Args:
        client_id: Application (client) ID.
        redirect_uri: URI the provider redirects to after consent.
        scopes: Requested scopes; space-joined and percent-encoded.
        authorize_url: Authorization endpoint.

    Returns:
        Authorization URL with client_id, scope, response_type=code and
        redirect_uri query parameters.
    """
    request = AuthorizationRequest(
        client_id=client_id,
        redirect_uri=redirect_uri,
        scopes=tuple(scopes),
    )
    return request.to_url(authorize_url)


def extract_code(redirect_response_url: str) -> str:
    """Return the authorization code carried by a redirect URL.

    Args:
        redirect_response_url: Full URL the provider redirected the browser to,
            either captured by the loopback listener or pasted by the user.

    Returns:
        Value of the ``code`` query parameter.

    Raises:
        MissingCodeError: If the URL has no non-empty ``code`` parameter.
    """
    params = parse_qs(urlparse(redirect_response_url.strip()).query)
    codes = [code for code in params.get(PARAM_CODE, []) if code]
    if codes:
        return codes[0]

    if PARAM_ERROR in params:
        error = params[PARAM_ERROR][0]
        description = params.get(PARAM_ERROR_DESCRIPTION, ["No description provided"])[0]
        raise MissingCodeError(
            f"Authorization was refused: {error} ({description}). Run init again."
        )
    raise MissingCodeError(
        "Redirect URL did not contain an authorization code. Run init again."
    )


class AuthFlow:
    """Exchanges authorization codes and refresh tokens at the token endpoint."""

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: Iterable[str],
        authorize_url: str,
        token_url: str,
        opener: urllib_request.OpenerDirector | None = None,
        timeout: float = net.DEFAULT_TIMEOUT,
    ) -> None:
        """Initialise the flow.

        Args:
            client_id: Application (client) ID.
            redirect_uri: Redirect URI registered for the application.
            scopes: Scopes to request during authorization.
            authorize_url: Authorization endpoint.
            token_url: Token endpoint.
            opener: urllib opener; defaults to one that never follows redirects.
            timeout: Per-request timeout in seconds.
        """
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.scopes = tuple(scopes)
        self.authorize_url = authorize_url
        self.token_url = token_url
        self._opener = opener or net.build_opener()
        self._timeout = timeout

    def authorization_url(self) -> str:
        return build_authorization_url(
            self.client_id, self.redirect_uri, self.scopes, self.authorize_url
        )

    def exchange_code(self, code: str) -> TokenPair:
        """Exchange a one-time authorization code for a token pair.

        Raises:
            TokenExchangeError: If the provider rejects the code or answers
                with an unusable body.
        """
        logger.info("[exchange_code] exchanging authorization code for tokens")
        return self._request_tokens(
            {PARAM_CODE: code, "grant_type": GRANT_AUTHORIZATION_CODE},
            TokenExchangeError,
        )

    def refresh(self, refresh_token: str) -> TokenPair:
        """Obtain a new token pair from a refresh token.

        The returned pair supersedes the caller's pair in full; the provider
        may rotate the refresh token.

        Raises:
            TokenRefreshError: If the provider rejects the refresh token or
                answers with an unusable body.
        """
        logger.info("[refresh] requesting new token pair")
        return self._request_tokens(
            {GRANT_REFRESH_TOKEN: refresh_token, "grant_type": GRANT_REFRESH_TOKEN},
            TokenRefreshError,
        )

    def _request_tokens(
        self, grant: dict[str, str], error_cls: type[TokenEndpointError]
    ) -> TokenPair:
        form = {"client_id": self.client_id, "redirect_uri": self.redirect_uri, **grant}
        req = urllib_request.Request(
            self.token_url,
            data=urlencode(form).encode("ascii"),
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
            method="POST",
        )
        try:
            response = net.send(self._opener, req, self._timeout)
        except net.NetworkError as exc:
            raise error_cls(0, str(exc)) from exc

        if not response.ok:
            logger.error(
                "[_request_tokens] token endpoint rejected request; grant_type:%s;status:%d",
                grant["grant_type"],
                response.status,
            )
            raise error_cls(response.status, response.text)

        try:
            return TokenPair.from_token_response(response.json())
        except MalformedResponseError as exc:
            logger.error("[_request_tokens] unusable token response; grant_type:%s", grant["grant_type"])
            raise error_cls(response.status, str(exc)) from exc


def auth_flow_from_config(config: AppConfig) -> AuthFlow:
    """Construct an AuthFlow from application configuration."""
    return AuthFlow(
        client_id=config.client_id,
        redirect_uri=config.redirect_uri,
        scopes=config.scopes,
        authorize_url=config.authorize_url,
        token_url=config.token_url,
        timeout=config.request_timeout,
    )
