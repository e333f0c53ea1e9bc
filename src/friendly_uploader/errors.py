"""Exception hierarchy shared by the auth, graph and CLI layers."""

from __future__ import annotations


class FriendlyUploaderError(Exception):
    """Base exception for all friendly-uploader errors."""


class ConfigurationError(FriendlyUploaderError):
    """Raised when settings or the stored credentials are unusable."""


class MissingCodeError(FriendlyUploaderError):
    """Raised when a redirect URL carries no authorization code."""


class RedirectTimeoutError(FriendlyUploaderError):
    """Raised when the browser redirect never reaches the loopback listener."""


class TokenEndpointError(FriendlyUploaderError):
    """Raised when the identity provider's token endpoint rejects a request."""

    action = "Token request"

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"{self.action} failed with status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class TokenExchangeError(TokenEndpointError):
    """Raised when an authorization code cannot be exchanged for tokens."""

    action = "Token exchange"


class TokenRefreshError(TokenEndpointError):
    """Raised when a refresh token is rejected."""

    action = "Token refresh"


class GraphApiError(FriendlyUploaderError):
    """Raised when the Graph API returns a non-2xx response."""

    def __init__(self, status_code: int, message: str, body: str = "") -> None:
        super().__init__(f"Graph API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.body = body


class MalformedResponseError(FriendlyUploaderError):
    """Raised when a response body does not have the expected shape."""
