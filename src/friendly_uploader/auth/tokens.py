"""In-memory holder of the live access/refresh token pair."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from friendly_uploader.errors import FriendlyUploaderError, MalformedResponseError

logger = logging.getLogger(__name__)

# Token endpoint JSON field names
FIELD_ACCESS_TOKEN = "access_token"
FIELD_REFRESH_TOKEN = "refresh_token"
FIELD_EXPIRES_IN = "expires_in"
FIELD_TOKEN_TYPE = "token_type"
FIELD_SCOPE = "scope"
FIELD_USER_ID = "user_id"


@dataclass(frozen=True, repr=False)
class TokenPair:
    """Access and refresh token issued together by the identity provider.

    ``expires_in`` is advisory only; refresh happens when the API answers 401.
    """

    access_token: str
    refresh_token: str
    expires_in: int | None = None
    token_type: str | None = None
    scope: str | None = None
    user_id: str | None = None

    @classmethod
    def from_token_response(cls, data: dict[str, Any]) -> TokenPair:
        """Build a pair from a token endpoint JSON body.

        Raises:
            MalformedResponseError: If either token is missing or empty, or
                ``expires_in`` is not a number.
        """
        access_token = data.get(FIELD_ACCESS_TOKEN)
        refresh_token = data.get(FIELD_REFRESH_TOKEN)
        if not access_token or not refresh_token:
            missing = [
                name
                for name, value in (
                    (FIELD_ACCESS_TOKEN, access_token),
                    (FIELD_REFRESH_TOKEN, refresh_token),
                )
                if not value
            ]
            raise MalformedResponseError(
                f"Token response is missing {', '.join(missing)}"
            )
        expires_in = data.get(FIELD_EXPIRES_IN)
        if expires_in is not None:
            try:
                expires_in = int(expires_in)
            except (TypeError, ValueError) as exc:
                raise MalformedResponseError(
                    f"Token response has a non-numeric expires_in: {expires_in!r}"
                ) from exc
        return cls(
            access_token=str(access_token),
            refresh_token=str(refresh_token),
            expires_in=expires_in,
            token_type=data.get(FIELD_TOKEN_TYPE),
            scope=data.get(FIELD_SCOPE),
            user_id=data.get(FIELD_USER_ID),
        )

    def __repr__(self) -> str:
        return f"TokenPair(token_type={self.token_type!r}, expires_in={self.expires_in!r})"


TokenListener = Callable[[TokenPair], None]
Refresher = Callable[[str], TokenPair]


class TokenStore:
    """Single owner of the session's TokenPair.

    Reads and writes go through a lock. ``refresh`` is single-flight: callers
    that observed the same stale access token share one refresh round trip,
    since the provider may rotate the refresh token and invalidate the old one.
    """

    def __init__(self, pair: TokenPair) -> None:
        self._pair = pair
        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._listeners: list[TokenListener] = []

    @property
    def pair(self) -> TokenPair:
        with self._lock:
            return self._pair

    @property
    def access_token(self) -> str:
        return self.pair.access_token

    @property
    def refresh_token(self) -> str:
        return self.pair.refresh_token

    def subscribe(self, listener: TokenListener) -> None:
        """Register a callback invoked with every new pair, e.g. to persist it."""
        self._listeners.append(listener)

    def replace(self, pair: TokenPair) -> None:
        """Swap in a new pair atomically and notify listeners.

        The new pair is live even when a listener fails; listener errors are
        logged so an in-flight request can still be retried with it.
        """
        with self._lock:
            self._pair = pair
        for listener in self._listeners:
            try:
                listener(pair)
            except (FriendlyUploaderError, OSError):
                logger.exception("[replace] token listener failed; new pair kept in memory only")

    def refresh(self, refresher: Refresher, stale_access_token: str) -> TokenPair:
        """Replace the pair using ``refresher`` unless another caller already did.

        Args:
            refresher: Callable exchanging a refresh token for a new pair.
            stale_access_token: Access token the caller saw rejected.

        Returns:
            The pair now live in the store.
        """
        with self._refresh_lock:
            current = self.pair
            if current.access_token != stale_access_token:
                logger.info("[refresh] token already refreshed by another caller; reusing")
                return current
            new_pair = refresher(current.refresh_token)
            self.replace(new_pair)
            logger.info("[refresh] token pair replaced; expires_in:%s", new_pair.expires_in)
            return new_pair
