"""Authenticated transport for the Microsoft Graph API with one-shot token refresh."""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from urllib import request as urllib_request

from friendly_uploader import net
from friendly_uploader.errors import GraphApiError

if TYPE_CHECKING:
    from friendly_uploader.auth.flow import AuthFlow
    from friendly_uploader.auth.tokens import TokenStore

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


class ApiTransport:
    """Sends bearer-authenticated requests to the Graph API.

    On a 401 the token pair is refreshed through the TokenStore and the
    request is sent once more with the new access token. The retry budget is
    exactly one per call, so a permanently invalid credential fails after two
    API round trips and one refresh round trip.
    """

    def __init__(
        self,
        tokens: TokenStore,
        auth_flow: AuthFlow,
        base_url: str = GRAPH_BASE_URL,
        opener: urllib_request.OpenerDirector | None = None,
        timeout: float = net.DEFAULT_TIMEOUT,
    ) -> None:
        """Initialise the transport.

        Args:
            tokens: Session-wide token store; the only place tokens are written.
            auth_flow: Flow used to refresh the pair after a 401.
            base_url: Graph API root used to build resource URLs.
            opener: urllib opener; defaults to one that never follows redirects.
            timeout: Per-request timeout in seconds.
        """
        self.tokens = tokens
        self.base_url = base_url.rstrip("/")
        self._auth = auth_flow
        self._opener = opener or net.build_opener()
        self._timeout = timeout

    def url(self, path: str) -> str:
        """Resolve a path relative to the Graph base URL (must start with '/')."""
        return f"{self.base_url}{path}"

    def authenticated_request(
        self,
        method: str,
        url: str,
        *,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> net.HttpResponse:
        """Perform an authenticated request, refreshing the token once on 401.

        Args:
            method: HTTP method.
            url: Absolute request URL.
            data: Optional request body.
            headers: Extra request headers.

        Returns:
            The 2xx response.

        Raises:
            GraphApiError: If the response (or the retry after a refresh) is
                not 2xx, or if the server could not be reached.
            TokenRefreshError: If the 401-triggered refresh is rejected.
        """
        stale_token = self.tokens.access_token
        response = self._send(method, url, stale_token, data, headers)
        if response.ok:
            return response

        if response.status != HTTPStatus.UNAUTHORIZED:
            raise self._api_error(method, url, response)

        logger.warning("[authenticated_request] unauthorized; refreshing token; method:%s", method)
        pair = self.tokens.refresh(self._auth.refresh, stale_access_token=stale_token)

        response = self._send(method, url, pair.access_token, data, headers)
        if response.ok:
            return response
        raise self._api_error(method, url, response)

    request = authenticated_request

    def get_json(self, url: str) -> dict[str, Any]:
        """GET ``url`` and parse the body as a JSON object.

        Raises:
            GraphApiError: On a non-2xx response.
            MalformedResponseError: If the body is not a JSON object.
        """
        return self.authenticated_request(
            "GET", url, headers={"Accept": "application/json"}
        ).json()

    def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON payload and parse the JSON object response."""
        return self.authenticated_request(
            "POST",
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        ).json()

    def put_content(
        self,
        url: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> dict[str, Any]:
        """PUT raw bytes and parse the JSON object response.

        Args:
            url: Absolute URL of the content endpoint.
            content: Raw bytes to upload.
            content_type: MIME type for the Content-Type header.
        """
        return self.authenticated_request(
            "PUT",
            url,
            data=content,
            headers={"Content-Type": content_type, "Accept": "application/json"},
        ).json()

    def send_unauthenticated(
        self,
        method: str,
        url: str,
        *,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> net.HttpResponse:
        """Send a request without a bearer token, e.g. to a pre-authenticated upload URL.

        Raises:
            GraphApiError: On a non-2xx response or a network failure.
        """
        response = self._dispatch(method, url, data, headers or {})
        if not response.ok:
            raise self._api_error(method, url, response)
        return response

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _send(
        self,
        method: str,
        url: str,
        token: str,
        data: bytes | None,
        headers: dict[str, str] | None,
    ) -> net.HttpResponse:
        return self._dispatch(
            method, url, data, {**(headers or {}), "Authorization": f"Bearer {token}"}
        )

    def _dispatch(
        self,
        method: str,
        url: str,
        data: bytes | None,
        headers: dict[str, str],
    ) -> net.HttpResponse:
        req = urllib_request.Request(url, data=data, headers=headers, method=method)
        try:
            response = net.send(self._opener, req, self._timeout)
        except net.NetworkError as exc:
            raise GraphApiError(0, str(exc)) from exc
        logger.debug("[_dispatch] response; method:%s;status:%d", method, response.status)
        return response

    @staticmethod
    def _api_error(method: str, url: str, response: net.HttpResponse) -> GraphApiError:
        try:
            detail = json.loads(response.body).get("error", {}).get("message") or ""
        except (ValueError, AttributeError):
            detail = ""
        if not detail:
            try:
                detail = HTTPStatus(response.status).phrase
            except ValueError:
                detail = "Unexpected status"
        logger.error(
            "[_api_error] request failed; method:%s;url:%s;status:%d",
            method,
            url.split("?", 1)[0],
            response.status,
        )
        return GraphApiError(response.status, detail, response.text)
