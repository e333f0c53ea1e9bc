"""One-shot loopback listener that captures the browser redirect after consent."""

from __future__ import annotations

import logging
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import urlparse

from friendly_uploader.errors import ConfigurationError, RedirectTimeoutError

logger = logging.getLogger(__name__)

_RESPONSE_PAGE = (
    b"<html><body><h1>Authentication complete</h1>"
    b"<p>You can close this window and return to the terminal.</p></body></html>"
)


class _RedirectHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802
        self.server.captured_path = self.path  # type: ignore[attr-defined]
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(_RESPONSE_PAGE)))
        self.end_headers()
        self.wfile.write(_RESPONSE_PAGE)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        logger.debug("[_RedirectHandler] %s", format % args)


def capture_redirect(redirect_uri: str, timeout: float = 300.0) -> str:
    """Wait for the identity provider to redirect the browser to ``redirect_uri``.

    Binds a listener on the redirect URI's host and port and serves exactly
    one GET request.

    Args:
        redirect_uri: Loopback redirect URI registered for the application,
            e.g. ``http://127.0.0.1:8080/``.
        timeout: Seconds to wait for the redirect.

    Returns:
        Full redirect URL, including the query string carrying the code.

    Raises:
        ConfigurationError: If the redirect URI has no host.
        RedirectTimeoutError: If no request arrives before the timeout.
    """
    parsed = urlparse(redirect_uri)
    if not parsed.hostname:
        raise ConfigurationError(f"Redirect URI has no host: {redirect_uri!r}")
    port = parsed.port or 80

    with HTTPServer((parsed.hostname, port), _RedirectHandler) as server:
        server.timeout = timeout
        server.captured_path = None  # type: ignore[attr-defined]
        logger.info("[capture_redirect] listening for redirect; host:%s;port:%d", parsed.hostname, port)
        server.handle_request()
        captured = server.captured_path  # type: ignore[attr-defined]

    if captured is None:
        raise RedirectTimeoutError(
            f"No redirect received on {redirect_uri} within {timeout:.0f} seconds"
        )
    return f"{parsed.scheme}://{parsed.netloc}{captured}"
