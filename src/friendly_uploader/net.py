"""HTTP primitives on top of urllib: a redirect-free opener and a uniform response."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any
from urllib import request as urllib_request
from urllib.error import HTTPError, URLError

from friendly_uploader.errors import MalformedResponseError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


class NoRedirectHandler(urllib_request.HTTPRedirectHandler):
    """Surface 3xx responses to the caller instead of following them."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):  # type: ignore[no-untyped-def]
        return None


class NetworkError(Exception):
    """Raised when no HTTP response could be obtained (DNS, refused, timeout)."""


@dataclass
class HttpResponse:
    """Status, headers and raw body of a completed HTTP exchange."""

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> dict[str, Any]:
        """Parse the body as a JSON object.

        Raises:
            MalformedResponseError: If the body is not JSON or not an object.
        """
        try:
            data = json.loads(self.body)
        except ValueError as exc:
            raise MalformedResponseError(f"Response body is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Expected a JSON object, got {type(data).__name__}"
            )
        return data


def build_opener() -> urllib_request.OpenerDirector:
    """Return an opener that never follows redirects."""
    return urllib_request.build_opener(NoRedirectHandler())


def send(
    opener: urllib_request.OpenerDirector,
    req: urllib_request.Request,
    timeout: float = DEFAULT_TIMEOUT,
) -> HttpResponse:
    """Send a request and return its response, whatever the status code.

    Args:
        opener: Opener used to perform the request.
        req: Fully prepared urllib request.
        timeout: Socket timeout in seconds.

    Returns:
        HttpResponse for both successful and error statuses.

    Raises:
        NetworkError: If the server could not be reached or timed out.
    """
    try:
        with opener.open(req, timeout=timeout) as resp:
            return HttpResponse(
                status=resp.status,
                body=resp.read(),
                headers=dict(resp.headers.items()),
            )
    except HTTPError as exc:
        raw = exc.read() or b""
        headers = dict(exc.headers.items()) if exc.headers is not None else {}
        return HttpResponse(status=exc.code, body=raw, headers=headers)
    except (URLError, TimeoutError) as exc:
        reason = getattr(exc, "reason", exc)
        logger.error("[send] request failed; method:%s;reason:%s", req.get_method(), reason)
        raise NetworkError(str(reason)) from exc
