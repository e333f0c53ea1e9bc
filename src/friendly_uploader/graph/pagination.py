"""Lazy, link-following cursor over paged Graph collections."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar
from urllib.parse import parse_qs, urlparse

from friendly_uploader.errors import MalformedResponseError

if TYPE_CHECKING:
    from friendly_uploader.graph.client import ApiTransport

logger = logging.getLogger(__name__)

# OData response keys
ODATA_DELTA_LINK = "@odata.deltaLink"
ODATA_NEXT_LINK = "@odata.nextLink"
ODATA_VALUE = "value"
FIELD_TOKEN = "token"

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One HTTP response's worth of a collection."""

    items: list[T] = field(default_factory=list)
    next_link: str | None = None
    delta_link: str | None = None


def extract_delta_token(delta_link: str) -> str:
    """Extract the token query parameter from an @odata.deltaLink URL."""
    params = parse_qs(urlparse(delta_link).query)
    tokens = params.get(FIELD_TOKEN, [])
    if tokens:
        return tokens[0]
    # Some deltaLinks embed the cursor in the path; hand back the whole URL.
    return delta_link


class PaginatedCollection(Generic[T]):
    """Items of a collection that spans one or more pages.

    Pages are fetched strictly on demand: the first when the first item is
    requested, each following one only once the previous page's items are
    exhausted. A consumed page is never fetched again, and the cursor cannot
    be restarted; iterate a fresh collection to start over.

    A page-fetch failure propagates from ``next_item``/``__next__``; items
    already yielded stay valid.
    """

    def __init__(
        self,
        transport: ApiTransport,
        first_page_url: str,
        item_factory: Callable[[dict[str, Any]], T],
    ) -> None:
        """Initialise the cursor without issuing any request.

        Args:
            transport: Transport used to fetch pages.
            first_page_url: Absolute URL of the first page.
            item_factory: Builds an item from one element of the ``value`` array.
        """
        self._transport = transport
        self._item_factory = item_factory
        self._pending_url: str | None = first_page_url
        self._page: Page[T] | None = None
        self._index = 0
        self.pages_fetched = 0

    def __iter__(self) -> PaginatedCollection[T]:
        return self

    def __next__(self) -> T:
        while self._page is None or self._index >= len(self._page.items):
            if self._pending_url is None:
                raise StopIteration
            self._fetch(self._pending_url)
        assert self._page is not None
        item = self._page.items[self._index]
        self._index += 1
        return item

    def next_item(self) -> T | None:
        """Return the next item, or None once the collection is exhausted."""
        return next(self, None)

    @property
    def next_link(self) -> str | None:
        """URL of the next unfetched page, if any."""
        return self._pending_url if self._page is not None else None

    @property
    def delta_link(self) -> str | None:
        """Resume cursor for change queries; only set once paging is exhausted."""
        if self._page is None or self._pending_url is not None:
            return None
        return self._page.delta_link

    @property
    def delta_token(self) -> str | None:
        """Resume token from ``delta_link``; the whole link when it has no token parameter."""
        link = self.delta_link
        return extract_delta_token(link) if link else None

    def _fetch(self, url: str) -> None:
        body = self._transport.get_json(url)
        raw_items = body.get(ODATA_VALUE)
        if not isinstance(raw_items, list):
            raise MalformedResponseError(
                f"Collection response has no '{ODATA_VALUE}' array"
            )
        next_link = body.get(ODATA_NEXT_LINK)
        self._page = Page(
            items=[self._item_factory(raw) for raw in raw_items],
            next_link=next_link,
            delta_link=body.get(ODATA_DELTA_LINK),
        )
        self._pending_url = next_link
        self._index = 0
        self.pages_fetched += 1
        logger.info(
            "[_fetch] fetched page; page:%d;items:%d;has_next:%s",
            self.pages_fetched,
            len(raw_items),
            next_link is not None,
        )
