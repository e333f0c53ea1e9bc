"""Typed views over Graph user, drive and drive item resources."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlparse

from friendly_uploader.errors import MalformedResponseError
from friendly_uploader.graph.pagination import PaginatedCollection

if TYPE_CHECKING:
    from friendly_uploader.graph.client import ApiTransport

# Graph API JSON field names
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_SIZE = "size"
FIELD_FOLDER = "folder"
FIELD_FILE = "file"
FIELD_DELETED = "deleted"
FIELD_WEB_URL = "webUrl"
FIELD_PARENT_REFERENCE = "parentReference"
FIELD_DRIVE_ID = "driveId"
FIELD_DRIVE_TYPE = "driveType"
FIELD_QUOTA = "quota"
FIELD_DISPLAY_NAME = "displayName"
FIELD_USER_PRINCIPAL_NAME = "userPrincipalName"
FIELD_MAIL = "mail"


def _require_str(body: dict[str, Any], key: str, kind: str) -> str:
    value = body.get(key)
    if not isinstance(value, str):
        raise MalformedResponseError(f"{kind} response has no string '{key}' field")
    return value


@dataclass
class DriveItem:
    """A file, folder or package stored in a drive.

    Only ``name`` is typed; every other field the API returned is kept in
    ``attributes`` since its shape depends on the item type.
    """

    name: str
    attributes: dict[str, Any] = field(default_factory=dict)
    url: str = field(default="", repr=False, compare=False)
    _transport: ApiTransport | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_response(
        cls,
        body: dict[str, Any],
        url: str,
        transport: ApiTransport,
    ) -> DriveItem:
        """Build an item from the response body fetched from ``url``."""
        attributes = {k: v for k, v in body.items() if k != FIELD_NAME}
        return cls(
            name=_require_str(body, FIELD_NAME, "DriveItem"),
            attributes=attributes,
            url=url,
            _transport=transport,
        )

    @classmethod
    def from_listing(cls, body: dict[str, Any], transport: ApiTransport) -> DriveItem:
        """Build an item from one element of a collection, deriving its own URL."""
        if not isinstance(body, dict):
            raise MalformedResponseError(
                f"Collection element is not a JSON object, got {type(body).__name__}"
            )
        item_id = body.get(FIELD_ID, "")
        drive_id = (body.get(FIELD_PARENT_REFERENCE) or {}).get(FIELD_DRIVE_ID)
        if drive_id:
            url = transport.url(f"/drives/{drive_id}/items/{item_id}")
        else:
            url = transport.url(f"/me/drive/items/{item_id}")
        # Deleted items in a delta response may come without a name.
        attributes = {k: v for k, v in body.items() if k != FIELD_NAME}
        return cls(
            name=str(body.get(FIELD_NAME, "")),
            attributes=attributes,
            url=url,
            _transport=transport,
        )

    @property
    def id(self) -> str | None:
        return self.attributes.get(FIELD_ID)

    @property
    def size(self) -> int | None:
        return self.attributes.get(FIELD_SIZE)

    @property
    def web_url(self) -> str | None:
        return self.attributes.get(FIELD_WEB_URL)

    @property
    def is_folder(self) -> bool:
        return FIELD_FOLDER in self.attributes

    @property
    def is_file(self) -> bool:
        return FIELD_FILE in self.attributes

    @property
    def is_deleted(self) -> bool:
        return FIELD_DELETED in self.attributes

    def children(self) -> PaginatedCollection[DriveItem]:
        """Lazily enumerate the items directly inside this folder."""
        transport = self._api()
        return PaginatedCollection(
            transport,
            f"{self.url}/children",
            lambda raw: DriveItem.from_listing(raw, transport),
        )

    def upload(self, source: Path) -> DriveItem:
        """Upload a local file into this folder, replacing any same-named item."""
        from friendly_uploader.graph.upload import upload_file

        return upload_file(self._api(), self.url, source)

    def _api(self) -> ApiTransport:
        if self._transport is None:
            raise RuntimeError(f"DriveItem {self.name!r} is not bound to a transport")
        return self._transport


@dataclass
class Drive:
    """A OneDrive drive (the container of a user's files)."""

    id: str
    drive_type: str | None = None
    name: str | None = None
    quota: dict[str, Any] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)
    url: str = field(default="", repr=False, compare=False)
    _transport: ApiTransport | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_response(cls, body: dict[str, Any], url: str, transport: ApiTransport) -> Drive:
        typed = {FIELD_ID, FIELD_DRIVE_TYPE, FIELD_NAME, FIELD_QUOTA}
        return cls(
            id=_require_str(body, FIELD_ID, "Drive"),
            drive_type=body.get(FIELD_DRIVE_TYPE),
            name=body.get(FIELD_NAME),
            quota=body.get(FIELD_QUOTA) or {},
            attributes={k: v for k, v in body.items() if k not in typed},
            url=url,
            _transport=transport,
        )

    def root(self) -> DriveItem:
        """Fetch the drive's root folder."""
        url = f"{self.url}/root"
        transport = self._api()
        return DriveItem.from_response(transport.get_json(url), url, transport)

    def children(self) -> PaginatedCollection[DriveItem]:
        """Lazily enumerate the items of the root folder."""
        transport = self._api()
        return PaginatedCollection(
            transport,
            f"{self.url}/root/children",
            lambda raw: DriveItem.from_listing(raw, transport),
        )

    def delta(self, token: str | None = None) -> PaginatedCollection[DriveItem]:
        """Lazily enumerate changes under the root folder.

        Without a token every current item is returned, establishing a
        baseline. With a token from a previous run only the items changed
        since then are returned. Once exhausted, the collection's
        ``delta_link``/``delta_token`` hold the cursor for the next call.
        A full delta link, which ``delta_token`` yields when the link has no
        ``token`` parameter, is followed as is.
        """
        url = f"{self.url}/root/delta"
        if token is not None and urlparse(token).scheme in ("http", "https"):
            url = token
        elif token is not None:
            url = f"{url}?token={quote(token, safe='')}"
        transport = self._api()
        return PaginatedCollection(
            transport,
            url,
            lambda raw: DriveItem.from_listing(raw, transport),
        )

    def _api(self) -> ApiTransport:
        if self._transport is None:
            raise RuntimeError(f"Drive {self.id!r} is not bound to a transport")
        return self._transport


@dataclass
class User:
    """Profile of the signed-in user."""

    id: str
    display_name: str | None = None
    user_principal_name: str | None = None
    mail: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    url: str = field(default="", repr=False, compare=False)
    _transport: ApiTransport | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_response(cls, body: dict[str, Any], url: str, transport: ApiTransport) -> User:
        typed = {FIELD_ID, FIELD_DISPLAY_NAME, FIELD_USER_PRINCIPAL_NAME, FIELD_MAIL}
        return cls(
            id=_require_str(body, FIELD_ID, "User"),
            display_name=body.get(FIELD_DISPLAY_NAME),
            user_principal_name=body.get(FIELD_USER_PRINCIPAL_NAME),
            mail=body.get(FIELD_MAIL),
            attributes={k: v for k, v in body.items() if k not in typed},
            url=url,
            _transport=transport,
        )

    def drive(self) -> Drive:
        """Fetch the user's default drive."""
        url = f"{self.url}/drive"
        transport = self._api()
        return Drive.from_response(transport.get_json(url), url, transport)

    def root(self) -> DriveItem:
        """Fetch the root folder of the user's default drive."""
        url = f"{self.url}/drive/root"
        transport = self._api()
        return DriveItem.from_response(transport.get_json(url), url, transport)

    def _api(self) -> ApiTransport:
        if self._transport is None:
            raise RuntimeError(f"User {self.id!r} is not bound to a transport")
        return self._transport
