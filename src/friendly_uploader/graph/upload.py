"""Upload of local files into a OneDrive folder.

Small files go up in a single PUT. Larger files use an upload session and
are sent in ranged chunks to the session's pre-authenticated URL.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO
from urllib.parse import quote

from friendly_uploader.errors import MalformedResponseError
from friendly_uploader.graph.models import DriveItem

if TYPE_CHECKING:
    from friendly_uploader.graph.client import ApiTransport

logger = logging.getLogger(__name__)

# Graph rejects simple uploads above 4 MiB.
SIMPLE_UPLOAD_LIMIT = 4 * 1024 * 1024
# Session chunks must be a multiple of 320 KiB.
CHUNK_SIZE = 10 * 320 * 1024

FIELD_UPLOAD_URL = "uploadUrl"
CONFLICT_BEHAVIOR = "@microsoft.graph.conflictBehavior"


def upload_file(
    transport: ApiTransport,
    folder_url: str,
    source: Path,
    chunk_size: int = CHUNK_SIZE,
) -> DriveItem:
    """Upload ``source`` into the folder at ``folder_url``.

    Args:
        transport: Authenticated transport.
        folder_url: API URL of the destination folder item.
        source: Local file to upload; its name is kept.
        chunk_size: Bytes per upload-session chunk.

    Returns:
        The created or replaced DriveItem.

    Raises:
        GraphApiError: If the API rejects the upload or any chunk.
        MalformedResponseError: If an upload response has an unexpected shape.
    """
    size = source.stat().st_size
    item_url = f"{folder_url}:/{quote(source.name)}:"

    if size <= SIMPLE_UPLOAD_LIMIT:
        logger.info("[upload_file] simple upload; name:%s;size:%d", source.name, size)
        body = transport.put_content(f"{item_url}/content", source.read_bytes())
    else:
        logger.info("[upload_file] session upload; name:%s;size:%d", source.name, size)
        session = transport.post_json(
            f"{item_url}/createUploadSession",
            {"item": {CONFLICT_BEHAVIOR: "replace"}},
        )
        upload_url = session.get(FIELD_UPLOAD_URL)
        if not isinstance(upload_url, str):
            raise MalformedResponseError("Upload session response has no uploadUrl")
        with source.open("rb") as handle:
            body = _upload_chunks(transport, upload_url, handle, size, chunk_size)

    return DriveItem.from_listing(body, transport)


def _upload_chunks(
    transport: ApiTransport,
    upload_url: str,
    handle: BinaryIO,
    size: int,
    chunk_size: int,
) -> dict[str, Any]:
    offset = 0
    while offset < size:
        chunk = handle.read(chunk_size)
        if not chunk:
            raise MalformedResponseError(
                f"Local file shrank during upload; expected {size} bytes, read {offset}"
            )
        end = offset + len(chunk) - 1
        # The upload URL is pre-authenticated and must not carry a bearer token.
        response = transport.send_unauthenticated(
            "PUT",
            upload_url,
            data=chunk,
            headers={
                "Content-Length": str(len(chunk)),
                "Content-Range": f"bytes {offset}-{end}/{size}",
            },
        )
        offset = end + 1
        logger.debug("[_upload_chunks] chunk accepted; sent:%d;total:%d", offset, size)
        if response.status in (HTTPStatus.OK, HTTPStatus.CREATED):
            return response.json()

    raise MalformedResponseError("Upload session never returned the completed item")
