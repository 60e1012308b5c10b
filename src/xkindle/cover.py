"""Cover image download for generated EPUBs."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

_CONTENT_TYPE_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class CoverImage(BaseModel):
    """Downloaded cover bytes and the file name used inside the EPUB."""

    file_name: str
    content: bytes


def _cover_file_name(url: str, content_type: str) -> str:
    extension = _CONTENT_TYPE_EXTENSIONS.get(content_type.split(";")[0].strip().lower())
    if extension is None:
        extension = PurePosixPath(urlparse(url).path).suffix.lower() or ".png"
    return f"cover{extension}"


def fetch_cover(
    url: str | None,
    timeout_s: float = 10.0,
    *,
    client: httpx.Client | None = None,
) -> CoverImage | None:
    """Download the cover image; a failed download yields no cover."""

    if not url:
        return None

    owned = client is None
    client = client or httpx.Client(timeout=timeout_s, follow_redirects=True)
    try:
        response = client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Skipping cover image %s: %s", url, exc)
        return None
    finally:
        if owned:
            client.close()

    return CoverImage(
        file_name=_cover_file_name(url, response.headers.get("content-type", "")),
        content=response.content,
    )
