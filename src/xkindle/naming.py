"""Title and attachment filename derivation."""

from __future__ import annotations

import re

ELLIPSIS = "…"
DOCUMENT_EXTENSION = ".epub"
FALLBACK_FILENAME = "X Article"

MAX_EXTRACTED_TITLE_LENGTH = 120
MAX_TEXT_TITLE_LENGTH = 80
MAX_FILENAME_LENGTH = 110

_WHITESPACE_RE = re.compile(r"\s+")
_FILENAME_HOSTILE_RE = re.compile(r'[\\/:*?"<>|]')


def normalize_whitespace(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value).strip()


def truncate(value: str, limit: int) -> str:
    """Cut ``value`` to at most ``limit`` characters, ending in an ellipsis if cut."""

    if len(value) <= limit:
        return value
    return value[: limit - 1].rstrip() + ELLIPSIS


def derive_title(text: str | None, author: str, extracted_title: str | None = None) -> str:
    """Pick the document title: extracted title, then first text line, then a byline."""

    if extracted_title:
        candidate = normalize_whitespace(extracted_title)
        if len(candidate) > 2:
            return truncate(candidate, MAX_EXTRACTED_TITLE_LENGTH)

    for line in (text or "").splitlines():
        candidate = normalize_whitespace(line)
        if candidate:
            return truncate(candidate, MAX_TEXT_TITLE_LENGTH)

    return f"X Article by {author}"


def derive_attachment_filename(title: str) -> str:
    stem = normalize_whitespace(_FILENAME_HOSTILE_RE.sub("", title))
    if not stem:
        stem = FALLBACK_FILENAME
    return truncate(stem, MAX_FILENAME_LENGTH) + DOCUMENT_EXTENSION
