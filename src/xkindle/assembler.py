"""EPUB assembly for extracted article text."""

from __future__ import annotations

import io
import logging
import uuid
from datetime import datetime
from importlib.resources import files

from ebooklib import epub
from jinja2 import Environment
from markupsafe import Markup

from xkindle.cover import CoverImage
from xkindle.models import PublicationDocument
from xkindle.naming import derive_attachment_filename

logger = logging.getLogger(__name__)

CHAPTER_TITLE = "Article Content"
DEFAULT_PUBLISHER = "x-to-kindle"

_HTML_ESCAPE_MAP = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
}


class DocumentAssemblyError(RuntimeError):
    """Raised when the EPUB cannot be compiled."""


def escape_html(value: str) -> str:
    """Escape the HTML metacharacters in extracted text."""

    return "".join(_HTML_ESCAPE_MAP.get(char, char) for char in value)


def render_paragraphs(text: str) -> str:
    """Blank lines separate paragraphs; single newlines become line breaks."""

    paragraphs = [paragraph.replace("\n", "<br/>") for paragraph in escape_html(text).split("\n\n")]
    return "".join(f"<p>{paragraph}</p>" for paragraph in paragraphs)


def render_template(name: str, **context: object) -> str:
    template_source = files("xkindle.templates").joinpath(name).read_text(encoding="utf-8")
    environment = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
    return environment.from_string(template_source).render(**context)


def render_chapter(title: str, author: str, text: str, published_at: datetime | None = None) -> str:
    return render_template(
        "article.xhtml.j2",
        title=title,
        author=author,
        published=published_at.strftime("%Y-%m-%d") if published_at else None,
        body=Markup(render_paragraphs(text)),
    )


def _compile_epub(
    *,
    title: str,
    author: str,
    chapter_html: str,
    publisher: str,
    identifier: str,
    cover: CoverImage | None,
    published_at: datetime | None,
) -> bytes:
    book = epub.EpubBook()
    book.set_identifier(identifier)
    book.set_title(title)
    book.set_language("en")
    book.add_author(author)
    book.add_metadata("DC", "publisher", publisher)
    if published_at is not None:
        book.add_metadata("DC", "date", published_at.isoformat())

    spine: list = ["nav"]
    if cover is not None:
        book.set_cover(cover.file_name, cover.content)
        spine.insert(0, "cover")

    chapter = epub.EpubHtml(title=CHAPTER_TITLE, file_name="article.xhtml", lang="en")
    chapter.content = chapter_html
    book.add_item(chapter)

    book.toc = (chapter,)
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = spine + [chapter]

    buffer = io.BytesIO()
    epub.write_epub(buffer, book, {})
    return buffer.getvalue()


def assemble(
    title: str,
    author: str,
    text: str,
    *,
    publisher: str = DEFAULT_PUBLISHER,
    cover: CoverImage | None = None,
    published_at: datetime | None = None,
    identifier: str | None = None,
) -> PublicationDocument:
    """Build an in-memory EPUB from extracted text and metadata."""

    try:
        chapter_html = render_chapter(title, author, text, published_at)
        content = _compile_epub(
            title=title,
            author=author,
            chapter_html=chapter_html,
            publisher=publisher,
            identifier=identifier or f"urn:uuid:{uuid.uuid4()}",
            cover=cover,
            published_at=published_at,
        )
    except Exception as exc:
        raise DocumentAssemblyError(f"Failed to compile EPUB: {exc}") from exc

    if not content:
        raise DocumentAssemblyError("EPUB compiler produced an empty document")

    logger.info("Assembled EPUB %r (%d bytes)", title, len(content))
    return PublicationDocument(
        title=title,
        author=author,
        attachment_filename=derive_attachment_filename(title),
        html_body=chapter_html,
        byte_buffer=content,
    )
