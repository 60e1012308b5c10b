"""Heuristic extraction of X article text, author and title."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup
from dateutil.parser import isoparse

from xkindle.browser import BrowserTimeoutError
from xkindle.models import DomSnapshot, ExtractionResult

if TYPE_CHECKING:
    from xkindle.browser import PageSession

logger = logging.getLogger(__name__)

ARTICLE_SELECTOR = "article"

# Node-selection tiers, tried in order; the first tier that matches any node wins.
CONTENT_SELECTOR_TIERS = (
    '[data-testid="article-content"], [data-testid="tweetText"]',
    "span",
)

# Title candidates in precedence order as (scope, selector).
TITLE_SELECTORS = (
    ("article", '[data-testid="twitter-article-title"]'),
    ("article", "h1, h2, h3"),
    ("document", "header h1, header h2, header h3"),
    ("document", "h1, h2, h3"),
)

AUTHOR_SELECTOR = '[data-testid="User-Name"]'
UNKNOWN_AUTHOR = "Unknown Author"

# Candidates of this length or shorter are UI noise (timestamps, counts, handles).
MIN_BLOCK_LENGTH = 20

NOT_FOUND_MESSAGE = "Could not find article content. It might be private or deleted."

_SNAPSHOT_SCRIPT = """
({ articleSelector, tiers, titleSelectors, authorSelector }) => {
    const snapshot = {
        article_count: 0,
        primary_texts: [],
        fallback_texts: [],
        title_candidates: [],
        user_name: null,
        timestamp: null,
        article_html: null,
    };
    const articles = Array.from(document.querySelectorAll(articleSelector));
    snapshot.article_count = articles.length;
    if (!articles.length) return snapshot;

    const main = articles[0];
    const rendered = (node) => (node.innerText ?? node.textContent ?? '');
    snapshot.primary_texts = Array.from(main.querySelectorAll(tiers[0])).map(rendered);
    if (!snapshot.primary_texts.length) {
        snapshot.fallback_texts = Array.from(main.querySelectorAll(tiers[1])).map(rendered);
    }

    snapshot.title_candidates = titleSelectors.map(([scope, selector]) => {
        const root = scope === 'article' ? main : document;
        const node = root.querySelector(selector);
        return node ? rendered(node) : null;
    });

    const userName = main.querySelector(authorSelector);
    snapshot.user_name = userName ? userName.textContent : null;
    const time = main.querySelector('time');
    snapshot.timestamp = time ? time.getAttribute('datetime') : null;
    snapshot.article_html = main.innerHTML;
    return snapshot;
}
"""


class ArticleExtractionError(RuntimeError):
    """Base extraction error for X article parsing failures."""


class ArticleNotFoundError(ArticleExtractionError):
    """Raised when no article container appears on the page."""


def _to_datetime(raw_timestamp: str | None) -> datetime | None:
    if not raw_timestamp:
        return None
    try:
        return isoparse(raw_timestamp)
    except ValueError:
        return None


def _dedupe_preserve(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def _candidate_texts(snapshot: DomSnapshot) -> list[str]:
    for texts in (snapshot.primary_texts, snapshot.fallback_texts):
        if texts:
            return texts
    return []


def extract_text_blocks(candidates: list[str]) -> list[str]:
    """Trim, drop short UI strings and dedupe, keeping first-seen order."""

    trimmed = [(candidate or "").strip() for candidate in candidates]
    return _dedupe_preserve([block for block in trimmed if len(block) > MIN_BLOCK_LENGTH])


def extract_title(candidates: list[str | None]) -> str | None:
    for candidate in candidates:
        value = (candidate or "").strip()
        if value:
            return value
    return None


def extract_author(raw_user_name: str | None) -> str:
    """Display name is everything before the @handle."""

    if not raw_user_name:
        return UNKNOWN_AUTHOR
    name = raw_user_name.split("@")[0].strip()
    return name or UNKNOWN_AUTHOR


def extract_from_snapshot(snapshot: DomSnapshot) -> ExtractionResult:
    """Turn a DOM snapshot into text, author and title."""

    if snapshot.article_count == 0:
        return ExtractionResult(text=None, author=None, debug_html=None)

    blocks = extract_text_blocks(_candidate_texts(snapshot))
    return ExtractionResult(
        text="\n\n".join(blocks) if blocks else None,
        author=extract_author(snapshot.user_name),
        article_title=extract_title(snapshot.title_candidates),
        published_at=_to_datetime(snapshot.timestamp),
        debug_html=snapshot.article_html,
    )


def snapshot_from_html(html: str) -> DomSnapshot:
    """Build a DomSnapshot from static markup, e.g. a saved page."""

    soup = BeautifulSoup(html, "html.parser")
    articles = soup.select(ARTICLE_SELECTOR)
    if not articles:
        return DomSnapshot()

    main = articles[0]
    primary = [node.get_text() for node in main.select(CONTENT_SELECTOR_TIERS[0])]
    fallback = [] if primary else [node.get_text() for node in main.select(CONTENT_SELECTOR_TIERS[1])]

    titles: list[str | None] = []
    for scope, selector in TITLE_SELECTORS:
        node = (main if scope == "article" else soup).select_one(selector)
        titles.append(node.get_text() if node is not None else None)

    user_name = main.select_one(AUTHOR_SELECTOR)
    time_node = main.select_one("time")
    return DomSnapshot(
        article_count=len(articles),
        primary_texts=primary,
        fallback_texts=fallback,
        title_candidates=titles,
        user_name=user_name.get_text() if user_name is not None else None,
        timestamp=time_node.get("datetime") if time_node is not None else None,
        article_html=main.decode_contents(),
    )


def wait_for_article_presence(session: "PageSession", timeout_s: float = 15) -> None:
    """Block until an article container renders, else raise ArticleNotFoundError."""

    try:
        session.wait_for_selector(ARTICLE_SELECTOR, timeout_s)
    except BrowserTimeoutError as exc:
        try:
            raw_html = session.content()
        except Exception as dump_exc:  # noqa: BLE001
            logger.warning("DOM dump unavailable: %s", dump_exc)
        else:
            logger.info("DOM dump (failed to find article): %s", raw_html[:500])
        raise ArticleNotFoundError(NOT_FOUND_MESSAGE) from exc


def capture_snapshot(session: "PageSession") -> DomSnapshot:
    raw = session.evaluate(
        _SNAPSHOT_SCRIPT,
        {
            "articleSelector": ARTICLE_SELECTOR,
            "tiers": list(CONTENT_SELECTOR_TIERS),
            "titleSelectors": [list(pair) for pair in TITLE_SELECTORS],
            "authorSelector": AUTHOR_SELECTOR,
        },
    )
    return DomSnapshot.model_validate(raw)


def extract(session: "PageSession") -> ExtractionResult:
    """Extract the first article on the session's current page."""

    return extract_from_snapshot(capture_snapshot(session))
