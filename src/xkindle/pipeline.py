"""Request-scoped orchestration: extract, assemble, deliver."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from xkindle.assembler import assemble
from xkindle.browser import BrowserError, SessionOpener, open_session, resolve_launch_strategy
from xkindle.config import Settings
from xkindle.cover import fetch_cover
from xkindle.delivery import deliver
from xkindle.extractor import UNKNOWN_AUTHOR, ArticleNotFoundError, extract, wait_for_article_presence
from xkindle.models import (
    DegradedNoDelivery,
    Delivered,
    ExtractionRequest,
    ExtractionResult,
    PipelineResult,
    PipelineStatus,
)
from xkindle.naming import derive_title
from xkindle.request import MISSING_FIELDS_MESSAGE, RequestValidationError, validate_request

logger = logging.getLogger(__name__)

DELIVERED_MESSAGE = "Successfully delivered to Kindle"
DEGRADED_MESSAGE = "Successfully generated EPUB. RESEND_API_KEY is not configured, skipping delivery."
EXTRACTION_FAILED_MESSAGE = "Failed to extract text from the X Article."


def _failure(status: PipelineStatus, error: str) -> PipelineResult:
    return PipelineResult(status=status, error=error)


def _extract(request: ExtractionRequest, settings: Settings, opener: SessionOpener | None) -> ExtractionResult:
    strategy = resolve_launch_strategy(settings)
    with open_session(strategy, opener) as session:
        logger.info("Loading %s", request.source_url)
        session.navigate(request.source_url, settings.navigation_timeout_seconds)
        wait_for_article_presence(session, settings.presence_timeout_seconds)
        return extract(session)


def _process(
    request: ExtractionRequest,
    settings: Settings,
    opener: SessionOpener | None,
    client: httpx.Client | None,
    cover_client: httpx.Client | None,
) -> PipelineResult:
    result = _extract(request, settings, opener)

    if result.text is None:
        logger.error("Extraction failed. Article HTML dump (first 2000 chars):")
        logger.error("%s", result.debug_html[:2000] if result.debug_html else "No HTML returned.")
        return _failure(PipelineStatus.EXTRACTION_FAILED, EXTRACTION_FAILED_MESSAGE)

    author = result.author or UNKNOWN_AUTHOR
    title = derive_title(result.text, author, result.article_title)
    cover = fetch_cover(settings.cover_url, settings.cover_timeout_seconds, client=cover_client)
    document = assemble(
        title,
        author,
        result.text,
        publisher=settings.publisher,
        cover=cover,
        published_at=result.published_at,
    )

    outcome = deliver(document, request.destination_address, result.text, settings=settings, client=client)
    if isinstance(outcome, Delivered):
        status, message = PipelineStatus.DELIVERED, DELIVERED_MESSAGE
    elif isinstance(outcome, DegradedNoDelivery):
        status, message = PipelineStatus.DEGRADED_NO_DELIVERY, DEGRADED_MESSAGE
    else:
        return _failure(PipelineStatus.DELIVERY_FAILED, outcome.reason)

    return PipelineResult(
        status=status,
        message=message,
        author=outcome.author,
        title=outcome.title,
        text_preview=outcome.text_preview,
    )


def run_pipeline(
    url: str | None,
    destination_address: str | None,
    *,
    settings: Settings,
    opener: SessionOpener | None = None,
    client: httpx.Client | None = None,
    cover_client: httpx.Client | None = None,
) -> PipelineResult:
    """Run one request end to end and return exactly one terminal outcome."""

    try:
        request = validate_request(url, destination_address, settings.allowed_hosts)
    except RequestValidationError as exc:
        return _failure(PipelineStatus.VALIDATION_FAILED, str(exc))

    try:
        return _process(request, settings, opener, client, cover_client)
    except ArticleNotFoundError as exc:
        return _failure(PipelineStatus.NOT_FOUND, str(exc))
    except BrowserError as exc:
        logger.error("Browser failure for %s: %s", request.source_url, exc)
        return _failure(PipelineStatus.BROWSER_FAILED, str(exc))
    except Exception as exc:
        logger.exception("Processing error for %s", request.source_url)
        return _failure(PipelineStatus.UNEXPECTED_FAULT, f"An unexpected error occurred: {exc}")


def handle_request(
    payload: Any,
    *,
    settings: Settings | None = None,
    opener: SessionOpener | None = None,
    client: httpx.Client | None = None,
) -> tuple[int, dict[str, str]]:
    """Inbound entry point: ``{url, destinationAddress}`` in, status and body out."""

    if not isinstance(payload, Mapping):
        return 400, {"error": MISSING_FIELDS_MESSAGE}

    if settings is None:
        try:
            settings = Settings.from_env()
        except ValidationError as exc:
            logger.exception("Invalid xkindle configuration")
            return 500, {"error": f"An unexpected error occurred: {exc}"}

    destination = payload.get("destinationAddress") or payload.get("kindleEmail")
    result = run_pipeline(payload.get("url"), destination, settings=settings, opener=opener, client=client)
    return result.status_code, result.to_payload()
