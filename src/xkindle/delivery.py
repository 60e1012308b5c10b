"""Email delivery of assembled documents through the Resend API."""

from __future__ import annotations

import base64
import logging

import httpx

from xkindle.assembler import render_template
from xkindle.config import Settings
from xkindle.models import (
    DegradedNoDelivery,
    Delivered,
    DeliveryFailed,
    DeliveryOutcome,
    PublicationDocument,
    text_preview,
)

logger = logging.getLogger(__name__)

FAILURE_PREFIX = "Failed to deliver to Kindle via Resend Email."


def build_payload(document: PublicationDocument, destination_address: str, sender: str) -> dict:
    return {
        "from": sender,
        "to": [destination_address],
        "subject": f"X Article from {document.author}",
        "html": render_template("email.html.j2", title=document.title, author=document.author),
        "attachments": [
            {
                "filename": document.attachment_filename,
                "content": base64.b64encode(document.byte_buffer).decode("ascii"),
            }
        ],
    }


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return "Unknown error"
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return "Unknown error"


def deliver(
    document: PublicationDocument,
    destination_address: str,
    text: str,
    *,
    settings: Settings,
    client: httpx.Client | None = None,
) -> DeliveryOutcome:
    """Send the document once; report degraded mode when no API key is set."""

    preview = text_preview(text)
    if not settings.delivery_enabled:
        logger.warning("Missing RESEND_API_KEY, skipping delivery of %r", document.title)
        return DegradedNoDelivery(author=document.author, title=document.title, text_preview=preview)

    owned = client is None
    client = client or httpx.Client(timeout=settings.delivery_timeout_seconds)
    try:
        response = client.post(
            settings.delivery_endpoint,
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            json=build_payload(document, destination_address, settings.sender),
        )
    except httpx.HTTPError as exc:
        logger.error("Resend request failed: %s", exc)
        return DeliveryFailed(reason=f"{FAILURE_PREFIX} {exc}")
    finally:
        if owned:
            client.close()

    if not response.is_success:
        message = _error_message(response)
        logger.error("Resend API error (HTTP %s): %s", response.status_code, response.text[:500])
        return DeliveryFailed(reason=f"{FAILURE_PREFIX} {message}")

    logger.info("Delivered %r to %s", document.attachment_filename, destination_address)
    return Delivered(author=document.author, title=document.title, text_preview=preview)
