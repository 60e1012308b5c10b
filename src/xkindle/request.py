"""Inbound request validation and the source hostname allow-list."""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlparse

from xkindle.models import ExtractionRequest

MISSING_FIELDS_MESSAGE = "Missing required fields: url or destinationAddress"
INVALID_URL_MESSAGE = "Invalid X/Twitter URL. Please provide a direct link."


class RequestValidationError(ValueError):
    """Raised when the caller's input cannot be processed."""


def is_allowed_host(hostname: str | None, allowed_hosts: Iterable[str]) -> bool:
    """Return True for an exact or subdomain match against the allow-list."""

    if not hostname:
        return False
    host = hostname.lower().rstrip(".")
    for allowed in allowed_hosts:
        allowed = allowed.lower()
        if host == allowed or host.endswith(f".{allowed}"):
            return True
    return False


def validate_request(
    url: str | None,
    destination_address: str | None,
    allowed_hosts: Iterable[str],
) -> ExtractionRequest:
    """Validate raw caller input into an ExtractionRequest."""

    url = url.strip() if isinstance(url, str) else ""
    destination_address = destination_address.strip() if isinstance(destination_address, str) else ""
    if not url or not destination_address:
        raise RequestValidationError(MISSING_FIELDS_MESSAGE)

    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as exc:
        raise RequestValidationError(INVALID_URL_MESSAGE) from exc

    if parsed.scheme not in {"http", "https"} or not is_allowed_host(hostname, allowed_hosts):
        raise RequestValidationError(INVALID_URL_MESSAGE)

    return ExtractionRequest(source_url=url, destination_address=destination_address)
