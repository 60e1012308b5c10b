import base64
import json

import httpx

from xkindle.config import Settings
from xkindle.delivery import deliver
from xkindle.models import DegradedNoDelivery, Delivered, DeliveryFailed, PublicationDocument

TEXT = "Hello world, this is a long enough paragraph."


def _document() -> PublicationDocument:
    return PublicationDocument(
        title="Hello world",
        author="Jane Doe",
        attachment_filename="Hello world.epub",
        html_body="<p>Hello world</p>",
        byte_buffer=b"epub-bytes",
    )


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_deliver_without_api_key_is_degraded_and_sends_nothing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no HTTP call expected")

    outcome = deliver(_document(), "a@kindle.com", TEXT, settings=Settings(), client=_client(handler))

    assert isinstance(outcome, DegradedNoDelivery)
    assert outcome.author == "Jane Doe"
    assert outcome.title == "Hello world"
    assert outcome.text_preview == TEXT + "..."


def test_deliver_posts_base64_attachment(delivery_settings: Settings) -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"id": "email-1"})

    outcome = deliver(_document(), "a@kindle.com", TEXT, settings=delivery_settings, client=_client(handler))

    assert isinstance(outcome, Delivered)
    assert len(captured) == 1
    request = captured[0]
    assert str(request.url) == "https://api.resend.com/emails"
    assert request.headers["Authorization"] == "Bearer re_test_key"

    body = json.loads(request.content)
    assert body["to"] == ["a@kindle.com"]
    assert body["subject"] == "X Article from Jane Doe"
    assert "Hello world" in body["html"]
    attachment = body["attachments"][0]
    assert attachment["filename"] == "Hello world.epub"
    assert base64.b64decode(attachment["content"]) == b"epub-bytes"


def test_deliver_reports_upstream_message(delivery_settings: Settings) -> None:
    client = _client(lambda request: httpx.Response(422, json={"message": "Invalid `to` field."}))

    outcome = deliver(_document(), "not-an-email", TEXT, settings=delivery_settings, client=client)

    assert isinstance(outcome, DeliveryFailed)
    assert outcome.reason == "Failed to deliver to Kindle via Resend Email. Invalid `to` field."


def test_deliver_falls_back_when_error_body_unparseable(delivery_settings: Settings) -> None:
    client = _client(lambda request: httpx.Response(500, text="<html>bad gateway</html>"))

    outcome = deliver(_document(), "a@kindle.com", TEXT, settings=delivery_settings, client=client)

    assert isinstance(outcome, DeliveryFailed)
    assert outcome.reason.endswith("Unknown error")


def test_deliver_transport_error_is_single_attempt(delivery_settings: Settings) -> None:
    attempts: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    outcome = deliver(_document(), "a@kindle.com", TEXT, settings=delivery_settings, client=_client(handler))

    assert isinstance(outcome, DeliveryFailed)
    assert "connection refused" in outcome.reason
    assert len(attempts) == 1
