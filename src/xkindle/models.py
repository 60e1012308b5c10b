"""Domain models used by xkindle."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

PREVIEW_LENGTH = 100


def text_preview(text: str) -> str:
    return text[:PREVIEW_LENGTH] + "..."


class ExtractionRequest(BaseModel):
    """A validated source URL and the address the document is sent to."""

    model_config = ConfigDict(frozen=True)

    source_url: str
    destination_address: str


class DomSnapshot(BaseModel):
    """Facts collected from the first article container of a rendered page."""

    article_count: int = 0
    primary_texts: list[str] = Field(default_factory=list)
    fallback_texts: list[str] = Field(default_factory=list)
    title_candidates: list[str | None] = Field(default_factory=list)
    user_name: str | None = None
    timestamp: str | None = None
    article_html: str | None = None


class ExtractionResult(BaseModel):
    """Heuristic extraction output; ``text`` is None when nothing qualified."""

    text: str | None
    author: str | None
    article_title: str | None = None
    published_at: datetime | None = None
    debug_html: str | None = None


class PublicationDocument(BaseModel):
    """An assembled EPUB ready to attach to an email."""

    model_config = ConfigDict(frozen=True)

    title: str
    author: str
    attachment_filename: str
    html_body: str
    byte_buffer: bytes


class Delivered(BaseModel):
    kind: Literal["delivered"] = "delivered"
    author: str
    title: str
    text_preview: str


class DegradedNoDelivery(BaseModel):
    kind: Literal["degraded_no_delivery"] = "degraded_no_delivery"
    author: str
    title: str
    text_preview: str


class DeliveryFailed(BaseModel):
    kind: Literal["delivery_failed"] = "delivery_failed"
    reason: str


DeliveryOutcome = Annotated[
    Union[Delivered, DegradedNoDelivery, DeliveryFailed],
    Field(discriminator="kind"),
]


class PipelineStatus(str, Enum):
    DELIVERED = "delivered"
    DEGRADED_NO_DELIVERY = "degraded_no_delivery"
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"
    EXTRACTION_FAILED = "extraction_failed"
    BROWSER_FAILED = "browser_failed"
    DELIVERY_FAILED = "delivery_failed"
    UNEXPECTED_FAULT = "unexpected_fault"


_STATUS_CODES = {
    PipelineStatus.DELIVERED: 200,
    PipelineStatus.DEGRADED_NO_DELIVERY: 200,
    PipelineStatus.VALIDATION_FAILED: 400,
    PipelineStatus.NOT_FOUND: 404,
}


class PipelineResult(BaseModel):
    """The single terminal outcome of one pipeline run."""

    status: PipelineStatus
    message: str | None = None
    author: str | None = None
    title: str | None = None
    text_preview: str | None = None
    error: str | None = None

    @property
    def status_code(self) -> int:
        return _STATUS_CODES.get(self.status, 500)

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    def to_payload(self) -> dict[str, str]:
        if not self.ok:
            return {"error": self.error or "Unknown error"}
        return {
            "message": self.message or "",
            "author": self.author or "",
            "title": self.title or "",
            "textPreview": self.text_preview or "",
        }
