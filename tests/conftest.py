"""Pytest fixtures shared across all test modules."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from xkindle.config import Settings

FIXTURES = Path(__file__).parent / "fixtures"


class FakeSession:
    """In-memory stand-in for a browser page session."""

    def __init__(
        self,
        snapshot: dict | None = None,
        *,
        fail_on: str | None = None,
        error: Exception | None = None,
        content_error: Exception | None = None,
        page_html: str = "<html><body></body></html>",
    ) -> None:
        self.snapshot = snapshot if snapshot is not None else {}
        self.fail_on = fail_on
        self.error = error
        self.content_error = content_error
        self.page_html = page_html
        self.calls: list[str] = []
        self.close_calls = 0
        self.last_arg: Any = None

    def _step(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_on == name:
            raise self.error

    def navigate(self, url: str, timeout_s: float) -> None:
        self._step("navigate")

    def wait_for_selector(self, selector: str, timeout_s: float) -> None:
        self._step("wait")

    def content(self) -> str:
        if self.content_error is not None:
            raise self.content_error
        return self.page_html

    def evaluate(self, script: str, arg: Any = None) -> Any:
        self._step("evaluate")
        self.last_arg = arg
        return self.snapshot

    def close(self) -> None:
        self.close_calls += 1


@pytest.fixture
def fixture_html() -> str:
    return (FIXTURES / "x_article.html").read_text(encoding="utf-8")


@pytest.fixture
def make_session() -> Callable[..., tuple[FakeSession, Callable[[Any], FakeSession]]]:
    """Build a FakeSession and an opener that hands it to the pipeline."""

    def _make(snapshot: dict | None = None, **kwargs: Any) -> tuple[FakeSession, Callable[[Any], FakeSession]]:
        session = FakeSession(snapshot, **kwargs)
        opened: list[Any] = []

        def opener(strategy: Any) -> FakeSession:
            opened.append(strategy)
            return session

        session.opened = opened
        return session, opener

    return _make


@pytest.fixture
def article_snapshot() -> dict:
    return {
        "article_count": 1,
        "primary_texts": ["Hello world, this is a long enough paragraph."],
        "fallback_texts": [],
        "title_candidates": [None, None, None, None],
        "user_name": "Jane Doe@jane_doe·2h",
        "timestamp": None,
        "article_html": "<div>Hello world</div>",
    }


@pytest.fixture
def offline_settings() -> Settings:
    return Settings(cover_url=None)


@pytest.fixture
def delivery_settings() -> Settings:
    return Settings(cover_url=None, resend_api_key="re_test_key")
