"""Headless Chromium session lifecycle on top of Playwright."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from xkindle.config import RuntimeEnvironment, Settings

if TYPE_CHECKING:
    from playwright.sync_api import Browser, BrowserContext, Page, Playwright

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
EXTRA_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
}
VIEWPORT = {"width": 1920, "height": 1080}

_STEALTH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
    "--window-size=1920,1080",
)
_SERVERLESS_ARGS = (
    "--single-process",
    "--no-zygote",
    "--disable-dev-shm-usage",
    "--disable-gpu",
)


class BrowserError(RuntimeError):
    """Base error for browser session failures."""


class BrowserLaunchError(BrowserError):
    """Raised when the headless browser cannot be started."""


class NavigationError(BrowserError):
    """Raised when the page cannot be loaded."""


class NavigationTimeoutError(NavigationError):
    """Raised when the page does not reach network quiescence in time."""


class BrowserTimeoutError(BrowserError):
    """Raised when a selector does not appear in time."""


@dataclass(frozen=True)
class LaunchStrategy:
    """How Chromium is started for the current hosting environment."""

    runtime: RuntimeEnvironment
    executable_path: Path | None
    args: tuple[str, ...]


def resolve_launch_strategy(settings: Settings) -> LaunchStrategy:
    if settings.runtime == RuntimeEnvironment.SERVERLESS:
        return LaunchStrategy(
            runtime=settings.runtime,
            executable_path=settings.chromium_executable,
            args=_STEALTH_ARGS + _SERVERLESS_ARGS,
        )
    return LaunchStrategy(
        runtime=settings.runtime,
        executable_path=settings.chromium_executable,
        args=_STEALTH_ARGS,
    )


class PageSession(Protocol):
    """Transport surface the extractor needs from a browser page."""

    def navigate(self, url: str, timeout_s: float) -> None: ...

    def wait_for_selector(self, selector: str, timeout_s: float) -> None: ...

    def content(self) -> str: ...

    def evaluate(self, script: str, arg: Any = None) -> Any: ...

    def close(self) -> None: ...


class BrowserSession:
    """One Chromium process with one page, owned by a single request."""

    def __init__(
        self,
        playwright: "Playwright",
        browser: "Browser",
        context: "BrowserContext",
        page: "Page",
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._closed = False

    @classmethod
    def open(cls, strategy: LaunchStrategy) -> "BrowserSession":
        logger.info("Launching Chromium (%s)", strategy.runtime.value)
        try:
            playwright = sync_playwright().start()
        except PlaywrightError as exc:
            raise BrowserLaunchError(f"Failed to start Playwright: {exc}") from exc

        try:
            browser = playwright.chromium.launch(
                headless=True,
                args=list(strategy.args),
                executable_path=str(strategy.executable_path) if strategy.executable_path else None,
            )
            context = browser.new_context(
                user_agent=USER_AGENT,
                viewport=VIEWPORT,
                extra_http_headers=EXTRA_HEADERS,
            )
            page = context.new_page()
        except PlaywrightError as exc:
            playwright.stop()
            raise BrowserLaunchError(f"Failed to launch browser: {exc}") from exc

        return cls(playwright, browser, context, page)

    @property
    def closed(self) -> bool:
        return self._closed

    def navigate(self, url: str, timeout_s: float) -> None:
        try:
            self._page.goto(url, wait_until="networkidle", timeout=timeout_s * 1000)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeoutError(f"Timed out after {timeout_s:g}s loading {url}") from exc
        except PlaywrightError as exc:
            raise NavigationError(f"Failed to load {url}: {exc}") from exc

    def wait_for_selector(self, selector: str, timeout_s: float) -> None:
        try:
            self._page.wait_for_selector(selector, timeout=timeout_s * 1000)
        except PlaywrightTimeoutError as exc:
            raise BrowserTimeoutError(f"Selector {selector!r} not found within {timeout_s:g}s") from exc

    def content(self) -> str:
        return self._page.content()

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return self._page.evaluate(script, arg)

    def close(self) -> None:
        """Release the page, context, browser and driver; safe to call twice."""

        if self._closed:
            return
        self._closed = True

        for name, release in (
            ("context", self._context.close),
            ("browser", self._browser.close),
            ("playwright", self._playwright.stop),
        ):
            try:
                release()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to close %s: %s", name, exc)


SessionOpener = Callable[[LaunchStrategy], PageSession]


@contextmanager
def open_session(
    strategy: LaunchStrategy,
    opener: SessionOpener | None = None,
) -> Iterator[PageSession]:
    """Open a session and close it exactly once on every exit path."""

    session = (opener or BrowserSession.open)(strategy)
    try:
        yield session
    finally:
        session.close()
