"""Runtime settings for xkindle."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_HOSTS = ("x.com", "twitter.com")
DEFAULT_SENDER = "X-to-Kindle <onboarding@resend.dev>"
DEFAULT_COVER_URL = "https://abs.twimg.com/icons/apple-touch-icon-192x192.png"
RESEND_ENDPOINT = "https://api.resend.com/emails"

# Hosting platforms that only ship a constrained Chromium build.
_SERVERLESS_MARKERS = ("AWS_LAMBDA_FUNCTION_NAME", "VERCEL")


class RuntimeEnvironment(str, Enum):
    LOCAL = "local"
    SERVERLESS = "serverless"


class Settings(BaseModel):
    """Process-wide settings, resolved once at startup."""

    allowed_hosts: tuple[str, ...] = DEFAULT_ALLOWED_HOSTS
    resend_api_key: str | None = None
    sender: str = DEFAULT_SENDER
    delivery_endpoint: str = RESEND_ENDPOINT
    runtime: RuntimeEnvironment = RuntimeEnvironment.LOCAL
    chromium_executable: Path | None = None
    cover_url: str | None = DEFAULT_COVER_URL
    publisher: str = "x-to-kindle"
    navigation_timeout_seconds: float = Field(default=30.0, gt=0)
    presence_timeout_seconds: float = Field(default=15.0, gt=0)
    delivery_timeout_seconds: float = Field(default=30.0, gt=0)
    cover_timeout_seconds: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def validate_runtime_binary(self) -> "Settings":
        if self.runtime == RuntimeEnvironment.SERVERLESS and self.chromium_executable is None:
            raise ValueError("serverless runtime requires chromium_executable (X2K_CHROMIUM_PATH)")
        if not self.allowed_hosts:
            raise ValueError("allowed_hosts must not be empty")
        return self

    @property
    def delivery_enabled(self) -> bool:
        return bool(self.resend_api_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        api_key = env.get("RESEND_API_KEY", "").strip()
        if api_key:
            values["resend_api_key"] = api_key

        sender = env.get("X2K_SENDER", "").strip()
        if sender:
            values["sender"] = sender

        runtime = env.get("X2K_RUNTIME", "").strip().lower()
        if not runtime and any(env.get(marker) for marker in _SERVERLESS_MARKERS):
            runtime = RuntimeEnvironment.SERVERLESS.value
        if runtime:
            values["runtime"] = runtime

        chromium_path = env.get("X2K_CHROMIUM_PATH", "").strip()
        if chromium_path:
            values["chromium_executable"] = Path(chromium_path)

        if "X2K_COVER_URL" in env:
            values["cover_url"] = env["X2K_COVER_URL"].strip() or None

        hosts = env.get("X2K_ALLOWED_HOSTS", "").strip()
        if hosts:
            values["allowed_hosts"] = tuple(
                host.strip().lower() for host in hosts.split(",") if host.strip()
            )

        settings = cls(**values)
        if not settings.delivery_enabled:
            logger.warning("RESEND_API_KEY is not set; documents will be generated but not delivered")
        logger.debug("Resolved runtime environment: %s", settings.runtime.value)
        return settings
