"""
Transport Configuration

Pydantic models for the challenge-solving transport: browser impersonation
profile, timeouts, proxy and the base header set attached to every request.

Usage:
    from .config import ConfigLoader

    config = ConfigLoader.default()
    config = ConfigLoader.from_file("transport.json")
    config = ConfigLoader.from_settings(settings)
"""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from ...core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Impersonation profiles known to curl_cffi
VALID_IMPERSONATE_PROFILES = [
    "chrome110",
    "chrome116",
    "chrome119",
    "chrome120",
    "chrome123",
    "chrome124",
    "edge101",
    "safari15_5",
    "safari17_0",
]


class HeadersConfig(BaseModel):
    """Base header set merged under caller-supplied headers."""

    user_agent: str = DEFAULT_USER_AGENT
    static: dict[str, str] = Field(
        default_factory=lambda: {
            "Accept": (
                "text/html,application/xhtml+xml,application/xml;q=0.9,"
                "application/json;q=0.9,*/*;q=0.8"
            ),
            "Accept-Language": "en-US,en;q=0.9",
            # Required by the connect API proxy for non-browser callers
            "nk": "NT",
        }
    )

    def build(self) -> dict[str, str]:
        headers = dict(self.static)
        headers["User-Agent"] = self.user_agent
        return headers


class TransportConfig(BaseModel):
    """Challenge-solving transport configuration."""

    impersonate: str = "chrome120"
    # None leaves the request unbounded
    timeout_seconds: float | None = 60.0
    proxy_url: str | None = None
    verify_tls: bool = True
    headers: HeadersConfig = Field(default_factory=HeadersConfig)

    @field_validator("impersonate")
    @classmethod
    def validate_impersonate(cls, v: str) -> str:
        if v not in VALID_IMPERSONATE_PROFILES:
            logger.warning(f"Unknown impersonate profile '{v}', may not be supported")
        return v


class ConfigLoader:
    """Builds TransportConfig from files, dicts or process settings."""

    @classmethod
    def from_file(cls, path: str | Path) -> TransportConfig:
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If file not found
            ValueError: If JSON invalid
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}") from e

        logger.info(f"Loaded transport configuration from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransportConfig:
        # Remove comments (keys starting with _)
        clean_data = {k: v for k, v in data.items() if not k.startswith("_")}

        try:
            return TransportConfig.model_validate(clean_data)
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

    @classmethod
    def default(cls) -> TransportConfig:
        return TransportConfig()

    @classmethod
    def from_settings(cls, settings: "Settings") -> TransportConfig:
        """Map GARMIN_* environment settings onto a TransportConfig."""
        headers = HeadersConfig()
        if settings.GARMIN_USER_AGENT:
            headers.user_agent = settings.GARMIN_USER_AGENT
        return TransportConfig(
            impersonate=settings.GARMIN_IMPERSONATE,
            timeout_seconds=settings.GARMIN_REQUEST_TIMEOUT,
            proxy_url=settings.GARMIN_PROXY_URL,
            verify_tls=settings.GARMIN_VERIFY_TLS,
            headers=headers,
        )
