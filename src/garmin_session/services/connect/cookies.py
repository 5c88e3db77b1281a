"""
Cookie Jar

Explicit session cookie store with a stable ``export() / load(blob)``
contract that does not depend on the transport's internal cookie
representation. The transport bridge converts to and from curl_cffi's
jar (see ``transport.py``).

Blob format (opaque to callers, UTF-8 JSON):
    {"version": 1, "cookies": [{"name": ..., "value": ..., "domain": ...}, ...]}
"""

import json
import logging
import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from typing import Any
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

BLOB_VERSION = 1


@dataclass(frozen=True)
class CookieData:
    """Standardized cookie representation for serialization."""

    name: str
    value: str
    domain: str
    path: str = "/"
    expires: int | None = None
    secure: bool = False
    http_only: bool = False

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.domain.lower(), self.path, self.name)

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires is None:
            return False
        return self.expires <= (now if now is not None else time.time())

    def matches(self, url: str) -> bool:
        """Whether this cookie would be sent with a request to ``url``."""
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
        domain = self.domain.lower().lstrip(".")
        if domain and host != domain and not host.endswith(f".{domain}"):
            return False
        if not (parts.path or "/").startswith(self.path):
            return False
        if self.secure and parts.scheme != "https":
            return False
        return not self.is_expired()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "expires": self.expires,
            "secure": self.secure,
            "http_only": self.http_only,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CookieData":
        """Create from dictionary."""
        return cls(
            name=data["name"],
            value=data["value"],
            domain=data["domain"],
            path=data.get("path") or "/",
            expires=data.get("expires"),
            secure=bool(data.get("secure", False)),
            http_only=bool(data.get("http_only", False)),
        )


class CookieJar:
    """Mutable store of session cookies keyed by (domain, path, name).

    Single writer: the HTTP client, inside its per-session lock.
    """

    def __init__(self, cookies: Iterable[CookieData] = ()) -> None:
        self._cookies: dict[tuple[str, str, str], CookieData] = {}
        for cookie in cookies:
            self._cookies[cookie.key] = cookie

    def __len__(self) -> int:
        return len(self._cookies)

    def __iter__(self) -> Iterator[CookieData]:
        return iter(list(self._cookies.values()))

    def __bool__(self) -> bool:
        return bool(self._cookies)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CookieJar):
            return NotImplemented
        return self._cookies == other._cookies

    def get(self, name: str, domain: str | None = None) -> str | None:
        """Value of the first cookie called ``name`` (optionally on ``domain``)."""
        for cookie in self._cookies.values():
            if cookie.name == name and (domain is None or cookie.domain.lstrip(".") == domain.lstrip(".")):
                return cookie.value
        return None

    def set(self, cookie: CookieData) -> None:
        self._cookies[cookie.key] = cookie

    def clear(self) -> None:
        self._cookies.clear()

    def copy(self) -> "CookieJar":
        return CookieJar(replace(c) for c in self._cookies.values())

    def absorb(self, cookies: Iterable[CookieData]) -> None:
        """Replace the jar contents with the transport's post-response view.

        The transport starts each request from this jar's contents, so its
        view afterwards is this jar with every Set-Cookie (including those
        seen on redirects and deletions) already applied.
        """
        self._cookies = {c.key: c for c in cookies if not c.is_expired()}

    def apply_changes(self, before: "CookieJar", after: "CookieJar") -> None:
        """Replay what changed between two snapshots onto this jar.

        Cookies ``after`` added or changed are set, cookies it dropped are
        removed. Keys the snapshots agree on keep their current value here,
        so updates this jar received in the meantime survive.
        """
        previous = set(before)
        for key, cookie in before._cookies.items():
            if key not in after._cookies and self._cookies.get(key) == cookie:
                del self._cookies[key]
        for cookie in after:
            if cookie not in previous:
                self._cookies[cookie.key] = cookie

    def for_url(self, url: str) -> list[CookieData]:
        """Cookies that apply to ``url``, most specific path first."""
        matching = [c for c in self._cookies.values() if c.matches(url)]
        return sorted(matching, key=lambda c: len(c.path), reverse=True)

    def header_for(self, url: str) -> str:
        """Render the outgoing ``Cookie`` header value for ``url``."""
        return "; ".join(f"{c.name}={c.value}" for c in self.for_url(url))

    def export(self) -> bytes:
        """Serialize all cookies into an opaque blob."""
        payload = {
            "version": BLOB_VERSION,
            "cookies": [c.to_dict() for c in self._cookies.values()],
        }
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_blob(cls, blob: bytes | str) -> "CookieJar":
        """Rebuild a jar from ``export()`` output.

        Raises:
            ValueError: If the blob is not a cookie blob.
        """
        try:
            payload = json.loads(blob)
            if payload.get("version") != BLOB_VERSION:
                raise ValueError(f"unsupported cookie blob version: {payload.get('version')!r}")
            cookies = [CookieData.from_dict(c) for c in payload["cookies"]]
        except (TypeError, KeyError, AttributeError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"malformed cookie blob: {e}") from e
        logger.debug(f"Loaded {len(cookies)} cookies from blob")
        return cls(cookies)
