"""
Challenge-Solving Transport

Wraps curl_cffi.AsyncSession with browser impersonation (JA3/JA4 fingerprint
matching) so requests pass the bot-challenge layer in front of the SSO and
connect hosts. The transport is stateless with respect to cookies: each
``send`` starts from the caller's cookies and reports the cookie view after
the response (redirect hops included).

Implements the "Bridge Pattern" between ``CookieData`` and curl_cffi's
http.cookiejar-backed cookie store.
"""

import http.cookiejar
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from curl_cffi import CurlError
from curl_cffi.requests import AsyncSession, Response

from .config import ConfigLoader, TransportConfig
from .cookies import CookieData
from .exceptions import TransportError

logger = logging.getLogger(__name__)


@dataclass
class TransportResponse:
    """Standardized response from a transport."""

    status_code: int
    url: str
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)
    cookies: list[CookieData] = field(default_factory=list)
    encoding: str = "utf-8"

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


class ChallengeTransport(Protocol):
    """Shape of the challenge-solving dependency."""

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        cookies: list[CookieData],
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        json_data: Any = None,
    ) -> TransportResponse: ...

    async def close(self) -> None: ...


class CurlCffiTransport:
    """curl_cffi-backed transport with browser impersonation."""

    def __init__(self, config: TransportConfig | None = None) -> None:
        self._config = config or ConfigLoader.default()
        self._session: AsyncSession | None = None

    @property
    def config(self) -> TransportConfig:
        return self._config

    def _get_session(self) -> AsyncSession:
        if self._session is None:
            self._session = AsyncSession(
                impersonate=self._config.impersonate,
                timeout=self._config.timeout_seconds,
                verify=self._config.verify_tls,
            )
            logger.debug(f"Created session: impersonate={self._config.impersonate}")
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        cookies: list[CookieData],
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        json_data: Any = None,
    ) -> TransportResponse:
        session = self._get_session()
        inject_cookies_to_curl_cffi(session, cookies)

        kwargs: dict[str, Any] = {"headers": headers, "allow_redirects": True}
        if params:
            kwargs["params"] = params
        if data is not None:
            kwargs["data"] = data
        if json_data is not None:
            kwargs["json"] = json_data
        if self._config.proxy_url:
            kwargs["proxy"] = self._config.proxy_url

        try:
            response: Response = await session.request(method, url, **kwargs)
        except CurlError as e:
            raise TransportError(message=str(e), url=url, **_categorize_curl_error(e)) from e

        return TransportResponse(
            status_code=response.status_code,
            url=str(response.url),
            content=response.content,
            headers={k.lower(): v for k, v in response.headers.items()},
            cookies=extract_cookies_from_curl_cffi(session),
            encoding=response.encoding or "utf-8",
        )


def _categorize_curl_error(error: CurlError) -> dict[str, Any]:
    """Categorize curl error."""
    error_str = str(error).lower()

    dns_indicators = ["no such host", "could not resolve host", "curl: (6)"]
    if any(ind in error_str for ind in dns_indicators):
        return {"error_code": "dns_error", "is_dns_error": True}

    connection_indicators = ["connection refused", "curl: (7)"]
    if any(ind in error_str for ind in connection_indicators):
        return {"error_code": "connection_refused", "is_connection_refused": True}

    timeout_indicators = ["timed out", "timeout", "curl: (28)"]
    if any(ind in error_str for ind in timeout_indicators):
        return {"error_code": "timeout", "is_timeout": True}

    return {"error_code": "unknown"}


def extract_cookies_from_curl_cffi(session: Any) -> list[CookieData]:
    """Extract cookies from a curl_cffi session."""
    jar: http.cookiejar.CookieJar = session.cookies.jar
    return [
        CookieData(
            name=cookie.name,
            value=cookie.value or "",
            domain=cookie.domain or "",
            path=cookie.path or "/",
            expires=int(cookie.expires) if cookie.expires else None,
            secure=bool(cookie.secure),
            http_only=cookie.has_nonstandard_attr("HttpOnly"),
        )
        for cookie in jar
    ]


def inject_cookies_to_curl_cffi(session: Any, cookies: list[CookieData]) -> None:
    """Replace a curl_cffi session's cookies with ``cookies``."""
    jar: http.cookiejar.CookieJar = session.cookies.jar
    jar.clear()
    for cookie in cookies:
        jar.set_cookie(
            http.cookiejar.Cookie(
                version=0,
                name=cookie.name,
                value=cookie.value,
                port=None,
                port_specified=False,
                domain=cookie.domain,
                domain_specified=bool(cookie.domain),
                domain_initial_dot=cookie.domain.startswith("."),
                path=cookie.path,
                path_specified=True,
                secure=cookie.secure,
                expires=cookie.expires,
                discard=cookie.expires is None,
                comment=None,
                comment_url=None,
                rest={"HttpOnly": ""} if cookie.http_only else {},
            )
        )

    logger.debug(f"Injected {len(cookies)} cookies into session")
