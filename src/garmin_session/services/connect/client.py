"""
HTTP Client

Verb-level operations over the challenge-solving transport. Every call
attaches the jar's cookies and the base header set, sends through the
transport, absorbs the response cookies back into the jar and hands the
body back as parsed JSON when it is JSON, raw text otherwise.

The read-jar / send / absorb sequence runs under a per-client asyncio.Lock
so concurrent calls on one session never drop a Set-Cookie update.
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .cookies import CookieJar
from .exceptions import DownloadIncompleteError
from .transport import ChallengeTransport, TransportResponse

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_PREFIX = "garmin_connect_download"
_FILENAME_PATTERN = re.compile(r'filename="(.+?)"')


def as_json(text: str) -> Any:
    """Parse ``text`` as JSON, returning it unchanged when it is not JSON."""
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return text


@dataclass
class ClientResponse:
    """Response as seen by callers of the HTTP client."""

    status_code: int
    url: str
    text: str
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def body(self) -> Any:
        """JSON payload when the body parses, raw text otherwise."""
        return as_json(self.text)


class HttpClient:
    """Cookie-carrying HTTP client over a ChallengeTransport."""

    def __init__(
        self,
        transport: ChallengeTransport,
        headers: dict[str, str] | None = None,
        jar: CookieJar | None = None,
        lock: asyncio.Lock | None = None,
    ) -> None:
        self._transport = transport
        self._headers = dict(headers or {})
        self._jar = jar if jar is not None else CookieJar()
        self._lock = lock or asyncio.Lock()

    @property
    def jar(self) -> CookieJar:
        return self._jar

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    def fork(self) -> "HttpClient":
        """Client sharing transport and lock but working on a copy of the jar."""
        return HttpClient(self._transport, self._headers, self._jar.copy(), self._lock)

    def _build_headers(self, custom_headers: dict[str, str] | None = None) -> dict[str, str]:
        headers = dict(self._headers)
        if custom_headers:
            headers.update(custom_headers)
        return headers

    async def send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        json_data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> ClientResponse:
        """Send one request and absorb its cookies. Non-2xx is not an error here."""
        request_headers = self._build_headers(headers)

        async with self._lock:
            response = await self._transport.send(
                method,
                url,
                headers=request_headers,
                cookies=list(self._jar),
                params=params,
                data=data,
                json_data=json_data,
            )
            self._jar.absorb(response.cookies)

        logger.debug(f"{method} {url} -> {response.status_code} ({len(self._jar)} cookies)")
        return self._build_response(response)

    @staticmethod
    def _build_response(response: TransportResponse) -> ClientResponse:
        return ClientResponse(
            status_code=response.status_code,
            url=response.url,
            text=response.text,
            content=response.content,
            headers=response.headers,
        )

    async def get(self, url: str, query: dict[str, Any] | None = None) -> Any:
        response = await self.send("GET", url, params=query)
        return response.body

    async def post_form(
        self,
        url: str,
        fields: dict[str, Any],
        params: dict[str, Any] | None = None,
    ) -> Any:
        response = await self.send("POST", url, params=params, data=fields)
        return response.body

    async def post_json(
        self,
        url: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """POST a JSON body.

        Args:
            url: Absolute URL.
            body: JSON-serializable payload, may be None.
            params: URL query parameters.
            headers: Extra headers, e.g. ``x-http-method-override``.
        """
        request_headers = {**(headers or {}), "Content-Type": "application/json"}
        response = await self.send("POST", url, params=params, json_data=body, headers=request_headers)
        return response.body

    async def put_json(self, url: str, body: Any) -> Any:
        response = await self.send("PUT", url, json_data=body, headers={"Content-Type": "application/json"})
        return response.body

    async def download_blob(
        self,
        destination_dir: str | Path,
        url: str,
        query: dict[str, Any] | None = None,
    ) -> Path:
        """Download a binary attachment into ``destination_dir``.

        Returns:
            Absolute path of the written file.

        Raises:
            DownloadIncompleteError: If the response has no Content-Disposition.
        """
        response = await self.send("GET", url, params=query)
        disposition = response.headers.get("content-disposition")
        if not disposition:
            raise DownloadIncompleteError(
                "Download response has no Content-Disposition header",
                url=url,
                status_code=response.status_code,
                content_type=response.headers.get("content-type"),
            )

        match = _FILENAME_PATTERN.search(disposition)
        # Never let a server-supplied name escape the destination directory
        file_name = Path(match.group(1)).name if match else ""
        if file_name in ("", ".", ".."):
            file_name = f"{DEFAULT_DOWNLOAD_PREFIX}_{int(time.time() * 1000)}"
        file_path = Path(destination_dir or ".").expanduser().resolve() / file_name

        await asyncio.to_thread(file_path.write_bytes, response.content)
        logger.info(f"Downloaded {len(response.content)} bytes to {file_path}")
        return file_path
