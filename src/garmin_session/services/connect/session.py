"""
Connect Session

Public facade over the engine. Owns the domain, the cookie jar (through its
HTTP client) and the user identifier; exposes login, session export/import
and domain-resolved request pass-throughs for the resource methods.

Usage:
    async with ConnectSession(domain="com") as session:
        session.import_session(cached_state)
        if not session.is_authenticated:
            await session.login("user@example.com", "secret")
        profile = await session.get_social_profile()
        cached_state = session.export_session()
"""

import base64
import binascii
import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any

from .auth import AuthFlow, Credentials
from .client import ClientResponse, HttpClient
from .config import ConfigLoader, TransportConfig
from .cookies import CookieJar
from .domain import GARMIN_SSO_ORIGIN, Domain, resolve
from .exceptions import DownloadIncompleteError
from .resources import ConnectResources
from .transport import ChallengeTransport, CurlCffiTransport

logger = logging.getLogger(__name__)

AUTH_ERROR_STATUS_CODES = (401, 403)


@dataclass(frozen=True)
class SessionState:
    """Exported session: opaque cookie blob plus the user identifier."""

    cookie_blob: bytes
    user_identifier: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form for files and secret stores."""
        return {
            "cookies": base64.b64encode(self.cookie_blob).decode("ascii"),
            "user_identifier": self.user_identifier,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionState":
        """Inverse of ``to_dict``.

        Raises:
            ValueError: If ``cookies`` is missing or not base64.
        """
        try:
            blob = base64.b64decode(data["cookies"], validate=True)
        except (KeyError, TypeError, binascii.Error) as e:
            raise ValueError(f"malformed session state: {e}") from e
        return cls(cookie_blob=blob, user_identifier=data.get("user_identifier"))


class SessionStatus(str, Enum):
    EMPTY = "empty"
    AUTHENTICATED = "authenticated"
    # Server rejected an authenticated request; cookies kept, login required
    INVALIDATED = "invalidated"


class ConnectSession(ConnectResources):
    """One logical Garmin Connect session.

    Instances share no mutable state, so callers may hold one per end user
    and use them concurrently.
    """

    def __init__(
        self,
        domain: str | Domain = Domain.COM,
        credentials: Credentials | None = None,
        config: TransportConfig | None = None,
        transport: ChallengeTransport | None = None,
    ) -> None:
        """
        Args:
            domain: ``com`` (global) or ``cn`` (China mainland).
            credentials: Default login credentials, read once by the caller.
            config: Transport configuration; defaults to ConfigLoader.default().
            transport: Pre-built transport, mainly for tests.

        Raises:
            InvalidDomainError: If ``domain`` is not a supported code.
        """
        self._domain = Domain.parse(domain)
        self._config = config or ConfigLoader.default()
        self._transport = transport or CurlCffiTransport(self._config)

        headers = self._config.headers.build()
        headers["origin"] = resolve(self._domain, GARMIN_SSO_ORIGIN)
        self._client = HttpClient(self._transport, headers)

        self._credentials = replace(credentials or Credentials(), domain=self._domain.value)
        self._user_identifier: str | None = None
        self._status = SessionStatus.EMPTY

    @property
    def domain(self) -> Domain:
        return self._domain

    @property
    def user_identifier(self) -> str | None:
        return self._user_identifier

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_authenticated(self) -> bool:
        return self._status is SessionStatus.AUTHENTICATED

    @property
    def client(self) -> HttpClient:
        return self._client

    async def __aenter__(self) -> "ConnectSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._transport.close()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, username: str | None = None, password: str | None = None) -> "ConnectSession":
        """Run the SSO flow and commit the resulting cookies.

        Falls back to the constructor credentials when username/password
        are omitted. On any failure the session state is left exactly as it
        was before the attempt.

        Raises:
            AuthenticationFailedError: A login step failed (see subclasses).
            TransportError: Network failure during the flow.
        """
        credentials = self._credentials.with_login(username, password)
        if not credentials.is_complete:
            logger.warning("Logging in with incomplete credentials; expect rejection")

        scratch = self._client.fork()
        baseline = scratch.jar.copy()
        result = await AuthFlow(scratch, self._domain).run(credentials)

        # Commit only the cookies the login itself set or dropped
        self._client.jar.apply_changes(baseline, result.client.jar)
        self._user_identifier = result.user_identifier
        self._status = SessionStatus.AUTHENTICATED
        logger.info(f"Logged in as {self._user_identifier or '<unknown>'} ({len(self._client.jar)} cookies)")
        return self

    def export_session(self) -> SessionState:
        return SessionState(self._client.jar.export(), self._user_identifier)

    def import_session(self, state: SessionState | dict[str, Any] | None) -> None:
        """Restore an exported session.

        Missing or malformed input is a no-op: callers try a cached
        session opportunistically and fall back to ``login``.
        """
        if isinstance(state, dict):
            try:
                state = SessionState.from_dict(state)
            except ValueError as e:
                logger.debug(f"Ignoring session import: {e}")
                return

        if not isinstance(state, SessionState) or not state.cookie_blob or not state.user_identifier:
            logger.debug("Ignoring session import: no cached session available")
            return

        try:
            jar = CookieJar.from_blob(state.cookie_blob)
        except ValueError as e:
            logger.warning(f"Ignoring session import: {e}")
            return

        self._client.jar.absorb(jar)
        self._user_identifier = state.user_identifier
        self._status = SessionStatus.AUTHENTICATED
        logger.info(f"Imported session for {self._user_identifier} ({len(jar)} cookies)")

    # ------------------------------------------------------------------
    # Pass-throughs (logical paths are resolved against the domain)
    # ------------------------------------------------------------------

    def url(self, path: str) -> str:
        return resolve(self._domain, path)

    def _observe(self, response: ClientResponse) -> None:
        if response.status_code in AUTH_ERROR_STATUS_CODES and self._status is SessionStatus.AUTHENTICATED:
            self._status = SessionStatus.INVALIDATED
            logger.warning(f"Session rejected with HTTP {response.status_code} at {response.url}; login required")

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._client.send(method, self.url(path), **kwargs)
        self._observe(response)
        return response.body

    async def get(self, path: str, query: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=query)

    async def post(
        self,
        path: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        headers = {**(headers or {}), "Content-Type": "application/json"}
        return await self._request("POST", path, json_data=body, params=params, headers=headers)

    async def put(self, path: str, body: Any) -> Any:
        return await self._request("PUT", path, json_data=body, headers={"Content-Type": "application/json"})

    async def download_blob(
        self,
        destination_dir: str | Path,
        path: str,
        query: dict[str, Any] | None = None,
    ) -> Path:
        try:
            return await self._client.download_blob(destination_dir, self.url(path), query)
        except DownloadIncompleteError as e:
            if e.status_code in AUTH_ERROR_STATUS_CODES and self._status is SessionStatus.AUTHENTICATED:
                self._status = SessionStatus.INVALIDATED
                logger.warning(f"Download rejected with HTTP {e.status_code}; login required")
            raise
