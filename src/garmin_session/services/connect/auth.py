"""
SSO Auth Flow

State machine driving the ticket-based single-sign-on handshake:

    UNAUTHENTICATED
        |  GET  sso/login?service=..&gauthHost=..     -> extract _csrf
    CSRF_OBTAINED
        |  POST sso/signin (form, same query)         -> extract response_url
    CREDENTIALS_SUBMITTED
        |  GET  <ticket url>
    TICKET_FOLLOWED
        |  GET  connect modern root
    SESSION_ESTABLISHED

Any failing step moves to AUTH_FAILED and raises a subclass of
AuthenticationFailedError carrying the URL being processed. The flow works
on whatever client it is given; the session facade hands it a fork so a
failed attempt never touches the committed cookie jar.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .client import HttpClient
from .domain import GARMIN_SSO, GC_MODERN, LOGIN_URL, MODERN_PROXY, SIGNIN_URL, Domain, resolve
from .exceptions import (
    AuthenticationFailedError,
    CredentialRejectedError,
    CsrfExtractionError,
    TicketExtractionError,
    TransportError,
)
from .extraction import ExtractionStatus, extract_csrf_token, extract_ticket_url

logger = logging.getLogger(__name__)

SOCIAL_PROFILE_PATH = f"{MODERN_PROXY}/userprofile-service/socialProfile"


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    CSRF_OBTAINED = "csrf_obtained"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    TICKET_FOLLOWED = "ticket_followed"
    SESSION_ESTABLISHED = "session_established"
    AUTH_FAILED = "auth_failed"


@dataclass(frozen=True)
class Credentials:
    """Login credentials. Held in memory only, never persisted."""

    username: str = ""
    password: str = field(default="", repr=False)
    domain: str = "com"
    embed: bool = False

    @property
    def is_complete(self) -> bool:
        return bool(self.username and self.password)

    def with_login(self, username: str | None, password: str | None) -> "Credentials":
        """Override username/password when both are supplied."""
        if username and password:
            return Credentials(username, password, self.domain, self.embed)
        return self

    def form_fields(self, csrf_token: str) -> dict[str, str]:
        return {
            "username": self.username,
            "password": self.password,
            "domain": self.domain,
            "embed": "true" if self.embed else "false",
            "_csrf": csrf_token,
            "rememberme": "on",
        }


@dataclass
class AuthContext:
    """Transient per-attempt record; discarded after success or failure."""

    service_url: str
    auth_host_url: str
    csrf_token: str | None = field(default=None, repr=False)
    ticket_url: str | None = None
    state: AuthState = AuthState.UNAUTHENTICATED
    history: list[AuthState] = field(default_factory=list)

    @property
    def auth_params(self) -> dict[str, str]:
        # Query parameters the SSO host requires on both login and sign-in
        return {"service": self.service_url, "gauthHost": self.auth_host_url}

    def advance(self, state: AuthState) -> None:
        self.history.append(self.state)
        self.state = state


@dataclass
class AuthResult:
    client: HttpClient
    context: AuthContext
    user_identifier: str | None = None


class AuthFlow:
    """Runs one SSO login attempt against ``client``."""

    def __init__(self, client: HttpClient, domain: Domain) -> None:
        self._client = client
        self._domain = domain
        self._context: AuthContext | None = None

    @property
    def state(self) -> AuthState:
        return self._context.state if self._context else AuthState.UNAUTHENTICATED

    @property
    def context(self) -> AuthContext | None:
        return self._context

    def _url(self, logical_url: str) -> str:
        return resolve(self._domain, logical_url)

    async def run(self, credentials: Credentials) -> AuthResult:
        """Drive the flow to SESSION_ESTABLISHED.

        Raises:
            CsrfExtractionError, CredentialRejectedError, TicketExtractionError:
                The corresponding step failed.
            TransportError: Network failure; the flow is left in AUTH_FAILED.
        """
        context = AuthContext(
            service_url=self._url(GC_MODERN),
            auth_host_url=self._url(GARMIN_SSO),
        )
        self._context = context

        try:
            await self._obtain_csrf(context)
            signin_body = await self._submit_credentials(context, credentials)
            await self._follow_ticket(context, signin_body)
            await self._establish_session(context)
        except BaseException:
            # Covers cancellation too: a cancelled login is a failed login.
            if context.state is not AuthState.AUTH_FAILED:
                context.advance(AuthState.AUTH_FAILED)
            raise

        user_identifier = await self._fetch_user_identifier()
        logger.info(f"[AUTH] Session established on garmin.{self._domain.value}")
        return AuthResult(self._client, context, user_identifier)

    def _fail(
        self,
        context: AuthContext,
        error_cls: type[AuthenticationFailedError],
        message: str,
        url: str,
    ) -> AuthenticationFailedError:
        last_state = context.state
        context.advance(AuthState.AUTH_FAILED)
        logger.warning(f"[AUTH] {message} (after {last_state.value})")
        return error_cls(message, url=url, state=last_state.value)

    async def _obtain_csrf(self, context: AuthContext) -> None:
        url = self._url(LOGIN_URL)
        logger.info("[AUTH] Loading login page")
        body = await self._client.get(url, context.auth_params)

        result = extract_csrf_token(body)
        if not result.ok:
            raise self._fail(context, CsrfExtractionError, f"Auth failure: {result.detail}", url)

        context.csrf_token = result.value
        context.advance(AuthState.CSRF_OBTAINED)

    async def _submit_credentials(self, context: AuthContext, credentials: Credentials) -> Any:
        url = self._url(SIGNIN_URL)
        logger.info("[AUTH] Submitting credentials")
        body = await self._client.post_form(
            url,
            credentials.form_fields(context.csrf_token or ""),
            params=context.auth_params,
        )

        if extract_ticket_url(body).status is ExtractionStatus.MISSING:
            raise self._fail(
                context,
                CredentialRejectedError,
                "Auth failure: sign-in returned no ticket. Check username and password",
                url,
            )

        context.advance(AuthState.CREDENTIALS_SUBMITTED)
        return body

    async def _follow_ticket(self, context: AuthContext, signin_body: Any) -> None:
        result = extract_ticket_url(signin_body)
        if not result.ok:
            raise self._fail(
                context,
                TicketExtractionError,
                f"Auth failure: {result.detail}",
                result.value or self._url(SIGNIN_URL),
            )

        context.ticket_url = result.value
        logger.info("[AUTH] Following ticket redirect")
        await self._client.get(result.value)
        context.advance(AuthState.TICKET_FOLLOWED)

    async def _establish_session(self, context: AuthContext) -> None:
        await self._client.get(self._url(GC_MODERN))
        context.advance(AuthState.SESSION_ESTABLISHED)

    async def _fetch_user_identifier(self) -> str | None:
        """Best effort: the profile display name keys per-user endpoints."""
        try:
            profile = await self._client.get(self._url(SOCIAL_PROFILE_PATH))
        except TransportError as e:
            logger.warning(f"[AUTH] Could not load social profile: {e}")
            return None
        if isinstance(profile, dict) and profile.get("displayName"):
            return str(profile["displayName"])
        logger.debug("[AUTH] Social profile carried no displayName")
        return None
