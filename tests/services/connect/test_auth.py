"""Unit tests for the SSO AuthFlow state machine.

Covers:
- Happy path through every state, request order and parameters
- CSRF / credential / ticket failures and the state they report
- Transport failures and cancellation ending in AUTH_FAILED
- Credentials helpers
"""

import asyncio

import pytest

from garmin_session.services.connect.auth import AuthFlow, AuthState, Credentials
from garmin_session.services.connect.client import HttpClient
from garmin_session.services.connect.domain import Domain
from garmin_session.services.connect.exceptions import (
    AuthenticationFailedError,
    CredentialRejectedError,
    CsrfExtractionError,
    TicketExtractionError,
    TransportError,
)
from tests.support import (
    LOGIN_PAGE_HTML,
    LOGIN_PAGE_WITHOUT_CSRF_HTML,
    SIGNIN_NO_TICKET_PARAM_HTML,
    SIGNIN_REJECTED_HTML,
    FakeTransport,
    RecordedRequest,
    script_login,
)

CREDENTIALS = Credentials("user@example.com", "hunter2")


def make_flow(transport: FakeTransport, domain: Domain = Domain.COM) -> AuthFlow:
    return AuthFlow(HttpClient(transport, {"User-Agent": "test"}), domain)


# =============================================================================
# CREDENTIALS TESTS
# =============================================================================
class TestCredentials:
    def test_password_hidden_from_repr(self) -> None:
        assert "hunter2" not in repr(CREDENTIALS)

    def test_with_login_requires_both(self) -> None:
        assert CREDENTIALS.with_login("other", None) is CREDENTIALS
        assert CREDENTIALS.with_login(None, "pw") is CREDENTIALS
        overridden = CREDENTIALS.with_login("other", "pw")
        assert (overridden.username, overridden.password) == ("other", "pw")

    def test_is_complete(self) -> None:
        assert CREDENTIALS.is_complete
        assert not Credentials("user", "").is_complete

    def test_form_fields(self) -> None:
        fields = Credentials("u", "p", domain="cn").form_fields("tok")
        assert fields == {
            "username": "u",
            "password": "p",
            "domain": "cn",
            "embed": "false",
            "_csrf": "tok",
            "rememberme": "on",
        }


# =============================================================================
# HAPPY PATH TESTS
# =============================================================================
class TestAuthFlowSuccess:
    @pytest.mark.asyncio
    async def test_reaches_session_established(self, transport: FakeTransport) -> None:
        script_login(transport)
        flow = make_flow(transport)

        result = await flow.run(CREDENTIALS)

        assert flow.state is AuthState.SESSION_ESTABLISHED
        assert result.context.history == [
            AuthState.UNAUTHENTICATED,
            AuthState.CSRF_OBTAINED,
            AuthState.CREDENTIALS_SUBMITTED,
            AuthState.TICKET_FOLLOWED,
        ]
        assert result.user_identifier == "runner42"

    @pytest.mark.asyncio
    async def test_request_sequence(self, transport: FakeTransport) -> None:
        script_login(transport)
        await make_flow(transport).run(CREDENTIALS)

        assert [(r.method, r.url) for r in transport.requests] == [
            ("GET", "https://sso.garmin.com/sso/login"),
            ("POST", "https://sso.garmin.com/sso/signin"),
            ("GET", "https://connect.garmin.com/modern?ticket=ST-0123456-aBCDefgh1iJkLmN5opQ9R-cas"),
            ("GET", "https://connect.garmin.com/modern"),
            ("GET", "https://connect.garmin.com/modern/proxy/userprofile-service/socialProfile"),
        ]

    @pytest.mark.asyncio
    async def test_login_and_signin_carry_service_params(self, transport: FakeTransport) -> None:
        script_login(transport)
        await make_flow(transport).run(CREDENTIALS)

        expected = {"service": "https://connect.garmin.com/modern", "gauthHost": "https://sso.garmin.com/sso"}
        login, signin = transport.requests[0], transport.requests[1]
        assert login.params == expected
        assert signin.params == expected

    @pytest.mark.asyncio
    async def test_signin_posts_csrf_and_credentials(self, transport: FakeTransport) -> None:
        script_login(transport)
        await make_flow(transport).run(CREDENTIALS)

        form = transport.requests[1].data
        assert form["_csrf"] == "3F0A6D2B9C8E41F7A5D0"
        assert form["username"] == "user@example.com"
        assert form["password"] == "hunter2"
        assert form["embed"] == "false"
        assert form["rememberme"] == "on"

    @pytest.mark.asyncio
    async def test_cookies_flow_between_steps(self, transport: FakeTransport) -> None:
        script_login(transport)
        flow = make_flow(transport)
        result = await flow.run(CREDENTIALS)

        signin, ticket = transport.requests[1], transport.requests[2]
        assert "SESSION=sso-session" in signin.cookie_header
        assert ticket.cookie_header == ""
        assert "SESSIONID=sess-1" in transport.requests[3].cookie_header
        assert result.client.jar.get("CASTGC") == "TGT-xyz"
        assert result.client.jar.get("GARMIN-SSO-GUID") == "guid-1"

    @pytest.mark.asyncio
    async def test_cn_domain_never_touches_com(self, transport: FakeTransport) -> None:
        script_login(transport, tld="cn")
        result = await make_flow(transport, Domain.CN).run(Credentials("u", "p", domain="cn"))

        assert all("garmin.cn" in url and "garmin.com" not in url for url in transport.urls())
        assert result.context.auth_params == {
            "service": "https://connect.garmin.cn/modern",
            "gauthHost": "https://sso.garmin.cn/sso",
        }

    @pytest.mark.asyncio
    async def test_profile_failure_is_not_fatal(self, transport: FakeTransport) -> None:
        transport.route("GET", "socialProfile", error=TransportError("timed out", is_timeout=True))
        script_login(transport)

        result = await make_flow(transport).run(CREDENTIALS)

        assert result.context.state is AuthState.SESSION_ESTABLISHED
        assert result.user_identifier is None


# =============================================================================
# FAILURE TESTS
# =============================================================================
class TestAuthFlowFailures:
    @pytest.mark.asyncio
    async def test_missing_csrf_stops_after_first_request(self, transport: FakeTransport) -> None:
        transport.route("GET", "sso/login", body=LOGIN_PAGE_WITHOUT_CSRF_HTML)
        flow = make_flow(transport)

        with pytest.raises(CsrfExtractionError) as exc_info:
            await flow.run(CREDENTIALS)

        assert len(transport.requests) == 1
        assert flow.state is AuthState.AUTH_FAILED
        assert exc_info.value.reason == "csrf"
        assert exc_info.value.state == AuthState.UNAUTHENTICATED.value
        assert exc_info.value.url == "https://sso.garmin.com/sso/login"

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, transport: FakeTransport) -> None:
        transport.route("GET", "sso/login", body=LOGIN_PAGE_HTML)
        transport.route("POST", "sso/signin", body=SIGNIN_REJECTED_HTML)
        flow = make_flow(transport)

        with pytest.raises(CredentialRejectedError) as exc_info:
            await flow.run(Credentials("user@example.com", "wrong"))

        assert len(transport.requests) == 2
        assert flow.state is AuthState.AUTH_FAILED
        assert exc_info.value.reason == "credentials"
        assert exc_info.value.state == AuthState.CSRF_OBTAINED.value
        assert isinstance(exc_info.value, AuthenticationFailedError)

    @pytest.mark.asyncio
    async def test_rejected_even_with_non_200_status(self, transport: FakeTransport) -> None:
        transport.route("GET", "sso/login", body=LOGIN_PAGE_HTML)
        transport.route("POST", "sso/signin", status_code=401, body=SIGNIN_REJECTED_HTML)

        with pytest.raises(CredentialRejectedError):
            await make_flow(transport).run(CREDENTIALS)

    @pytest.mark.asyncio
    async def test_ticket_without_ticket_param(self, transport: FakeTransport) -> None:
        script_login(transport, signin_body=SIGNIN_NO_TICKET_PARAM_HTML)
        flow = make_flow(transport)

        with pytest.raises(TicketExtractionError) as exc_info:
            await flow.run(CREDENTIALS)

        assert len(transport.requests) == 2
        assert exc_info.value.reason == "ticket"
        assert exc_info.value.state == AuthState.CREDENTIALS_SUBMITTED.value
        assert exc_info.value.url == "https://connect.garmin.com/modern"

    @pytest.mark.asyncio
    async def test_transport_error_mid_flow(self, transport: FakeTransport) -> None:
        transport.route("GET", "sso/login", body=LOGIN_PAGE_HTML)
        transport.route("POST", "sso/signin", error=TransportError("connection refused", is_connection_refused=True))
        flow = make_flow(transport)

        with pytest.raises(TransportError):
            await flow.run(CREDENTIALS)

        assert flow.state is AuthState.AUTH_FAILED
        assert flow.context.history[-1] is AuthState.CSRF_OBTAINED

    @pytest.mark.asyncio
    async def test_cancellation_marks_failed(self, transport: FakeTransport) -> None:
        script_login(transport)
        started = asyncio.Event()

        async def hang(request: RecordedRequest) -> None:
            if "signin" in request.url:
                started.set()
                await asyncio.sleep(10)

        transport.before_send = hang
        flow = make_flow(transport)
        task = asyncio.create_task(flow.run(CREDENTIALS))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert flow.state is AuthState.AUTH_FAILED
