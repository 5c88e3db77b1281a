"""Scripted transport and SSO page fixtures standing in for curl_cffi and the live service."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from garmin_session.services.connect import (
    CookieData,
    CookieJar,
    TransportResponse,
)

LOGIN_PAGE_HTML = """
<!DOCTYPE html>
<html>
<head><title>GARMIN Authentication Application</title></head>
<body>
    <form method="post" id="login-form">
        <input type="hidden" name="_csrf" value="3F0A6D2B9C8E41F7A5D0" />
        <input class="login_email" name="username" id="username" type="email" />
        <input type="password" name="password" id="password" />
    </form>
</body>
</html>
"""

LOGIN_PAGE_WITHOUT_CSRF_HTML = """
<!DOCTYPE html>
<html>
<head><title>GARMIN Authentication Application</title></head>
<body><form method="post" id="login-form"></form></body>
</html>
"""

SIGNIN_SUCCESS_HTML = """
<html><head>
<script type="text/javascript">
    var redirectAfterAccountLoginUrl = "https:\\/\\/connect.garmin.com\\/modern";
    var response_url = "https:\\/\\/connect.garmin.com\\/modern?ticket=ST-0123456-aBCDefgh1iJkLmN5opQ9R-cas";
</script>
</head><body>Success</body></html>
"""

SIGNIN_NO_TICKET_PARAM_HTML = """
<script>var response_url = "https:\\/\\/connect.garmin.com\\/modern";</script>
"""

SIGNIN_REJECTED_HTML = """
<html><body>
    <div id="status" class="error">Invalid sign in. (Passwords are case sensitive.)</div>
    <form method="post" id="login-form">
        <input type="hidden" name="_csrf" value="9B1C7E00AA" />
    </form>
</body></html>
"""

SOCIAL_PROFILE_JSON = '{"displayName": "runner42", "fullName": "Test Runner", "id": 1234}'


@dataclass
class RecordedRequest:
    method: str
    url: str
    headers: dict[str, str]
    cookies: list[CookieData]
    params: dict[str, Any] | None = None
    data: dict[str, Any] | None = None
    json_data: Any = None

    @property
    def cookie_header(self) -> str:
        return CookieJar(self.cookies).header_for(self.url)


@dataclass
class Route:
    method: str
    fragment: str
    status_code: int = 200
    body: str | bytes = ""
    headers: dict[str, str] = field(default_factory=dict)
    set_cookies: list[CookieData] = field(default_factory=list)
    error: Exception | None = None
    times: int | None = None


class FakeTransport:
    """Scripted ChallengeTransport.

    Routes are matched in registration order by method and URL substring.
    Set-Cookie behaviour mirrors the real bridge: the returned cookie view is
    the request cookies with the route's cookies applied on top.
    """

    def __init__(self) -> None:
        self.routes: list[Route] = []
        self.requests: list[RecordedRequest] = []
        self.closed = False
        self.before_send: Callable[[RecordedRequest], Any] | None = None

    def route(
        self,
        method: str,
        fragment: str,
        *,
        status_code: int = 200,
        body: str | bytes = "",
        headers: dict[str, str] | None = None,
        set_cookies: list[CookieData] | None = None,
        error: Exception | None = None,
        times: int | None = None,
    ) -> "FakeTransport":
        self.routes.append(
            Route(method, fragment, status_code, body, headers or {}, set_cookies or [], error, times)
        )
        return self

    def urls(self) -> list[str]:
        return [r.url for r in self.requests]

    def _match(self, method: str, url: str) -> Route:
        for route in self.routes:
            if route.method == method and route.fragment in url and route.times != 0:
                if route.times is not None:
                    route.times -= 1
                return route
        raise AssertionError(f"unexpected request: {method} {url}")

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
        recorded = RecordedRequest(method, url, dict(headers), list(cookies), params, data, json_data)
        self.requests.append(recorded)
        if self.before_send is not None:
            await self.before_send(recorded)

        route = self._match(method, url)
        if route.error is not None:
            raise route.error

        jar = CookieJar(cookies)
        for cookie in route.set_cookies:
            jar.set(cookie)

        body = route.body.encode("utf-8") if isinstance(route.body, str) else route.body
        return TransportResponse(
            status_code=route.status_code,
            url=url,
            content=body,
            headers={k.lower(): v for k, v in route.headers.items()},
            cookies=list(jar),
        )

    async def close(self) -> None:
        self.closed = True


def script_login(
    transport: FakeTransport,
    tld: str = "com",
    signin_body: str = SIGNIN_SUCCESS_HTML,
    session_value: str = "sess-1",
) -> FakeTransport:
    """Register the full happy-path SSO handshake, each step answered once."""
    sso = f"sso.garmin.{tld}"
    connect = f"connect.garmin.{tld}"
    signin = signin_body.replace("garmin.com", f"garmin.{tld}")
    return (
        transport.route(
            "GET",
            f"{sso}/sso/login",
            body=LOGIN_PAGE_HTML,
            set_cookies=[CookieData("SESSION", "sso-session", sso, "/sso")],
            times=1,
        )
        .route(
            "POST",
            f"{sso}/sso/signin",
            body=signin,
            set_cookies=[CookieData("CASTGC", "TGT-xyz", sso, "/sso", secure=True)],
            times=1,
        )
        .route(
            "GET",
            f"{connect}/modern?ticket=",
            set_cookies=[CookieData("SESSIONID", session_value, connect, "/", secure=True)],
            times=1,
        )
        .route(
            "GET",
            "socialProfile",
            body=SOCIAL_PROFILE_JSON,
            headers={"Content-Type": "application/json"},
            times=1,
        )
        .route(
            "GET",
            f"{connect}/modern",
            set_cookies=[CookieData("GARMIN-SSO-GUID", "guid-1", f".garmin.{tld}", "/")],
            times=1,
        )
    )
