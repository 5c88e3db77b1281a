"""
HTML Extraction

Pulls the CSRF token out of the SSO login form and the ticket redirect URL
out of the sign-in response script. Both operations return an
``ExtractionResult`` instead of raising, so the auth flow branches on the
outcome the same way whatever the matching strategy is.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import parse_qs, urlsplit

CSRF_PATTERN = re.compile(r'<input type="hidden" name="_csrf" value="(\w+)"')

# The ticket URL is embedded in a script block, e.g.
#   var response_url = "https:\/\/connect.garmin.com\/modern?ticket=ST-0123456-aBCD-cas";
TICKET_URL_PATTERN = re.compile(r'response_url\s*=\s*"(https:[^"]+)"')


class ExtractionStatus(str, Enum):
    FOUND = "found"
    MISSING = "missing"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of one extraction attempt."""

    status: ExtractionStatus
    value: str | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is ExtractionStatus.FOUND

    @classmethod
    def found(cls, value: str) -> "ExtractionResult":
        return cls(ExtractionStatus.FOUND, value)

    @classmethod
    def missing(cls, detail: str) -> "ExtractionResult":
        return cls(ExtractionStatus.MISSING, detail=detail)

    @classmethod
    def malformed(cls, value: str, detail: str) -> "ExtractionResult":
        return cls(ExtractionStatus.MALFORMED, value=value, detail=detail)


def _as_text(body: Any) -> str:
    # The HTTP client hands back parsed JSON when it can; HTML stays a str.
    if isinstance(body, str):
        return body
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return ""


def extract_csrf_token(body: Any) -> ExtractionResult:
    """Find the hidden ``_csrf`` input value in the login page."""
    match = CSRF_PATTERN.search(_as_text(body))
    if match is None:
        return ExtractionResult.missing("no hidden _csrf input in login page")
    return ExtractionResult.found(match.group(1))


def extract_ticket_url(body: Any) -> ExtractionResult:
    """Find the ``response_url`` ticket redirect in the sign-in response.

    Escaped path separators (``\\/``) are unescaped. A URL without a
    ``ticket`` query parameter is reported as malformed.
    """
    match = TICKET_URL_PATTERN.search(_as_text(body))
    if match is None:
        return ExtractionResult.missing("no response_url in sign-in response")

    url = match.group(1).replace("\\/", "/")
    ticket = parse_qs(urlsplit(url).query).get("ticket")
    if not ticket or not ticket[0]:
        return ExtractionResult.malformed(url, "response_url carries no ticket parameter")
    return ExtractionResult.found(url)
