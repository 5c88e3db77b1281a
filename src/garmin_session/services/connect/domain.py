"""
Domain Resolver

Rewrites logical endpoint paths and canonical ``garmin.com`` URLs into
fully-qualified URLs for one of the two regional top-level domains.

    resolve(Domain.CN, "proxy/device-service/deviceregistration/devices")
    -> "https://connect.garmin.cn/modern/proxy/device-service/deviceregistration/devices"

Pure string transforms only: no network, no state.
"""

import re
from enum import Enum
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from .exceptions import InvalidDomainError

# Canonical endpoints, always written against the primary domain
GC_MODERN = "https://connect.garmin.com/modern"
MODERN_PROXY = f"{GC_MODERN}/proxy"
GARMIN_SSO_ORIGIN = "https://sso.garmin.com"
GARMIN_SSO = f"{GARMIN_SSO_ORIGIN}/sso"
LOGIN_URL = f"{GARMIN_SSO}/login"
SIGNIN_URL = f"{GARMIN_SSO}/signin"

_DOMAIN_SEGMENT = re.compile(r"(?<![\w-])garmin\.(com|cn)$", re.IGNORECASE)


class Domain(str, Enum):
    """Regional top-level domain of the service."""

    COM = "com"
    CN = "cn"

    @classmethod
    def parse(cls, value: Any) -> "Domain":
        """Validate a domain code; raises InvalidDomainError for anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(d.value for d in cls)
            raise InvalidDomainError(
                f"Only {valid} are valid for the parameter domain",
                domain=value,
            ) from None


def resolve(domain: Domain, logical_url: str) -> str:
    """Turn a logical path or canonical URL into an absolute URL for ``domain``.

    Args:
        domain: Already-validated Domain.
        logical_url: Either a path relative to the modern-app root
            (``proxy/...``) or an absolute URL on any garmin host.

    Returns:
        Absolute URL whose garmin host segment matches ``domain``.
    """
    if "://" not in logical_url:
        logical_url = f"{GC_MODERN}/{logical_url.lstrip('/')}"

    parts = urlsplit(logical_url)
    host, sep, port = parts.netloc.partition(":")
    match = _DOMAIN_SEGMENT.search(host)
    if match is None or match.group(1).lower() == domain.value:
        return logical_url

    host = f"{host[: match.start()]}garmin.{domain.value}"
    netloc = f"{host}{sep}{port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
