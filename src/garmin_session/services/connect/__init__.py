"""
Garmin Connect Session & Authentication Engine

Acquires an authenticated Garmin Connect session through the SSO ticket
handshake, behind an impersonating (challenge-solving) transport, and
persists it as an opaque cookie blob.

Quick Start:
    from garmin_session.services.connect import ConnectSession, FileSessionStore

    store = FileSessionStore()
    async with ConnectSession(domain="com") as session:
        session.import_session(await store.load("me"))
        if not session.is_authenticated:
            await session.login("user@example.com", "secret")
            await store.save("me", session.export_session())
        devices = await session.get_device_info()
"""

# Authentication
from .auth import AuthContext, AuthFlow, AuthResult, AuthState, Credentials

# HTTP
from .client import ClientResponse, HttpClient

# Configuration
from .config import ConfigLoader, HeadersConfig, TransportConfig

# Cookies
from .cookies import CookieData, CookieJar

# Domains
from .domain import Domain, resolve

# Exceptions
from .exceptions import (
    AuthenticationFailedError,
    ConnectException,
    CredentialRejectedError,
    CsrfExtractionError,
    DownloadIncompleteError,
    InvalidDomainError,
    SessionStoreError,
    TicketExtractionError,
    TransportError,
)

# Extraction
from .extraction import ExtractionResult, ExtractionStatus, extract_csrf_token, extract_ticket_url

# Session
from .session import ConnectSession, SessionState, SessionStatus

# Persistence
from .store import FileSessionStore, RedisSessionStore

# Transport
from .transport import ChallengeTransport, CurlCffiTransport, TransportResponse

__all__ = [
    # Session
    "ConnectSession",
    "SessionState",
    "SessionStatus",
    # Authentication
    "AuthFlow",
    "AuthState",
    "AuthContext",
    "AuthResult",
    "Credentials",
    # HTTP
    "HttpClient",
    "ClientResponse",
    # Transport
    "ChallengeTransport",
    "CurlCffiTransport",
    "TransportResponse",
    # Configuration
    "ConfigLoader",
    "TransportConfig",
    "HeadersConfig",
    # Cookies
    "CookieData",
    "CookieJar",
    # Domains
    "Domain",
    "resolve",
    # Extraction
    "ExtractionResult",
    "ExtractionStatus",
    "extract_csrf_token",
    "extract_ticket_url",
    # Persistence
    "FileSessionStore",
    "RedisSessionStore",
    # Exceptions
    "ConnectException",
    "InvalidDomainError",
    "TransportError",
    "AuthenticationFailedError",
    "CsrfExtractionError",
    "CredentialRejectedError",
    "TicketExtractionError",
    "DownloadIncompleteError",
    "SessionStoreError",
]
