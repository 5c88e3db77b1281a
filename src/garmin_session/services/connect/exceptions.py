"""
Garmin Connect session engine - Exception Classes

Exception Hierarchy:
    ConnectException (base)
    |-- InvalidDomainError          - Unsupported top-level domain
    |-- TransportError              - Network-level failures (DNS, connection, timeout)
    |-- AuthenticationFailedError   - SSO login flow did not complete
    |   |-- CsrfExtractionError     - Login page carried no CSRF token
    |   |-- CredentialRejectedError - Sign-in response carried no ticket
    |   |-- TicketExtractionError   - Ticket redirect could not be followed
    |-- DownloadIncompleteError     - Download response lacked Content-Disposition
    |-- SessionStoreError           - Persisted session could not be read/written
"""

from typing import Any


class ConnectException(Exception):
    """Base exception for all session engine errors."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.url = url
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.url:
            parts.append(f"url={self.url}")
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"[{details_str}]")
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "url": self.url,
            "details": self.details,
        }


class InvalidDomainError(ConnectException):
    """Domain code is not one of the supported top-level domains."""

    def __init__(self, message: str, domain: Any = None) -> None:
        super().__init__(message, details={"domain": domain})
        self.domain = domain


class TransportError(ConnectException):
    """Network-level failure reported by the challenge-solving transport.

    Never retried by the engine; retry policy belongs to the caller.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        error_code: str | None = None,
        is_dns_error: bool = False,
        is_connection_refused: bool = False,
        is_timeout: bool = False,
    ) -> None:
        details = {
            "error_code": error_code,
            "is_dns_error": is_dns_error,
            "is_connection_refused": is_connection_refused,
            "is_timeout": is_timeout,
        }
        super().__init__(message, url, details)
        self.error_code = error_code
        self.is_dns_error = is_dns_error
        self.is_connection_refused = is_connection_refused
        self.is_timeout = is_timeout


class AuthenticationFailedError(ConnectException):
    """The SSO login flow ended in the failed state.

    ``reason`` names the failing step (``csrf``, ``credentials``, ``ticket``)
    and ``state`` is the last state the flow confirmed before failing.
    """

    reason_code = "authentication"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        reason: str | None = None,
        state: str | None = None,
    ) -> None:
        self.reason = reason or self.reason_code
        self.state = state
        super().__init__(message, url, {"reason": self.reason, "state": state})


class CsrfExtractionError(AuthenticationFailedError):
    """Login page did not contain the hidden CSRF input."""

    reason_code = "csrf"


class CredentialRejectedError(AuthenticationFailedError):
    """Sign-in response did not contain a ticket redirect.

    This is what a wrong username or password looks like: the service
    answers 200 with the login form again instead of a ticket.
    """

    reason_code = "credentials"


class TicketExtractionError(AuthenticationFailedError):
    """Ticket redirect URL was present but unusable."""

    reason_code = "ticket"


class DownloadIncompleteError(ConnectException):
    """Binary download response had no Content-Disposition header."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        content_type: str | None = None,
    ) -> None:
        details = {"status_code": status_code, "content_type": content_type}
        super().__init__(message, url, details)
        self.status_code = status_code
        self.content_type = content_type


class SessionStoreError(ConnectException):
    """Persisted session state could not be read or written."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        operation: str | None = None,
    ) -> None:
        details = {"key": key, "operation": operation}
        super().__init__(message, details=details)
        self.key = key
        self.operation = operation
