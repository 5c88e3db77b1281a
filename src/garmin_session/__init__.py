from .services.connect import (
    AuthenticationFailedError,
    ConnectSession,
    Credentials,
    SessionState,
)

__all__ = [
    "ConnectSession",
    "Credentials",
    "SessionState",
    "AuthenticationFailedError",
]

__version__ = "0.1.0"
