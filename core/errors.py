"""
core/errors.py -- Error taxonomy for shadowc.

Every failure raised by core/ and state/ derives from ShadowcError. Errors
that the failover loop must tell apart carry an ErrorKind discriminant in
`kind`, so callers dispatch on `exc.kind` instead of on exception class.

  NOT_FOUND            the host does not know this token (never marks it dead)
  HOST_FAILURE         transport error or unexpected status (marks it dead)
  INVALID_ADDRESS      server address is a URL, not host[:port]
  INVALID_CERTIFICATE  trusted root certificate could not be loaded
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    HOST_FAILURE = "host_failure"
    INVALID_ADDRESS = "invalid_address"
    INVALID_CERTIFICATE = "invalid_certificate"
    OTHER = "other"


class ShadowcError(Exception):
    kind: ErrorKind = ErrorKind.OTHER


# ---------------------------------------------------------------------------
# Per-host request outcomes
# ---------------------------------------------------------------------------


class HostError(ShadowcError):
    """Base for errors raised while talking to a single shadowd host."""

    def __init__(self, address: str, message: str) -> None:
        super().__init__(f"{address}: {message}")
        self.address = address


class NotFoundError(HostError):
    kind = ErrorKind.NOT_FOUND


class HostFailureError(HostError):
    kind = ErrorKind.HOST_FAILURE


# ---------------------------------------------------------------------------
# Startup errors
# ---------------------------------------------------------------------------


class InvalidAddressError(ShadowcError):
    kind = ErrorKind.INVALID_ADDRESS

    def __init__(self, address: str) -> None:
        super().__init__(f"invalid shadowd address {address!r}: expected host[:port] without a scheme")
        self.address = address


class InvalidCertificateError(ShadowcError):
    kind = ErrorKind.INVALID_CERTIFICATE


# ---------------------------------------------------------------------------
# Batch outcomes
# ---------------------------------------------------------------------------


class NoHostsLeftError(ShadowcError):
    """Every configured host has been marked dead."""

    def __init__(self, what: Optional[str] = None) -> None:
        message = "no shadowd hosts left alive"
        if what:
            message = f"can't retrieve {what}: {message}"
        super().__init__(message)


class AllNotFoundError(ShadowcError):
    """Every alive host answered NotFound for the requested token."""

    def __init__(self, what: str) -> None:
        super().__init__(f"{what} not found on any shadowd host")
        self.what = what


# ---------------------------------------------------------------------------
# Local state
# ---------------------------------------------------------------------------


class AccountNotFoundError(ShadowcError):
    def __init__(self, username: str, path: str) -> None:
        super().__init__(f"user {username!r} is not found in shadow file {path!r}")
        self.username = username
        self.path = path


class AccountCreationError(ShadowcError):
    pass


class UnsupportedSaltError(ShadowcError):
    pass
