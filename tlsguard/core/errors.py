"""
Hostname verification failures.

Every failure is terminal for the connection being verified; none of them is
retried. Each carries the compared values for diagnostics.
"""

from enum import Enum, unique
from typing import Optional


@unique
class VerificationFailure(Enum):
    SESSION_UNAVAILABLE = "SessionUnavailable"
    NO_COMMON_NAME = "NoCommonName"
    HOST_MISMATCH = "HostMismatch"


class HostnameVerificationError(Exception):
    """Raised when the peer certificate does not speak for the requested host."""

    failure: Optional[VerificationFailure] = None

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        common_name: Optional[str] = None,
        subject: Optional[str] = None
    ):
        super().__init__(message)
        self.host = host
        self.common_name = common_name
        self.subject = subject


class SessionUnavailableError(HostnameVerificationError):
    """Raised when no TLS session could be obtained from the socket."""
    failure = VerificationFailure.SESSION_UNAVAILABLE


class NoCommonNameError(HostnameVerificationError):
    """Raised when the peer certificate subject has no CN."""
    failure = VerificationFailure.NO_COMMON_NAME


class HostMismatchError(HostnameVerificationError):
    """Raised when the certificate CN does not match the requested host."""
    failure = VerificationFailure.HOST_MISMATCH


ERRORS_BY_FAILURE = {
    VerificationFailure.SESSION_UNAVAILABLE: SessionUnavailableError,
    VerificationFailure.NO_COMMON_NAME: NoCommonNameError,
    VerificationFailure.HOST_MISMATCH: HostMismatchError,
}
