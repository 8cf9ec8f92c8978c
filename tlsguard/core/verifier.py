"""
Hostname verification for TLS sockets.

Provides:
  - verify(sock, requested_host) -> VerificationVerdict
  - verify_certificate(certificate, requested_host) -> VerificationVerdict
  - verify_host_name(sock, requested_host): raising form of verify()

Sequence: resolve the session (may force the handshake), take the leaf
certificate, extract its CN from the rendered subject, match it against the
requested host. Chain validation is left to the SSLContext that created the
socket.
"""

import ssl
from dataclasses import dataclass
from typing import Optional, Union

from tlsguard.core.constants import EventCode
from tlsguard.core.errors import (
    ERRORS_BY_FAILURE,
    HostMismatchError,
    HostnameVerificationError,
    NoCommonNameError,
    SessionUnavailableError,
    VerificationFailure,
)
from tlsguard.core.hostname import matches
from tlsguard.core.identity import PeerCertificate, extract_common_name
from tlsguard.core.logging_setup import get_logger
from tlsguard.core.session import SecureSocket, SessionResolver

logger = get_logger("verifier")

__all__ = [
    "VerificationVerdict",
    "VerificationFailure",
    "HostnameVerificationError",
    "SessionUnavailableError",
    "NoCommonNameError",
    "HostMismatchError",
    "verify",
    "verify_certificate",
    "verify_host_name",
]

_default_resolver = SessionResolver()


@dataclass(frozen=True)
class VerificationVerdict:
    passed: bool
    failure: Optional[VerificationFailure] = None
    message: str = ""
    host: Optional[str] = None
    common_name: Optional[str] = None
    subject: Optional[str] = None

    @classmethod
    def ok(cls, host: str, common_name: str, subject: str) -> "VerificationVerdict":
        return cls(True, None, "hostname verified", host, common_name, subject)

    @classmethod
    def fail(cls, failure: VerificationFailure, message: str, host: Optional[str] = None,
             common_name: Optional[str] = None, subject: Optional[str] = None) -> "VerificationVerdict":
        return cls(False, failure, message, host, common_name, subject)

    def raise_for_failure(self) -> None:
        """
        Raises the HostnameVerificationError subclass matching the failure.
        Does nothing for a passing verdict.
        """
        if self.passed:
            return
        error_cls = ERRORS_BY_FAILURE[self.failure]
        raise error_cls(self.message, host=self.host, common_name=self.common_name, subject=self.subject)

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "failure": self.failure.value if self.failure else None,
            "message": self.message,
            "host": self.host,
            "common_name": self.common_name,
            "subject": self.subject,
        }


def _check_host(requested_host: Optional[str]) -> None:
    if requested_host is None:
        raise ValueError("host to verify was None")


def verify_certificate(certificate: PeerCertificate, requested_host: str) -> VerificationVerdict:
    """
    Checks the leaf certificate's CN against requested_host.
    """
    _check_host(requested_host)
    subject = certificate.subject
    cn = extract_common_name(certificate)
    if cn is None:
        message = f"certificate doesn't contain CN: {subject}"
        logger.warning("%s: %s", EventCode.CERT_NO_COMMON_NAME.value, message)
        return VerificationVerdict.fail(VerificationFailure.NO_COMMON_NAME, message,
                                        host=requested_host, subject=subject)

    if not matches(requested_host, cn):
        host = requested_host.strip().lower()
        cn = cn.lower()
        message = f"hostname in certificate didn't match: <{host}> != <{cn}>"
        logger.warning("%s: %s", EventCode.HOSTNAME_MISMATCH.value, message)
        return VerificationVerdict.fail(VerificationFailure.HOST_MISMATCH, message,
                                        host=host, common_name=cn, subject=subject)

    logger.info("%s: host=%s, cn=%s", EventCode.HOSTNAME_VERIFIED.value, requested_host.strip(), cn)
    return VerificationVerdict.ok(requested_host, cn, subject)


def verify(
    sock: Union[SecureSocket, ssl.SSLSocket],
    requested_host: str,
    resolver: Optional[SessionResolver] = None
) -> VerificationVerdict:
    """
    Resolves the session on `sock` and verifies its leaf certificate against
    requested_host. May force the TLS handshake. Socket errors raised while
    doing so propagate unchanged.
    """
    _check_host(requested_host)
    resolver = resolver or _default_resolver
    try:
        session = resolver.resolve(sock)
    except SessionUnavailableError as e:
        return VerificationVerdict.fail(VerificationFailure.SESSION_UNAVAILABLE, str(e), host=requested_host)
    return verify_certificate(session.leaf, requested_host)


def verify_host_name(
    sock: Union[SecureSocket, ssl.SSLSocket],
    requested_host: str,
    resolver: Optional[SessionResolver] = None
) -> VerificationVerdict:
    """
    Like verify(), but raises HostnameVerificationError on failure.
    Returns the passing verdict.
    """
    verdict = verify(sock, requested_host, resolver)
    verdict.raise_for_failure()
    return verdict
