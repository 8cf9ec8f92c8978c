"""
TLS session resolution.

Provides:
  - TLSSession: the negotiated session as seen by the verifier (peer chain,
    protocol, cipher).
  - SecureSocket: the narrow socket interface the verifier needs.
  - SSLSocketAdapter: SecureSocket over a stdlib ssl.SSLSocket.
  - SessionResolver: obtains a session, walking RECOVERY_LADDER when the
    socket reports none yet.

Some TLS stacks report a connected socket before the handshake has populated
the session. The resolver then probes the input side, re-checks, forces the
handshake and re-checks again. If there is still no session it raises
SessionUnavailableError rather than continuing without one.
"""

import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from tlsguard.core.constants import EventCode
from tlsguard.core.errors import SessionUnavailableError
from tlsguard.core.identity import PeerCertificate
from tlsguard.core.logging_setup import get_logger

logger = get_logger("session")


@dataclass(frozen=True)
class TLSSession:
    peer_certificates: Tuple[PeerCertificate, ...]
    protocol: Optional[str] = None
    cipher: Optional[str] = None

    @property
    def leaf(self) -> PeerCertificate:
        return self.peer_certificates[0]


class SecureSocket(ABC):
    """
    What the verifier needs from a secure socket.
    """

    @abstractmethod
    def get_session(self) -> Optional[TLSSession]:
        """
        Returns the negotiated session, or None if it is not available yet.
        """

    @abstractmethod
    def probe_input(self) -> None:
        """
        Zero-byte availability probe on the input side.
        """

    @abstractmethod
    def start_handshake(self) -> None:
        """
        Explicitly runs the TLS handshake.
        """


class SSLSocketAdapter(SecureSocket):
    """
    SecureSocket over ssl.SSLSocket. A session is reported once the handshake
    is done and the peer presented a certificate.
    """

    def __init__(self, sock: ssl.SSLSocket):
        self.sock = sock

    def get_session(self) -> Optional[TLSSession]:
        try:
            leaf_der = self.sock.getpeercert(binary_form=True)
        except ValueError:
            # handshake not done yet
            return None
        if not leaf_der:
            return None

        chain = []
        get_chain = getattr(self.sock, "get_unverified_chain", None)
        if get_chain is not None:
            chain = [PeerCertificate.from_der(der) for der in (get_chain() or [])]
        if not chain:
            chain = [PeerCertificate.from_der(leaf_der)]

        cipher = self.sock.cipher()
        return TLSSession(
            peer_certificates=tuple(chain),
            protocol=self.sock.version(),
            cipher=cipher[0] if cipher else None,
        )

    def probe_input(self) -> None:
        self.sock.pending()

    def start_handshake(self) -> None:
        self.sock.do_handshake()


def as_secure_socket(sock: Union[SecureSocket, ssl.SSLSocket]) -> SecureSocket:
    if isinstance(sock, SecureSocket):
        return sock
    if isinstance(sock, ssl.SSLSocket):
        return SSLSocketAdapter(sock)
    raise TypeError(f"Expected an ssl.SSLSocket or SecureSocket, got {type(sock).__name__}")


@dataclass(frozen=True)
class RecoveryStep:
    name: str
    action: Callable[[SecureSocket], None]
    event: Optional[EventCode] = None


RECOVERY_LADDER: Tuple[RecoveryStep, ...] = (
    RecoveryStep("probe_input", lambda s: s.probe_input()),
    RecoveryStep("start_handshake", lambda s: s.start_handshake(), EventCode.TLS_HANDSHAKE_FORCED),
)


class SessionResolver:
    """
    Obtains a usable TLSSession from a socket, forcing handshake completion
    if necessary.
    """

    def __init__(self, ladder: Tuple[RecoveryStep, ...] = RECOVERY_LADDER):
        self.ladder = tuple(ladder)

    def resolve(self, sock: Union[SecureSocket, ssl.SSLSocket]) -> TLSSession:
        """
        Returns the session, running each recovery step in order until one
        makes it available.

        :raises SessionUnavailableError: if the ladder is exhausted.
        """
        secure_sock = as_secure_socket(sock)
        session = _usable(secure_sock.get_session())
        if session is not None:
            return session

        for step in self.ladder:
            session = self.attempt(secure_sock, step)
            if session is not None:
                logger.info("TLS session recovered after step=%s", step.name)
                return session

        steps = ", ".join(step.name for step in self.ladder)
        logger.error("%s: no TLS session after steps=[%s]", EventCode.TLS_SESSION_UNAVAILABLE.value, steps)
        raise SessionUnavailableError(f"TLS session unavailable after recovery steps: {steps}")

    @staticmethod
    def attempt(sock: SecureSocket, step: RecoveryStep) -> Optional[TLSSession]:
        """
        Runs one recovery step and re-checks the session.
        """
        if step.event is not None:
            logger.warning("%s: TLS session not available, running %s", step.event.value, step.name)
        else:
            logger.warning("TLS session not available, running %s", step.name)
        step.action(sock)
        return _usable(sock.get_session())


def _usable(session: Optional[TLSSession]) -> Optional[TLSSession]:
    # a session without a peer certificate has nothing to verify
    if session is None or not session.peer_certificates:
        return None
    return session
