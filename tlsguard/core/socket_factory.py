"""
Secure socket factory.

Provides:
  - create_ssl_context(config): Builds an SSLContext from a FactoryConfig
    (algorithm, PEM or PKCS#12 keystore, PEM/directory/PKCS#12 truststore).
  - SSLSocketFactory.create_socket(host, port, ...): Connects a TCP socket
    (optional local bind, connect timeout), wraps it in TLS and verifies the
    peer certificate against `host`.
  - SSLSocketFactory.create_layered_socket(sock, host, port, auto_close):
    Layers TLS over an already connected socket and verifies it.
  - get_socket_factory(): process-wide factory using the platform default context.

Chain validation is done by OpenSSL (CERT_REQUIRED); hostname identity is
checked by tlsguard.core.verifier, so check_hostname stays off. A socket whose
verification fails is closed before the error propagates.
"""

import os
import ssl
import socket
import hashlib
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from tlsguard.core.config import FactoryConfig, load_config
from tlsguard.core.constants import (
    EventCode,
    DEFAULT_CONFIG_FILENAME,
    SSLV2,
    SUPPORTED_ALGORITHMS,
    TLS,
    TLSV1_2,
    TLSV1_3,
)
from tlsguard.core.logging_setup import get_logger
from tlsguard.core.session import SessionResolver
from tlsguard.core.verifier import verify_host_name

logger = get_logger("socket_factory")

_MINIMUM_VERSIONS = {
    TLSV1_2: ssl.TLSVersion.TLSv1_2,
    TLSV1_3: ssl.TLSVersion.TLSv1_3,
}
_PKCS12_SUFFIXES = (".p12", ".pfx")


class SocketFactoryError(Exception):
    """Raised when the secure context cannot be built from the configured key material."""


class ConnectTimeoutError(SocketFactoryError, TimeoutError):
    """Raised when the TCP connect does not complete within the connect timeout."""


def _is_pkcs12(path: str) -> bool:
    return path.lower().endswith(_PKCS12_SUFFIXES)


def _password_bytes(password: str) -> Optional[bytes]:
    return password.encode("utf-8") if password else None


def _load_pkcs12(path: str, password: str):
    try:
        data = Path(path).read_bytes()
        return pkcs12.load_key_and_certificates(data, _password_bytes(password))
    except (OSError, ValueError) as e:
        raise SocketFactoryError(f"Unable to load PKCS#12 store '{path}': {e}") from e


def _create_base_context(algorithm: Optional[str]) -> ssl.SSLContext:
    algorithm = algorithm or TLS
    if algorithm == SSLV2:
        raise SocketFactoryError("SSLv2 is not supported by the linked OpenSSL")
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise SocketFactoryError(f"Unknown secure context algorithm '{algorithm}'")

    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    if algorithm in _MINIMUM_VERSIONS:
        ctx.minimum_version = _MINIMUM_VERSIONS[algorithm]
    return ctx


def _load_keystore(ctx: ssl.SSLContext, config: FactoryConfig) -> None:
    """
    Installs the client certificate chain and private key.
    PKCS#12 bundles are converted to a temporary PEM file for load_cert_chain,
    with the key re-encrypted under the keystore password when one is set.
    """
    password = config.keystore_password or None

    if not _is_pkcs12(config.keystore_path):
        try:
            ctx.load_cert_chain(
                certfile=config.keystore_path,
                keyfile=config.keyfile_path or None,
                password=password
            )
        except (OSError, ssl.SSLError) as e:
            raise SocketFactoryError(f"Unable to load keystore '{config.keystore_path}': {e}") from e
        return

    key, cert, additional = _load_pkcs12(config.keystore_path, config.keystore_password)
    if key is None or cert is None:
        raise SocketFactoryError(f"PKCS#12 keystore '{config.keystore_path}' has no private key entry")

    if password:
        encryption = serialization.BestAvailableEncryption(password.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )
    pem += cert.public_bytes(serialization.Encoding.PEM)
    for extra in additional or []:
        pem += extra.public_bytes(serialization.Encoding.PEM)

    tmp = tempfile.NamedTemporaryFile("wb", suffix=".pem", delete=False)
    try:
        with tmp:
            tmp.write(pem)
        ctx.load_cert_chain(certfile=tmp.name, password=password)
    except (OSError, ssl.SSLError) as e:
        raise SocketFactoryError(f"Unable to load keystore '{config.keystore_path}': {e}") from e
    finally:
        os.unlink(tmp.name)


def _load_truststore(ctx: ssl.SSLContext, config: FactoryConfig) -> None:
    path = config.truststore_path
    try:
        if os.path.isdir(path):
            ctx.load_verify_locations(capath=path)
        elif _is_pkcs12(path):
            _, cert, additional = _load_pkcs12(path, config.truststore_password)
            certs = ([cert] if cert is not None else []) + list(additional or [])
            if not certs:
                raise SocketFactoryError(f"PKCS#12 truststore '{path}' contains no certificates")
            cadata = "".join(c.public_bytes(serialization.Encoding.PEM).decode("ascii") for c in certs)
            ctx.load_verify_locations(cadata=cadata)
        else:
            ctx.load_verify_locations(cafile=path)
    except (OSError, ssl.SSLError) as e:
        raise SocketFactoryError(f"Unable to load truststore '{path}': {e}") from e


def create_ssl_context(config: Optional[FactoryConfig] = None) -> ssl.SSLContext:
    """
    Builds the client SSLContext. Without a config the platform default
    context is used. With a config, the keystore (if any) supplies the client
    certificate and the truststore (if any) replaces the platform trust roots.

    :raises SocketFactoryError: if the algorithm is unsupported or key material cannot be loaded.
    """
    if config is None:
        ctx = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_REQUIRED
        return ctx

    ctx = _create_base_context(config.algorithm)
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_REQUIRED

    if config.truststore_path:
        _load_truststore(ctx, config)
    else:
        ctx.load_default_certs(ssl.Purpose.SERVER_AUTH)

    if config.keystore_path:
        _load_keystore(ctx, config)

    logger.info(
        "Created SSL context: algorithm=%s, keystore=%s, truststore=%s",
        config.algorithm,
        config.keystore_path or "-",
        config.truststore_path or "platform default"
    )
    return ctx


class SSLSocketFactory:
    """
    Creates TLS client sockets whose peer certificate has been checked
    against the requested host name.
    """

    def __init__(
        self,
        config: Optional[FactoryConfig] = None,
        context: Optional[ssl.SSLContext] = None,
        resolver: Optional[SessionResolver] = None
    ):
        self.config = config or FactoryConfig.default()
        self.context = context or create_ssl_context(config)
        self.resolver = resolver or SessionResolver()

    @classmethod
    def from_config_file(cls, path: Union[str, Path] = DEFAULT_CONFIG_FILENAME, parse_env: bool = True) -> "SSLSocketFactory":
        return cls(load_config(path, parse_env=parse_env))

    def create_socket(
        self,
        host: str,
        port: int,
        local_address: Optional[str] = None,
        local_port: int = 0,
        connect_timeout: Optional[float] = None
    ) -> ssl.SSLSocket:
        """
        Connects to (host, port) within the connect timeout, wraps the socket
        in TLS and verifies the peer certificate against `host`.

        :param local_address: Local address to bind to (config default if None).
        :param local_port: Local port to bind to (config default if 0).
        :param connect_timeout: Seconds; None uses the config value, 0 blocks.
        :raises ConnectTimeoutError: if the connect times out.
        :raises HostnameVerificationError: if the certificate does not match `host`.
        """
        if host is None:
            raise ValueError("Target host may not be None")

        timeout = self.config.connect_timeout if connect_timeout is None else connect_timeout
        local_address = local_address or self.config.local_address or None
        source_address = None
        if local_address:
            source_address = (local_address, local_port or self.config.local_port)

        try:
            raw_sock = socket.create_connection((host, port), timeout=timeout or None,
                                                source_address=source_address)
        except socket.timeout as e:
            raise ConnectTimeoutError(f"Connect to {host}:{port} timed out after {timeout}s") from e

        raw_sock.settimeout(self.config.socket_timeout)
        try:
            tls_sock = self.context.wrap_socket(raw_sock, server_hostname=host)
        except (OSError, ValueError):
            raw_sock.close()
            raise

        self._verify(tls_sock, host, port)
        return tls_sock

    def create_layered_socket(
        self,
        sock: socket.socket,
        host: str,
        port: int,
        auto_close: bool = True
    ) -> ssl.SSLSocket:
        """
        Layers TLS over an already connected socket and verifies the peer
        certificate against `host`. With auto_close=False a duplicate
        descriptor is wrapped, so closing the TLS socket leaves `sock` open.
        """
        if host is None:
            raise ValueError("Target host may not be None")
        if not auto_close:
            sock = sock.dup()
        tls_sock = self.context.wrap_socket(sock, server_hostname=host)
        self._verify(tls_sock, host, port)
        return tls_sock

    def _verify(self, tls_sock: ssl.SSLSocket, host: str, port: int) -> None:
        try:
            verify_host_name(tls_sock, host, self.resolver)
        except Exception:
            tls_sock.close()
            raise
        _log_tls_session_event(tls_sock, host, port)


def _log_tls_session_event(tls_sock: ssl.SSLSocket, hostname: str, port: int) -> None:
    cert_bin = tls_sock.getpeercert(binary_form=True)
    if cert_bin:
        sha256_fp = hashlib.sha256(cert_bin).hexdigest().upper()
    else:
        sha256_fp = "NO_CERT"
    cipher = tls_sock.cipher()
    logger.info(
        "%s: host=%s, port=%s, protocol=%s, cipher=%s, fingerprint=%s",
        EventCode.TLS_SESSION_ESTABLISHED.value,
        hostname,
        port,
        tls_sock.version(),
        cipher[0] if cipher else "unknown",
        sha256_fp
    )


_DEFAULT_FACTORY: Optional[SSLSocketFactory] = None
_DEFAULT_FACTORY_LOCK = threading.Lock()


def get_socket_factory() -> SSLSocketFactory:
    """
    Returns the process-wide factory built on the platform default context.
    """
    global _DEFAULT_FACTORY
    with _DEFAULT_FACTORY_LOCK:
        if _DEFAULT_FACTORY is None:
            _DEFAULT_FACTORY = SSLSocketFactory()
        return _DEFAULT_FACTORY
