"""
Certificate material for the tests, generated on the fly with cryptography.
"""

import datetime as dt
from pathlib import Path
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from tlsguard.core.session import SecureSocket


def make_name(common_name: Optional[str] = None, email: Optional[str] = None,
              organization: Optional[str] = "Example") -> x509.Name:
    """
    Attributes are added in DER order O, CN, EMAIL so the rendered subject
    reads "EMAILADDRESS=...,CN=...,O=...".
    """
    attrs: List[x509.NameAttribute] = []
    if organization:
        attrs.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization))
    if common_name is not None:
        attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    if email:
        attrs.append(x509.NameAttribute(NameOID.EMAIL_ADDRESS, email))
    return x509.Name(attrs)


def issue_ca(common_name: str = "tlsguard Test CA") -> Tuple[ec.EllipticCurvePrivateKey, x509.Certificate]:
    key = ec.generate_private_key(ec.SECP256R1())
    name = make_name(common_name)
    now = dt.datetime.now(dt.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - dt.timedelta(minutes=1))
        .not_valid_after(now + dt.timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )
    return key, cert


def issue_certificate(
    common_name: Optional[str] = None,
    email: Optional[str] = None,
    organization: Optional[str] = "Example",
    issuer: Optional[Tuple[ec.EllipticCurvePrivateKey, x509.Certificate]] = None,
) -> Tuple[ec.EllipticCurvePrivateKey, x509.Certificate]:
    """
    Leaf certificate, self-signed unless `issuer` (key, cert) is given.
    """
    key = ec.generate_private_key(ec.SECP256R1())
    subject = make_name(common_name, email, organization)
    if issuer is None:
        issuer_key, issuer_name = key, subject
        issuer_public = key.public_key()
    else:
        issuer_key, issuer_cert = issuer
        issuer_name = issuer_cert.subject
        issuer_public = issuer_cert.public_key()

    now = dt.datetime.now(dt.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - dt.timedelta(minutes=1))
        .not_valid_after(now + dt.timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=False,
                crl_sign=False, encipher_only=False, decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]),
            critical=False,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_public), critical=False)
        .sign(issuer_key, hashes.SHA256())
    )
    return key, cert


def cert_pem(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


def cert_der(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.DER)


def key_pem(key, password: Optional[bytes] = None) -> bytes:
    if password:
        encryption = serialization.BestAvailableEncryption(password)
    else:
        encryption = serialization.NoEncryption()
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )


def write_bytes(directory: str, filename: str, data: bytes) -> str:
    path = Path(directory) / filename
    path.write_bytes(data)
    return str(path)


class FakeSecureSocket(SecureSocket):
    """
    Returns the queued sessions one per get_session() call (the last one
    repeats) and records every call.
    """

    def __init__(self, *sessions, handshake_error=None):
        self.sessions = list(sessions) or [None]
        self.calls = []
        self.handshake_error = handshake_error

    def get_session(self):
        self.calls.append("get_session")
        if len(self.sessions) > 1:
            return self.sessions.pop(0)
        return self.sessions[0]

    def probe_input(self):
        self.calls.append("probe_input")

    def start_handshake(self):
        self.calls.append("start_handshake")
        if self.handshake_error is not None:
            raise self.handshake_error
