"""
Peer certificate identity.

Provides:
  - PeerCertificate: immutable wrapper over a cryptography x509.Certificate that
    exposes the rendered subject string and DER bytes.
  - common_name_from_subject(subject): CN extraction over the rendered subject.
  - extract_common_name(certificate): the same, applied to a PeerCertificate.
  - extract_common_name_structured(certificate): CN read from the parsed
    subject attributes instead of the rendered string.

The rendered subject reads "EMAILADDRESS=a@b.com,CN=example.com,O=Example"
(RFC 4514 ordering, human-readable keys). Extraction takes everything between
the first "CN=" and the next comma. Escaped commas ("\\,") inside a value are
not honoured and end the CN early.
"""

from pathlib import Path
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from tlsguard.core.logging_setup import get_logger

logger = get_logger("identity")

_CN_KEY = "CN="

# Readable keys for attributes that RFC 4514 would otherwise print as a
# dotted OID with a hex-encoded value.
SUBJECT_ATTRIBUTE_NAMES = {
    NameOID.EMAIL_ADDRESS: "EMAILADDRESS",
    NameOID.SERIAL_NUMBER: "SERIALNUMBER",
    NameOID.SURNAME: "SURNAME",
    NameOID.GIVEN_NAME: "GIVENNAME",
    NameOID.TITLE: "T",
}


class PeerCertificate:
    """
    A certificate presented by the TLS peer.
    """
    __slots__ = ("_cert", "_der")

    def __init__(self, certificate: x509.Certificate):
        self._cert = certificate
        self._der = certificate.public_bytes(serialization.Encoding.DER)

    @classmethod
    def from_der(cls, der: bytes) -> "PeerCertificate":
        return cls(x509.load_der_x509_certificate(der))

    @classmethod
    def from_pem(cls, pem: bytes) -> "PeerCertificate":
        return cls(x509.load_pem_x509_certificate(pem))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "PeerCertificate":
        """
        Reads a PEM or DER encoded certificate file.
        """
        data = Path(path).read_bytes()
        if b"-----BEGIN" in data:
            return cls.from_pem(data)
        return cls.from_der(data)

    @property
    def x509(self) -> x509.Certificate:
        return self._cert

    @property
    def der(self) -> bytes:
        return self._der

    @property
    def subject(self) -> str:
        return self._cert.subject.rfc4514_string(SUBJECT_ATTRIBUTE_NAMES)

    def __repr__(self) -> str:
        return f"PeerCertificate(subject={self.subject!r})"


def common_name_from_subject(subject: str) -> Optional[str]:
    """
    Returns the value following the first "CN=" up to the next comma or the
    end of the string, or None if the subject has no "CN=".
    """
    start = subject.find(_CN_KEY)
    if start < 0:
        return None
    start += len(_CN_KEY)
    end = subject.find(",", start)
    if end < 0:
        end = len(subject)
    return subject[start:end]


def extract_common_name(certificate: PeerCertificate) -> Optional[str]:
    return common_name_from_subject(certificate.subject)


def extract_common_name_structured(certificate: PeerCertificate) -> Optional[str]:
    """
    First COMMON_NAME attribute of the parsed subject. Not used by the
    verifier, whose behaviour depends on the string form above.
    """
    attrs = certificate.x509.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return None
    value = attrs[0].value
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return value
