"""
constants.py

Contains:
 - EventCode enum for standardized log events
 - Secure context algorithm names accepted by the socket factory
 - Other global defaults (timeouts, log rotation).
"""

from enum import Enum, unique


@unique
class EventCode(Enum):
    """
    Enumerates standard event codes used in log messages.
    """
    # Session / handshake events
    TLS_SESSION_ESTABLISHED = "TLS_SESSION_ESTABLISHED"
    TLS_HANDSHAKE_FORCED = "TLS_HANDSHAKE_FORCED"
    TLS_SESSION_UNAVAILABLE = "TLS_SESSION_UNAVAILABLE"

    # Identity verification events
    HOSTNAME_VERIFIED = "HOSTNAME_VERIFIED"
    HOSTNAME_MISMATCH = "HOSTNAME_MISMATCH"
    CERT_NO_COMMON_NAME = "CERT_NO_COMMON_NAME"

    # Configuration
    CONFIG_LOADED = "CONFIG_LOADED"


# Secure context algorithm names
TLS = "TLS"
SSL = "SSL"
SSLV2 = "SSLv2"
TLSV1_2 = "TLSv1.2"
TLSV1_3 = "TLSv1.3"

SUPPORTED_ALGORITHMS = (TLS, SSL, TLSV1_2, TLSV1_3)
DEFAULT_ALGORITHM = TLS

DEFAULT_PORT = 443
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_CONFIG_FILENAME = ".tlsguardrc"

MAX_LOG_FILE_SIZE_MB = 5
LOG_BACKUP_COUNT = 5
