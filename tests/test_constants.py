"""
Unit tests for tlsguard/core/constants.py

Checks:
 - EventCode enum presence
 - Algorithm names and the supported set (SSLv2 excluded)
 - Basic global constants
"""

import unittest
from tlsguard.core.constants import (
    EventCode,
    DEFAULT_ALGORITHM,
    DEFAULT_PORT,
    SSLV2,
    SUPPORTED_ALGORITHMS,
    MAX_LOG_FILE_SIZE_MB,
    LOG_BACKUP_COUNT
)

class TestConstants(unittest.TestCase):

    def test_event_code_enum(self):
        self.assertEqual(EventCode.HOSTNAME_MISMATCH.value, "HOSTNAME_MISMATCH")
        self.assertEqual(EventCode.CERT_NO_COMMON_NAME.value, "CERT_NO_COMMON_NAME")
        self.assertEqual(EventCode.TLS_HANDSHAKE_FORCED.value, "TLS_HANDSHAKE_FORCED")

    def test_algorithms(self):
        self.assertIn(DEFAULT_ALGORITHM, SUPPORTED_ALGORITHMS)
        self.assertNotIn(SSLV2, SUPPORTED_ALGORITHMS)
        self.assertEqual(set(SUPPORTED_ALGORITHMS), {"TLS", "SSL", "TLSv1.2", "TLSv1.3"})

    def test_global_constants(self):
        self.assertEqual(DEFAULT_PORT, 443)
        self.assertEqual(MAX_LOG_FILE_SIZE_MB, 5)
        self.assertEqual(LOG_BACKUP_COUNT, 5)


if __name__ == "__main__":
    unittest.main()
