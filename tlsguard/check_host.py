#!/usr/bin/env python3
# check_host.py
"""
Command-line hostname checker.

Connects to HOST:PORT through the tlsguard socket factory and prints the
verification verdict as JSON. With --cert-file the certificate is checked
offline instead (no network).

Usage example:
  tlsguard-check www.example.com --port 443 --config /etc/tlsguard/.tlsguardrc
  tlsguard-check www.example.com --cert-file server.pem

Exit codes: 0 verified, 1 verification failed, 2 configuration or connection error.
"""

import sys
import json
import argparse
from typing import List, Optional

from tlsguard.core.config import ConfigError, FactoryConfig, load_config
from tlsguard.core.constants import DEFAULT_PORT
from tlsguard.core.errors import HostnameVerificationError
from tlsguard.core.identity import PeerCertificate
from tlsguard.core.logging_setup import LoggingSetupError, get_logger, init_logging
from tlsguard.core.socket_factory import SocketFactoryError, SSLSocketFactory
from tlsguard.core.verifier import VerificationVerdict, verify_certificate

logger = get_logger("check_host")

EXIT_OK = 0
EXIT_VERIFICATION_FAILED = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tlsguard-check",
        description="Check that a TLS server certificate speaks for a host name."
    )
    parser.add_argument("host", help="Host name the client intends to connect to.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Server port. Default=443.")
    parser.add_argument("--config", help="Path to a .tlsguardrc JSON file.")
    parser.add_argument("--connect-timeout", type=float,
                        help="Connect timeout in seconds (overrides the config file).")
    parser.add_argument("--local-address", help="Local address to bind before connecting.")
    parser.add_argument("--cert-file", help="Check this PEM/DER certificate offline instead of connecting.")
    parser.add_argument("--log-path", help="Directory for JSON logs (overrides the config file).")
    parser.add_argument("--debug-console", action="store_true", help="Mirror JSON logs to stdout.")
    return parser


def _print_verdict(verdict: VerificationVerdict) -> int:
    print(json.dumps(verdict.to_dict(), indent=2))
    return EXIT_OK if verdict.passed else EXIT_VERIFICATION_FAILED


def _print_error(message: str) -> int:
    print(json.dumps({"passed": False, "error": message}, indent=2))
    return EXIT_ERROR


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config) if args.config else FactoryConfig.default()
    except ConfigError as e:
        return _print_error(str(e))

    log_path = args.log_path or config.log_path
    if log_path:
        try:
            init_logging(log_path, debug_console=args.debug_console or config.debug_console)
        except LoggingSetupError as e:
            return _print_error(str(e))

    if args.cert_file:
        try:
            certificate = PeerCertificate.load(args.cert_file)
        except (OSError, ValueError) as e:
            return _print_error(f"Unable to load certificate '{args.cert_file}': {e}")
        return _print_verdict(verify_certificate(certificate, args.host))

    try:
        factory = SSLSocketFactory(config if args.config else None)
        sock = factory.create_socket(
            args.host,
            args.port,
            local_address=args.local_address,
            connect_timeout=args.connect_timeout
        )
    except HostnameVerificationError as e:
        verdict = VerificationVerdict.fail(e.failure, str(e), e.host, e.common_name, e.subject)
        return _print_verdict(verdict)
    except (SocketFactoryError, OSError) as e:
        logger.error("Connection to %s:%s failed: %s", args.host, args.port, e)
        return _print_error(f"Connection to {args.host}:{args.port} failed: {e}")

    # create_socket() already verified; re-derive the verdict for the report
    with sock:
        certificate = PeerCertificate.from_der(sock.getpeercert(binary_form=True))
    return _print_verdict(verify_certificate(certificate, args.host))


if __name__ == "__main__":
    sys.exit(main())
