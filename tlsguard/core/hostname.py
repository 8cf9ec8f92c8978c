"""
Hostname matching against a certificate Common Name.

Provides:
  - matches(requested_host, common_name) -> bool
  - wildcard_allowed(common_name) -> bool
  - WILDCARD_EXCLUSIONS: second-level fragments that veto short wildcards

A CN of the form "*.example.com" matches any host ending in ".example.com".
Short wildcards whose middle label is a common second-level registry
fragment ("*.co.uk", "*.org.jp", "*.gov.br", ...) are treated as plain names.
The veto only looks at CNs of 7 to 9 characters and is not a public
suffix list.
"""

from tlsguard.core.logging_setup import get_logger

logger = get_logger("hostname")

WILDCARD_EXCLUSIONS = frozenset({
    "ac.",
    "co.",
    "com.",
    "ed.",
    "edu.",
    "go.",
    "gouv.",
    "gov.",
    "info.",
    "lg.",
    "ne.",
    "net.",
    "or.",
    "org.",
})

_WILDCARD_PREFIX = "*."
_VETO_MIN_LENGTH = 7
_VETO_MAX_LENGTH = 9


def wildcard_allowed(common_name: str) -> bool:
    """
    True if a lower-cased CN gets wildcard treatment: it starts with "*.",
    contains a dot, and is not a short "*.<fragment>.<cc>" name whose
    fragment is in WILDCARD_EXCLUSIONS.
    """
    if not common_name.startswith(_WILDCARD_PREFIX):
        return False

    fragment = ""
    if _VETO_MIN_LENGTH <= len(common_name) <= _VETO_MAX_LENGTH:
        fragment = common_name[2:len(common_name) - 2]

    if fragment in WILDCARD_EXCLUSIONS:
        logger.debug("Wildcard vetoed for CN=%s (fragment=%s)", common_name, fragment)
        return False
    return "." in common_name


def matches(requested_host: str, common_name: str) -> bool:
    """
    Compare the host the caller connected to with the certificate CN.

    The host is stripped and lower-cased; the CN is lower-cased only, so a CN
    carrying surrounding whitespace never matches.
    """
    host = requested_host.strip().lower()
    cn = common_name.lower()

    if wildcard_allowed(cn):
        # keep the leading dot: "*.example.com" must not match "example.com"
        return host.endswith(cn[1:])
    return host == cn
