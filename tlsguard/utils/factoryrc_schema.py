"""
factoryrc_schema.py

Provides:
  validate_factoryrc(raw_dict: dict) -> dict

This function:
  - Ensures required fields exist (schema_version).
  - Validates schema_version >= 1.
  - Enforces enumerations (algorithm in the supported secure context algorithms).
  - Assigns default values for optional fields.
  - If unknown keys appear and allow_unknown_keys=false => raises ValueError.
  - Returns a new dict with validated + defaulted fields (final shape for config loading).
"""

from typing import Any, Dict

from tlsguard.core.constants import DEFAULT_ALGORITHM, DEFAULT_CONNECT_TIMEOUT, SUPPORTED_ALGORITHMS

# Required fields
REQUIRED_FIELDS = ["schema_version"]

# Defaults for optional fields
DEFAULTS = {
    "algorithm": DEFAULT_ALGORITHM,
    "keystore_path": "",
    "keyfile_path": "",
    "keystore_password": "",
    "truststore_path": "",
    "truststore_password": "",
    "connect_timeout": DEFAULT_CONNECT_TIMEOUT,
    "socket_timeout": None,
    "local_address": "",
    "local_port": 0,
    "log_path": "",
    "debug_console": False,
    "allow_unknown_keys": False,
}

_STRING_FIELDS = (
    "algorithm", "keystore_path", "keyfile_path", "keystore_password",
    "truststore_path", "truststore_password", "local_address", "log_path",
)
_BOOL_FIELDS = ("debug_console", "allow_unknown_keys")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_factoryrc(raw_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Strictly validates a .tlsguardrc dictionary. Returns a new dict with validated + defaulted fields.
    Raises ValueError/TypeError on invalid data.
    Steps:
      1. Check required fields.
      2. Check schema_version >= 1.
      3. Fill in defaults for optional fields.
      4. If allow_unknown_keys=false => raise for unknown keys
      5. Validate known fields have correct types or enumerations
      6. Return the final validated dict
    """
    if not isinstance(raw_dict, dict):
        raise TypeError("configuration root must be a JSON object")

    # 1. Required fields
    for req in REQUIRED_FIELDS:
        if req not in raw_dict:
            raise ValueError(f"Missing required field '{req}' in .tlsguardrc")

    # 2. schema_version
    schema_version = raw_dict["schema_version"]
    if not isinstance(schema_version, int) or isinstance(schema_version, bool) or schema_version < 1:
        raise ValueError("schema_version must be an integer >= 1")

    # 3. Build the final dict with defaults
    final_dict: Dict[str, Any] = {"schema_version": schema_version}
    for k, default_val in DEFAULTS.items():
        final_dict[k] = raw_dict.get(k, default_val)

    # 4. Unknown keys
    if not final_dict["allow_unknown_keys"]:
        known_keys = set(DEFAULTS.keys()).union(REQUIRED_FIELDS)
        for k in raw_dict.keys():
            if k not in known_keys:
                raise ValueError(f"Unknown config key '{k}' but allow_unknown_keys=false")

    # 5. Type checks
    for field in _STRING_FIELDS:
        if not isinstance(final_dict[field], str):
            raise TypeError(f"{field} must be a string")
    for field in _BOOL_FIELDS:
        if not isinstance(final_dict[field], bool):
            raise TypeError(f"{field} must be a boolean")
    if not _is_number(final_dict["connect_timeout"]):
        raise TypeError("connect_timeout must be a number")
    if final_dict["socket_timeout"] is not None and not _is_number(final_dict["socket_timeout"]):
        raise TypeError("socket_timeout must be a number or null")
    if not isinstance(final_dict["local_port"], int) or isinstance(final_dict["local_port"], bool):
        raise TypeError("local_port must be an integer")

    if final_dict["algorithm"] not in SUPPORTED_ALGORITHMS:
        raise ValueError(
            f"Invalid algorithm '{final_dict['algorithm']}'. Must be one of {list(SUPPORTED_ALGORITHMS)}"
        )

    return final_dict
