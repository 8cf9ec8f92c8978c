"""
tlsguard - Configuration Management

This module:
1. Loads and validates a .tlsguardrc JSON file (schema in utils/factoryrc_schema.py).
2. Builds a FactoryConfig describing the secure context (algorithm, keystore,
   truststore) and the connection parameters (timeouts, local bind address).
3. Merges a small whitelist of environment variable overrides.
4. Validates coherence and logs each config load.
"""

import os
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from tlsguard.core.constants import EventCode, SUPPORTED_ALGORITHMS
from tlsguard.core.logging_setup import get_logger
from tlsguard.utils.factoryrc_schema import DEFAULTS, validate_factoryrc

logger = get_logger("config")

ENV_OVERRIDES = {
    "TLSGUARD_ALGORITHM": "algorithm",
    "TLSGUARD_CONNECT_TIMEOUT": "connect_timeout",
    "TLSGUARD_KEYSTORE_PASSWORD": "keystore_password",
    "TLSGUARD_TRUSTSTORE_PASSWORD": "truststore_password",
}


class ConfigError(Exception):
    """Raised when .tlsguardrc is invalid or missing required fields."""
    pass


class FactoryConfig:
    """
    A container for all parsed .tlsguardrc fields.
    Empty strings mean "not configured" for paths, passwords and the local address.
    """

    def __init__(self, raw_dict: Dict[str, Any]):
        self.raw_dict = raw_dict

        self.schema_version: int = raw_dict.get("schema_version", 1)

        # Secure context
        self.algorithm: str = raw_dict.get("algorithm", DEFAULTS["algorithm"])
        self.keystore_path: str = raw_dict.get("keystore_path", "")
        self.keyfile_path: str = raw_dict.get("keyfile_path", "")
        self.keystore_password: str = raw_dict.get("keystore_password", "")
        self.truststore_path: str = raw_dict.get("truststore_path", "")
        self.truststore_password: str = raw_dict.get("truststore_password", "")

        # Connection
        self.connect_timeout: float = raw_dict.get("connect_timeout", DEFAULTS["connect_timeout"])
        self.socket_timeout: Optional[float] = raw_dict.get("socket_timeout", None)
        self.local_address: str = raw_dict.get("local_address", "")
        self.local_port: int = raw_dict.get("local_port", 0)

        # Logging
        self.log_path: str = raw_dict.get("log_path", "")
        self.debug_console: bool = raw_dict.get("debug_console", False)

        self._validate_algorithm()
        self._validate_timeouts()
        self._validate_local_bind()
        self._validate_coherence()

    @classmethod
    def default(cls) -> "FactoryConfig":
        return cls({"schema_version": 1})

    def _validate_algorithm(self) -> None:
        if self.algorithm not in SUPPORTED_ALGORITHMS:
            raise ConfigError(
                f"Invalid algorithm '{self.algorithm}'. Must be one of {list(SUPPORTED_ALGORITHMS)}"
            )

    def _validate_timeouts(self) -> None:
        try:
            self.connect_timeout = float(self.connect_timeout)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"connect_timeout must be a number: {e}") from e
        if self.connect_timeout < 0:
            raise ConfigError("connect_timeout must be >= 0 (0 means no timeout)")
        if self.socket_timeout is not None and self.socket_timeout < 0:
            raise ConfigError("socket_timeout must be >= 0 or null")

    def _validate_local_bind(self) -> None:
        if not 0 <= self.local_port <= 65535:
            raise ConfigError(f"local_port {self.local_port} out of range 0-65535")
        if self.local_port and not self.local_address:
            raise ConfigError("local_port requires local_address")

    def _validate_coherence(self) -> None:
        """
        Catch contradictory settings, e.g. a key file or password without a keystore.
        """
        if self.keyfile_path and not self.keystore_path:
            raise ConfigError("Incoherent config: keyfile_path set but keystore_path is empty.")
        if self.keystore_password and not self.keystore_path:
            raise ConfigError("Incoherent config: keystore_password set but keystore_path is empty.")
        if self.truststore_password and not self.truststore_path:
            raise ConfigError("Incoherent config: truststore_password set but truststore_path is empty.")


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(raw)
    for env_var, key in ENV_OVERRIDES.items():
        val = os.environ.get(env_var)
        if val is None:
            continue
        if key == "connect_timeout":
            try:
                merged[key] = float(val)
            except ValueError as e:
                raise ConfigError(f"{env_var} must be a number, got '{val}'") from e
        else:
            merged[key] = val
        if "password" in key:
            logger.info("Environment overrides %s", key)
        else:
            logger.info("Environment overrides %s: %s -> %s", key, raw.get(key), merged[key])
    return merged


def load_config(path: Union[str, Path], parse_env: bool = True) -> FactoryConfig:
    """
    Loads and validates a .tlsguardrc file.

    Steps:
      1. Validate presence, parse JSON.
      2. Run schema validation (validate_factoryrc).
      3. If parse_env=True, apply whitelisted env overrides.
      4. Build a FactoryConfig object.

    :param path: Location of the JSON config file.
    :param parse_env: If True, environment overrides are applied.
    :raises ConfigError: If the file is missing, invalid, or incoherent.
    :return: A finalized FactoryConfig object.
    """
    config_file = Path(path)
    if not config_file.is_file():
        raise ConfigError(f"config file not found at: {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            raw_data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Unable to load JSON from '{config_file}': {e}") from e

    try:
        validated_data = validate_factoryrc(raw_data)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Schema validation failed: {e}") from e

    if parse_env:
        validated_data = _apply_env_overrides(validated_data)

    cfg = FactoryConfig(validated_data)

    logger.info(
        "%s: file=%s, algorithm=%s, keystore=%s, truststore=%s, connect_timeout=%s",
        EventCode.CONFIG_LOADED.value,
        config_file,
        cfg.algorithm,
        cfg.keystore_path or "-",
        cfg.truststore_path or "-",
        cfg.connect_timeout
    )
    return cfg
