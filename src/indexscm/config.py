# src/indexscm/config.py

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urlparse

import platformdirs
import yaml

from indexscm.constants import (
    ALLOWED_URL_SCHEMES,
    APP_NAME,
    CONFIG_FILE_NAME,
    CONFIG_PATH_ENV_VAR,
    DEFAULT_CONNECT_RETRIES,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_MAX_WORKERS,
    DEFAULT_SOCKET_TIMEOUT,
    MSG_INVALID_TIMEOUT,
    MSG_URL_NO_TRAILING_SLASH,
    MSG_URL_NOT_SPECIFIED,
    MSG_URL_UNKNOWN_SCHEME,
    NO_TIMEOUT,
    PATH_SEPARATOR,
)
from indexscm.exceptions import ConfigFileError, ConfigValidationError, ValidationIssue
from indexscm.log_utils import logger

TIMEOUT_KEYS = ("CONNECT_TIMEOUT", "SOCKET_TIMEOUT")


@dataclass(frozen=True)
class TransportSettings:
    """Settings consumed by the HTTP transport and the discovery worker pool."""

    connect_timeout: Optional[int] = DEFAULT_CONNECT_TIMEOUT
    """Seconds to wait for a connection; None waits forever"""

    socket_timeout: Optional[int] = DEFAULT_SOCKET_TIMEOUT
    """Seconds to wait between bytes on the socket; None waits forever"""

    connect_retries: int = DEFAULT_CONNECT_RETRIES
    """Connection-level retries done by urllib3; 0 means fail fast"""

    max_workers: int = DEFAULT_MAX_WORKERS
    """Concurrent per-revision file listings; 1 keeps fetching sequential"""

    @property
    def timeout(self) -> Optional[Tuple[Optional[int], Optional[int]]]:
        if self.connect_timeout is None and self.socket_timeout is None:
            return None
        return (self.connect_timeout, self.socket_timeout)


def get_config_path(path: Union[str, Path, None] = None) -> Path:
    """
    Resolve the configuration file location.

    An explicit path wins, then the INDEXSCM_CONFIG environment variable, then
    `config.yaml` in the platformdirs user config directory.
    """
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_PATH_ENV_VAR)
    if env_path:
        return Path(env_path)
    return Path(platformdirs.user_config_dir(APP_NAME)) / CONFIG_FILE_NAME


def load_config(path: Union[str, Path, None] = None) -> Dict[str, Any]:
    """
    Load the indexscm configuration YAML.

    Parameters:
        path: Optional explicit configuration file; see get_config_path() for the fallbacks.

    Returns:
        dict: The parsed configuration, or an empty dict when no file exists.

    Raises:
        ConfigFileError: If the file cannot be read, is not valid YAML, or is not a mapping.
    """
    config_path = get_config_path(path)
    if not config_path.exists():
        logger.debug(f"No configuration file at {config_path}; using defaults")
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except OSError as e:
        raise ConfigFileError(
            f"Could not read configuration file {config_path}", str(e)
        ) from e
    except yaml.YAMLError as e:
        raise ConfigFileError(
            f"Could not parse configuration file {config_path}", str(e)
        ) from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigFileError(
            f"Configuration file {config_path} must contain a mapping",
            f"got {type(config).__name__}",
        )
    logger.debug(f"Loaded configuration from {config_path}")
    return config


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def validate_settings(config: Dict[str, Any]) -> List[ValidationIssue]:
    """
    Validate the transport-related settings of a configuration mapping.

    Missing keys are fine; they fall back to the defaults in constants.

    Returns:
        List[ValidationIssue]: One issue per invalid key, empty when everything is valid.
    """
    errors: List[ValidationIssue] = []

    for key in TIMEOUT_KEYS:
        if config.get(key) in (None, ""):
            continue
        timeout = _parse_int(config[key])
        if timeout is None or (timeout <= 0 and timeout != NO_TIMEOUT):
            errors.append(ValidationIssue(key, MSG_INVALID_TIMEOUT))

    retries = config.get("CONNECT_RETRIES")
    if retries not in (None, ""):
        parsed = _parse_int(retries)
        if parsed is None or parsed < 0:
            errors.append(
                ValidationIssue("CONNECT_RETRIES", "Must be an integer >= 0.")
            )

    workers = config.get("MAX_WORKERS")
    if workers not in (None, ""):
        parsed = _parse_int(workers)
        if parsed is None or parsed < 1:
            errors.append(ValidationIssue("MAX_WORKERS", "Must be an integer >= 1."))

    level = config.get("LOG_LEVEL")
    if level and not isinstance(getattr(logging, str(level).upper(), None), int):
        errors.append(ValidationIssue("LOG_LEVEL", f"Unknown log level: {level}"))

    return errors


def _timeout_setting(config: Dict[str, Any], key: str, default: int) -> Optional[int]:
    if config.get(key) in (None, ""):
        return default
    timeout = _parse_int(config[key])
    return None if timeout == NO_TIMEOUT else timeout


def settings_from_config(config: Dict[str, Any]) -> TransportSettings:
    """
    Build TransportSettings from a configuration mapping.

    Raises:
        ConfigValidationError: If validate_settings() reports any issue.
    """
    errors = validate_settings(config)
    if errors:
        raise ConfigValidationError("Invalid configuration", errors)

    retries = config.get("CONNECT_RETRIES")
    workers = config.get("MAX_WORKERS")
    return TransportSettings(
        connect_timeout=_timeout_setting(
            config, "CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT
        ),
        socket_timeout=_timeout_setting(config, "SOCKET_TIMEOUT", DEFAULT_SOCKET_TIMEOUT),
        connect_retries=(
            DEFAULT_CONNECT_RETRIES if retries in (None, "") else _parse_int(retries)
        ),
        max_workers=DEFAULT_MAX_WORKERS if workers in (None, "") else _parse_int(workers),
    )


def validate_url(url: Optional[str]) -> List[ValidationIssue]:
    """
    Check a listing URL before it is polled.

    The URL must be present, use http or https, and name a directory (end with a slash).
    Only the first problem found is reported.
    """
    if not url:
        return [ValidationIssue("url", MSG_URL_NOT_SPECIFIED)]
    if urlparse(url).scheme not in ALLOWED_URL_SCHEMES:
        return [ValidationIssue("url", MSG_URL_UNKNOWN_SCHEME)]
    if not url.endswith(PATH_SEPARATOR):
        return [ValidationIssue("url", MSG_URL_NO_TRAILING_SLASH)]
    return []
