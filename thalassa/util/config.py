"""
Configuration utilities for the Thalassa Cloud client.
Loads settings from the environment or a JSON/YAML file and turns them into
client options.
"""

import json
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..client.options import (
    Option, with_auth_basic, with_auth_oidc, with_auth_personal_token,
    with_base_url, with_circuit_breaker, with_header, with_insecure,
    with_organisation, with_project, with_rate_limit, with_retries,
    with_timeout, with_user_agent,
)
from ..client.types import ClientConfig
from ..errors import ConfigurationError

DEFAULT_ENV_PREFIX = "THALASSA_"

_DURATION_UNITS = {
    'ms': timedelta(milliseconds=1),
    's': timedelta(seconds=1),
    'm': timedelta(minutes=1),
    'h': timedelta(hours=1),
    'd': timedelta(days=1),
}

# Sections a config file may nest; their keys are flattened as <section>_<key>.
_SECTIONS = ('auth', 'retry', 'rate_limit', 'circuit_breaker')


def load_config_from_env(prefix: str = DEFAULT_ENV_PREFIX) -> Dict[str, str]:
    """
    Load configuration from environment variables with given prefix.
    """
    config = {}

    for key, value in os.environ.items():
        if key.startswith(prefix):
            # Remove prefix and convert to lowercase
            config[normalize_config_key(key[len(prefix):])] = value

    return config


def get_config_value(key: str, default: Any = None,
                     cast_type: Optional[type] = None,
                     env_prefix: str = DEFAULT_ENV_PREFIX) -> Any:
    """
    Get configuration value from environment or return default.
    Optionally cast to specified type.
    """
    value = os.environ.get(f"{env_prefix}{key.upper()}", default)

    if value is None or cast_type is None:
        return value

    try:
        return _cast(value, cast_type)
    except (ValueError, TypeError):
        return default


def _cast(value: Any, cast_type: type) -> Any:
    if cast_type == bool:
        if isinstance(value, str):
            return value.strip().lower() in ('true', '1', 'yes', 'on')
        return bool(value)
    if cast_type == list:
        if isinstance(value, str):
            # Comma or whitespace separated
            return [item for item in re.split(r'[,\s]+', value) if item]
        return list(value) if value else []
    return cast_type(value)


def parse_duration_string(duration: Union[str, int, float, timedelta]) -> timedelta:
    """
    Parse a duration like '250ms', '30s', '5m', '2h' or '1d' into a timedelta.

    Bare numbers are read as seconds.
    """
    if isinstance(duration, timedelta):
        return duration
    if isinstance(duration, (int, float)) and not isinstance(duration, bool):
        return timedelta(seconds=duration)
    if not isinstance(duration, str):
        raise ValueError("Duration must be a string")

    text = duration.strip().lower()
    match = re.match(r'^(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?$', text)
    if not match:
        raise ValueError(f"Invalid duration format: {duration}")

    value, unit = match.groups()
    return float(value) * _DURATION_UNITS[unit or 's']


def normalize_config_key(key: str) -> str:
    """Normalize configuration key to standard format."""
    return key.lower().replace('-', '_')


def merge_configs(*configs: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Merge multiple configuration dictionaries.
    Later configs override earlier ones.
    """
    result = {}

    for config in configs:
        if isinstance(config, dict):
            result.update(config)

    return result


def expand_config_variables(config: Dict[str, Any],
                            variables: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Expand ${VAR_NAME} references in configuration values.
    Unknown variables are left untouched.
    """
    if variables is None:
        variables = dict(os.environ)

    def expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return re.sub(r'\$\{([^}]+)\}', lambda m: variables.get(m.group(1), m.group(0)), value)
        if isinstance(value, dict):
            return {k: expand_value(v) for k, v in value.items()}
        if isinstance(value, list):
            return [expand_value(item) for item in value]
        return value

    return expand_value(config)


def load_config_file(file_path: Union[str, Path]) -> Dict[str, Any]:
    """Load configuration from a file (JSON or YAML)."""
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    suffix = path.suffix.lower()
    with open(path, 'r', encoding='utf-8') as f:
        if suffix == '.json':
            data = json.load(f)
        elif suffix in ('.yaml', '.yml'):
            data = yaml.safe_load(f)
        else:
            raise ValueError(f"Unsupported configuration file format: {suffix}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {file_path} must contain a mapping")
    return data


def flatten_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten the known nested sections into ``<section>_<key>`` entries."""
    flat: Dict[str, Any] = {}
    for key, value in config.items():
        key = normalize_config_key(key)
        if key in _SECTIONS and isinstance(value, dict):
            for sub_key, sub_value in value.items():
                flat[f"{key}_{normalize_config_key(sub_key)}"] = sub_value
        else:
            flat[key] = value
    return flat


def options_from_mapping(mapping: Dict[str, Any]) -> List[Option]:
    """
    Translate a configuration mapping into client options.

    Recognised keys (flat, or nested under ``auth``, ``retry``,
    ``rate_limit`` and ``circuit_breaker``):

        base_url, organisation, project, timeout, user_agent, insecure,
        headers, auth_token / auth_personal_token, auth_username,
        auth_password, auth_client_id, auth_client_secret, auth_token_url,
        auth_scopes, retry_count, retry_min_wait, retry_max_wait,
        rate_limit_rate, rate_limit_burst, circuit_breaker_name,
        circuit_breaker_failure_threshold, circuit_breaker_timeout,
        circuit_breaker_interval, circuit_breaker_max_requests

    Raises:
        ConfigurationError: A value cannot be interpreted
    """
    config = flatten_config(mapping)
    options: List[Option] = []

    try:
        if config.get('base_url') or config.get('api_url'):
            options.append(with_base_url(config.get('base_url') or config['api_url']))
        if config.get('organisation'):
            options.append(with_organisation(config['organisation']))
        if config.get('project'):
            options.append(with_project(config['project']))
        if config.get('timeout') is not None:
            options.append(with_timeout(parse_duration_string(config['timeout'])))
        if config.get('user_agent'):
            options.append(with_user_agent(config['user_agent']))
        if _cast(config.get('insecure', False), bool):
            options.append(with_insecure())
        for name, value in (config.get('headers') or {}).items():
            options.append(with_header(name, str(value)))

        options.extend(_auth_options(config))

        if config.get('retry_count') is not None:
            options.append(with_retries(
                int(config['retry_count']),
                parse_duration_string(config.get('retry_min_wait', '100ms')),
                parse_duration_string(config.get('retry_max_wait', '2s')),
            ))

        if config.get('rate_limit_rate') is not None:
            rate = float(config['rate_limit_rate'])
            options.append(with_rate_limit(rate, int(config.get('rate_limit_burst') or max(1, int(rate)))))

        if config.get('circuit_breaker_name'):
            settings: Dict[str, Any] = {}
            for key in ('failure_threshold', 'max_requests'):
                if config.get(f'circuit_breaker_{key}') is not None:
                    settings[key] = int(config[f'circuit_breaker_{key}'])
            for key in ('timeout', 'interval'):
                if config.get(f'circuit_breaker_{key}') is not None:
                    settings[key] = parse_duration_string(config[f'circuit_breaker_{key}'])
            options.append(with_circuit_breaker(config['circuit_breaker_name'], **settings))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid client configuration: {e}", cause=e)

    return options


def _auth_options(config: Dict[str, Any]) -> List[Option]:
    token = config.get('auth_personal_token') or config.get('auth_token')
    if token:
        return [with_auth_personal_token(token)]
    if config.get('auth_client_id') or config.get('auth_client_secret'):
        scopes = config.get('auth_scopes') or []
        return [with_auth_oidc(
            config.get('auth_client_id', ''),
            config.get('auth_client_secret', ''),
            config.get('auth_token_url', ''),
            *_cast(scopes, list),
        )]
    if config.get('auth_username') or config.get('auth_password'):
        return [with_auth_basic(config.get('auth_username', ''), config.get('auth_password', ''))]
    return []


def load_client_config(path: Optional[Union[str, Path]] = None,
                       prefix: str = DEFAULT_ENV_PREFIX) -> ClientConfig:
    """
    Build a ``ClientConfig`` from an optional file and the environment.

    Environment variables (e.g. ``THALASSA_BASE_URL``,
    ``THALASSA_AUTH_TOKEN``) override values from the file.
    """
    file_config = flatten_config(expand_config_variables(load_config_file(path))) if path else {}
    merged = merge_configs(file_config, load_config_from_env(prefix))

    config = ClientConfig()
    for option in options_from_mapping(merged):
        option(config)
    config.validate()
    return config
