"""
Utility helpers for the Thalassa Cloud client.
"""

from .config import (
    DEFAULT_ENV_PREFIX,
    load_config_from_env,
    get_config_value,
    parse_duration_string,
    normalize_config_key,
    merge_configs,
    expand_config_variables,
    load_config_file,
    flatten_config,
    options_from_mapping,
    load_client_config,
)

__all__ = [
    'DEFAULT_ENV_PREFIX',
    'load_config_from_env',
    'get_config_value',
    'parse_duration_string',
    'normalize_config_key',
    'merge_configs',
    'expand_config_variables',
    'load_config_file',
    'flatten_config',
    'options_from_mapping',
    'load_client_config',
]
