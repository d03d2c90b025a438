"""
Tests for loading client configuration from the environment and files.
"""

import json
from datetime import timedelta

import pytest
import yaml

from thalassa.auth import AuthType
from thalassa.client import ClientConfig
from thalassa.errors import ConfigurationError
from thalassa.util import (
    expand_config_variables, get_config_value, load_client_config,
    load_config_file, load_config_from_env, options_from_mapping,
    parse_duration_string,
)


def build(mapping):
    config = ClientConfig()
    for option in options_from_mapping(mapping):
        option(config)
    return config


class TestDurations:
    """Test duration parsing"""

    @pytest.mark.parametrize("text,expected", [
        ("250ms", timedelta(milliseconds=250)),
        ("30s", timedelta(seconds=30)),
        ("5m", timedelta(minutes=5)),
        ("2h", timedelta(hours=2)),
        ("1d", timedelta(days=1)),
        ("1.5", timedelta(seconds=1.5)),
        (10, timedelta(seconds=10)),
    ])
    def test_parse(self, text, expected):
        assert parse_duration_string(text) == expected

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_duration_string("soon")


class TestEnvironment:
    """Test environment variable handling"""

    def test_load_config_from_env(self, monkeypatch):
        monkeypatch.setenv("THALASSA_BASE_URL", "https://api.example.com")
        monkeypatch.setenv("THALASSA_AUTH_TOKEN", "tok")
        monkeypatch.setenv("OTHER_VALUE", "ignored")

        config = load_config_from_env()

        assert config["base_url"] == "https://api.example.com"
        assert config["auth_token"] == "tok"
        assert "other_value" not in config

    def test_get_config_value_casts(self, monkeypatch):
        monkeypatch.setenv("THALASSA_INSECURE", "yes")
        monkeypatch.setenv("THALASSA_SCOPES", "api, read")
        monkeypatch.setenv("THALASSA_RETRIES", "three")

        assert get_config_value("insecure", cast_type=bool) is True
        assert get_config_value("scopes", cast_type=list) == ["api", "read"]
        assert get_config_value("retries", default=1, cast_type=int) == 1
        assert get_config_value("missing", default="x") == "x"

    def test_load_client_config_from_env(self, monkeypatch):
        monkeypatch.setenv("THALASSA_BASE_URL", "https://api.example.com")
        monkeypatch.setenv("THALASSA_AUTH_TOKEN", "tok")
        monkeypatch.setenv("THALASSA_ORGANISATION", "org-1")

        config = load_client_config()

        assert config.base_url == "https://api.example.com"
        assert config.organisation_identity == "org-1"
        assert config.auth.auth_type == AuthType.PERSONAL_ACCESS_TOKEN
        assert config.auth.personal_token == "tok"

    def test_missing_base_url(self, monkeypatch):
        monkeypatch.delenv("THALASSA_BASE_URL", raising=False)
        monkeypatch.delenv("THALASSA_API_URL", raising=False)

        with pytest.raises(ConfigurationError, match="base URL is required"):
            load_client_config()


class TestFiles:
    """Test JSON and YAML configuration files"""

    def test_yaml_file_with_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("THALASSA_ORGANISATION", "org-env")
        monkeypatch.setenv("CLIENT_SECRET", "s3cret")
        path = tmp_path / "thalassa.yaml"
        path.write_text(yaml.safe_dump({
            "base_url": "https://api.example.com/",
            "organisation": "org-file",
            "timeout": "30s",
            "auth": {
                "client_id": "client-1",
                "client_secret": "${CLIENT_SECRET}",
                "token_url": "https://api.example.com/oidc/token",
                "scopes": ["api"],
            },
            "retry": {"count": 3, "min_wait": "50ms", "max_wait": "1s"},
            "rate_limit": {"rate": 10, "burst": 5},
            "circuit_breaker": {"name": "api", "failure_threshold": 4, "timeout": "15s"},
        }))

        config = load_client_config(path)

        assert config.base_url == "https://api.example.com"
        assert config.organisation_identity == "org-env"
        assert config.timeout == timedelta(seconds=30)
        assert config.auth.auth_type == AuthType.OIDC
        assert config.auth.client_secret == "s3cret"
        assert config.auth.scopes == ["api"]
        assert config.retry.max_retries == 3
        assert config.retry.min_backoff == timedelta(milliseconds=50)
        assert (config.rate_limit, config.rate_burst) == (10.0, 5)
        assert config.circuit_breaker.name == "api"
        assert config.circuit_breaker.failure_threshold == 4
        assert config.circuit_breaker.timeout == timedelta(seconds=15)

    def test_json_file(self, tmp_path):
        path = tmp_path / "thalassa.json"
        path.write_text(json.dumps({"base_url": "https://api.example.com", "insecure": "true"}))

        assert load_config_file(path)["base_url"] == "https://api.example.com"
        assert build(load_config_file(path)).insecure is True

    def test_missing_and_unsupported_files(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_file(tmp_path / "absent.yaml")

        path = tmp_path / "thalassa.toml"
        path.write_text("base_url = 'x'")
        with pytest.raises(ValueError):
            load_config_file(path)


class TestOptionsFromMapping:
    """Test translating mappings into options"""

    def test_basic_auth_and_headers(self):
        config = build({
            "base_url": "https://api.example.com",
            "auth": {"username": "user", "password": "pass"},
            "headers": {"X-Trace": "1"},
            "project": "proj-1",
        })

        assert config.auth.auth_type == AuthType.BASIC
        assert config.headers == {"X-Trace": "1"}
        assert config.project_identity == "proj-1"

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError):
            options_from_mapping({"retry_count": "many"})
        with pytest.raises(ConfigurationError):
            options_from_mapping({"timeout": "later"})

    def test_expand_variables(self):
        expanded = expand_config_variables(
            {"a": "${X}", "b": ["${Y}"], "c": {"d": "${MISSING}"}},
            variables={"X": "1", "Y": "2"},
        )
        assert expanded == {"a": "1", "b": ["2"], "c": {"d": "${MISSING}"}}
