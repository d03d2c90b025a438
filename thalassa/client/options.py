"""
Option functions that assemble a ``ClientConfig``.

Each ``with_*`` function returns an option; ``new_client`` applies options in
order and then builds the client. Options raise ``ConfigurationError`` when
handed invalid values.
"""

from datetime import timedelta
from typing import Any, Callable, Optional, Union

from .types import ClientConfig, Middleware, as_middleware
from ..auth.types import AuthConfig, AuthType, ClientAuthStyle
from ..circuit import CircuitBreakerOptions
from ..errors import ConfigurationError, ErrorCode
from ..resilience import RetryConfig

Option = Callable[[ClientConfig], None]

Duration = Union[timedelta, float, int]


def _as_timedelta(value: Duration) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


def with_base_url(base_url: str) -> Option:
    """Set the API base URL (required)."""
    def apply(config: ClientConfig) -> None:
        config.base_url = base_url.rstrip("/") if base_url else base_url
    return apply


def with_organisation(organisation: str) -> Option:
    """Scope requests to an organisation."""
    def apply(config: ClientConfig) -> None:
        config.organisation_identity = organisation or None
    return apply


def with_project(project: str) -> Option:
    """Scope requests to a project."""
    def apply(config: ClientConfig) -> None:
        config.project_identity = project or None
    return apply


def with_timeout(timeout: Optional[Duration]) -> Option:
    """Per-attempt HTTP timeout; ``None`` uses the transport default."""
    def apply(config: ClientConfig) -> None:
        if timeout is not None and _as_timedelta(timeout) <= timedelta(0):
            raise ConfigurationError("timeout must be positive")
        config.timeout = _as_timedelta(timeout) if timeout is not None else None
    return apply


def with_retries(count: int, min_wait: Duration, max_wait: Duration) -> Option:
    """Retry transient failures ``count`` times, waiting between ``min_wait`` and ``max_wait``."""
    def apply(config: ClientConfig) -> None:
        if count < 0:
            raise ConfigurationError("retry count must not be negative")
        lower, upper = _as_timedelta(min_wait), _as_timedelta(max_wait)
        if lower > upper:
            raise ConfigurationError("minimum retry wait must not exceed the maximum")
        config.retry.max_retries = count
        config.retry.min_backoff = lower
        config.retry.max_backoff = upper
    return apply


def with_retry_config(retry: RetryConfig) -> Option:
    """Replace the whole retry policy."""
    def apply(config: ClientConfig) -> None:
        config.retry = retry
    return apply


def with_rate_limit(rate: float, burst: int) -> Option:
    """Allow ``rate`` requests per second with bursts of up to ``burst``."""
    def apply(config: ClientConfig) -> None:
        if rate <= 0 or burst < 1:
            raise ConfigurationError("rate limit requires a positive rate and a burst of at least 1")
        config.rate_limit = float(rate)
        config.rate_burst = int(burst)
    return apply


def with_circuit_breaker(name: str, options: Optional[CircuitBreakerOptions] = None, **settings: Any) -> Option:
    """
    Guard calls with a circuit breaker.

    Either pass a complete ``CircuitBreakerOptions`` or keyword settings such
    as ``failure_threshold``, ``timeout``, ``max_requests`` and ``interval``.
    """
    def apply(config: ClientConfig) -> None:
        if options is not None:
            options.name = name
            config.circuit_breaker = options
            return
        for key in ("timeout", "interval"):
            if settings.get(key) is not None:
                settings[key] = _as_timedelta(settings[key])
        try:
            config.circuit_breaker = CircuitBreakerOptions(name=name, **settings)
        except TypeError as e:
            raise ConfigurationError(f"invalid circuit breaker settings: {e}", cause=e)
    return apply


def with_user_agent(user_agent: str) -> Option:
    def apply(config: ClientConfig) -> None:
        config.user_agent = user_agent
    return apply


def with_insecure() -> Option:
    """Skip TLS certificate verification."""
    def apply(config: ClientConfig) -> None:
        config.insecure = True
    return apply


def with_header(name: str, value: str) -> Option:
    """Send an extra header with every request."""
    def apply(config: ClientConfig) -> None:
        config.headers[name] = value
    return apply


def with_middleware(*middleware: Union[Middleware, Callable[[Any, Any], Any]]) -> Option:
    """Register request middleware; they run in registration order."""
    def apply(config: ClientConfig) -> None:
        config.middleware.extend(as_middleware(m) for m in middleware)
    return apply


def with_auth_none() -> Option:
    def apply(config: ClientConfig) -> None:
        config.auth = AuthConfig(auth_type=AuthType.NONE)
    return apply


def with_auth_custom() -> Option:
    """Credentials are attached by the caller, for example through middleware."""
    def apply(config: ClientConfig) -> None:
        config.auth = AuthConfig(auth_type=AuthType.CUSTOM)
    return apply


def with_auth_personal_token(token: str) -> Option:
    def apply(config: ClientConfig) -> None:
        if not token:
            raise ConfigurationError(
                "personal access token cannot be empty",
                code=ErrorCode.EMPTY_PERSONAL_TOKEN
            )
        config.auth = AuthConfig(auth_type=AuthType.PERSONAL_ACCESS_TOKEN, personal_token=token)
    return apply


def with_auth_basic(username: str, password: str) -> Option:
    def apply(config: ClientConfig) -> None:
        if not username or not password:
            raise ConfigurationError(
                "basic auth requires username/password",
                code=ErrorCode.MISSING_BASIC_CREDENTIALS
            )
        config.auth = AuthConfig(auth_type=AuthType.BASIC, username=username, password=password)
    return apply


def with_auth_oidc(client_id: str, client_secret: str, token_url: str, *scopes: str,
                   auth_style: ClientAuthStyle = ClientAuthStyle.HEADER) -> Option:
    """Authenticate with an OAuth2 client-credentials exchange against ``token_url``."""
    def apply(config: ClientConfig) -> None:
        if not client_id or not client_secret or not token_url:
            raise ConfigurationError(
                "OIDC configuration is missing",
                code=ErrorCode.MISSING_OIDC_CONFIG
            )
        config.auth = AuthConfig(
            auth_type=AuthType.OIDC,
            client_id=client_id,
            client_secret=client_secret,
            token_url=token_url,
            scopes=list(scopes),
            auth_style=auth_style,
        )
    return apply
