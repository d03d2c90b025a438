"""
Credential providers, one per authentication variant.

A provider is selected once when the client is built and is then used
polymorphically on every dispatch.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from .types import (
    AuthConfig, AuthType, CredentialProvider, OAuth2Token, basic_authorization_header,
)
from .oauth2 import ClientCredentialsFlow, OAuth2Config
from ..errors import ConfigurationError, ErrorCode

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"


class NoAuth(CredentialProvider):
    """Requests are sent unauthenticated."""

    auth_type = AuthType.NONE

    async def apply(self, request: Any, session: Any) -> None:
        return None


class CustomAuth(CredentialProvider):
    """Authentication material is supplied by the caller, e.g. as a header."""

    auth_type = AuthType.CUSTOM

    async def apply(self, request: Any, session: Any) -> None:
        return None


class PersonalAccessTokenAuth(CredentialProvider):
    """Static personal access token sent as a bearer credential."""

    auth_type = AuthType.PERSONAL_ACCESS_TOKEN

    def __init__(self, token: str):
        if not token:
            raise ConfigurationError(
                "personal access token cannot be empty",
                code=ErrorCode.EMPTY_PERSONAL_TOKEN
            )
        self._token = token

    async def apply(self, request: Any, session: Any) -> None:
        request.set_header(AUTHORIZATION_HEADER, f"Bearer {self._token}")

    def token(self) -> str:
        return self._token


class BasicAuth(CredentialProvider):
    """HTTP basic authentication."""

    auth_type = AuthType.BASIC

    def __init__(self, username: str, password: str):
        if not username or not password:
            raise ConfigurationError(
                "basic auth requires username/password",
                code=ErrorCode.MISSING_BASIC_CREDENTIALS
            )
        self._header = basic_authorization_header(username, password)

    async def apply(self, request: Any, session: Any) -> None:
        request.set_header(AUTHORIZATION_HEADER, self._header)


class OIDCClientCredentialsAuth(CredentialProvider):
    """
    OAuth2 client-credentials authentication with a cached bearer token.

    The token is exchanged on first use and reused until it is about to
    expire. Refreshes are serialised so that concurrent callers waiting on
    an expired token share a single exchange.
    """

    auth_type = AuthType.OIDC

    def __init__(self, config: AuthConfig, flow: Optional[ClientCredentialsFlow] = None):
        self.config = config
        self._flow = flow or ClientCredentialsFlow(OAuth2Config(
            token_endpoint=config.token_url or "",
            client_id=config.client_id or "",
            client_secret=config.client_secret or "",
            scopes=list(config.scopes),
            auth_style=config.auth_style,
            endpoint_params=dict(config.endpoint_params),
        ))
        self._token: Optional[OAuth2Token] = None
        self._lock: Optional[asyncio.Lock] = None
        self.exchange_count = 0

    def _cached(self) -> Optional[OAuth2Token]:
        token = self._token
        if token is None or token.expired(self.config.expiry_delta):
            return None
        return token

    async def get_token(self, session: aiohttp.ClientSession, **kwargs) -> OAuth2Token:
        """Return the cached token, exchanging credentials if it is missing or expired."""
        token = self._cached()
        if token is not None:
            return token

        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            # Another task may have refreshed while we waited for the lock.
            token = self._cached()
            if token is not None:
                return token

            if self._token is not None:
                logger.info("Cached OIDC token expired, refreshing")
            token = await self._flow.get_token(session, **kwargs)
            self.exchange_count += 1
            self._token = token
            return token

    async def apply(self, request: Any, session: Any) -> None:
        kwargs = {}
        if getattr(request, 'insecure', False):
            kwargs['ssl'] = False
        timeout = getattr(request, 'timeout', None)
        if timeout is not None:
            kwargs['timeout'] = aiohttp.ClientTimeout(total=timeout)
        token = await self.get_token(session, **kwargs)
        request.set_header(AUTHORIZATION_HEADER, token.authorization_header())

    def token(self) -> str:
        if self._token is None:
            return ""
        return self._token.access_token

    def invalidate(self) -> None:
        """Drop the cached token so the next use performs a new exchange."""
        self._token = None


def create_provider(config: Optional[AuthConfig]) -> CredentialProvider:
    """Build the credential provider for the selected authentication variant."""
    if config is None or config.auth_type == AuthType.NONE:
        return NoAuth()
    if config.auth_type == AuthType.PERSONAL_ACCESS_TOKEN:
        return PersonalAccessTokenAuth(config.personal_token or "")
    if config.auth_type == AuthType.BASIC:
        return BasicAuth(config.username or "", config.password or "")
    if config.auth_type == AuthType.OIDC:
        return OIDCClientCredentialsAuth(config)
    if config.auth_type == AuthType.CUSTOM:
        return CustomAuth()
    raise ConfigurationError(f"Unsupported authentication type: {config.auth_type}")
