"""
OAuth2 client-credentials exchange for the Thalassa Cloud client.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

import aiohttp

from .types import ClientAuthStyle, OAuth2Token, basic_authorization_header
from ..errors import AuthenticationError, ConfigurationError, ErrorCode, TransportError

logger = logging.getLogger(__name__)


@dataclass
class OAuth2Config:
    """OAuth2 client-credentials configuration."""
    token_endpoint: str
    client_id: str
    client_secret: str
    scopes: List[str] = field(default_factory=list)
    auth_style: ClientAuthStyle = ClientAuthStyle.HEADER
    endpoint_params: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        if not self.token_endpoint or not self.client_id or not self.client_secret:
            raise ConfigurationError(
                "OIDC configuration is missing",
                code=ErrorCode.MISSING_OIDC_CONFIG
            )


class ClientCredentialsFlow:
    """OAuth2 Client Credentials flow (RFC 6749 section 4.4)."""

    def __init__(self, config: OAuth2Config):
        config.validate()
        self.config = config

    def _build_form(self) -> Dict[str, str]:
        form = {'grant_type': 'client_credentials'}
        if self.config.scopes:
            form['scope'] = ' '.join(self.config.scopes)
        form.update(self.config.endpoint_params)
        if self.config.auth_style == ClientAuthStyle.PARAMS:
            form['client_id'] = self.config.client_id
            form['client_secret'] = self.config.client_secret
        return form

    async def get_token(self, session: aiohttp.ClientSession,
                        timeout: Optional[aiohttp.ClientTimeout] = None,
                        ssl: Optional[bool] = None) -> OAuth2Token:
        """Exchange the client credentials for an access token."""
        headers = {'Accept': 'application/json'}
        if self.config.auth_style == ClientAuthStyle.HEADER:
            headers['Authorization'] = basic_authorization_header(
                self.config.client_id, self.config.client_secret
            )

        logger.debug(f"Requesting client-credentials token from {self.config.token_endpoint}")

        kwargs = {}
        if timeout is not None:
            kwargs['timeout'] = timeout
        if ssl is not None:
            kwargs['ssl'] = ssl

        try:
            async with session.post(
                self.config.token_endpoint,
                data=self._build_form(),
                headers=headers,
                **kwargs
            ) as response:
                body = await response.text()
                if response.status < 200 or response.status >= 300:
                    raise AuthenticationError(
                        f"token exchange failed with status {response.status}",
                        status_code=response.status,
                        body=body
                    )
                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    raise AuthenticationError(
                        "token endpoint returned an invalid JSON body",
                        status_code=response.status,
                        body=body,
                        cause=e
                    )
        except aiohttp.ClientError as e:
            raise TransportError(f"token exchange request failed: {e}", cause=e)
        except asyncio.TimeoutError as e:
            raise TransportError("token exchange request timed out", cause=e)

        if not isinstance(payload, dict) or not payload.get('access_token'):
            raise AuthenticationError(
                "token endpoint response has no access_token",
                status_code=200,
                body=body
            )

        try:
            token = OAuth2Token.from_dict(payload, now=datetime.now(timezone.utc))
        except (TypeError, ValueError) as e:
            raise AuthenticationError(
                f"token endpoint returned an invalid expires_in: {payload.get('expires_in')!r}",
                status_code=200,
                body=body,
                cause=e
            )
        logger.info(f"Obtained client-credentials token for client '{self.config.client_id}'")
        return token
