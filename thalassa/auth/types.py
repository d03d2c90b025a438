"""
Core authentication types for the Thalassa Cloud client.
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# Tokens are refreshed this long before they actually expire.
DEFAULT_EXPIRY_DELTA = timedelta(seconds=10)


class AuthType(Enum):
    """Authentication type enumeration."""
    NONE = "none"
    OIDC = "oidc"
    PERSONAL_ACCESS_TOKEN = "personal_access_token"
    BASIC = "basic"
    CUSTOM = "custom"


class ClientAuthStyle(Enum):
    """How client credentials are presented to the token endpoint."""
    HEADER = "header"  # HTTP Basic
    PARAMS = "params"  # form body


@dataclass
class OAuth2Token:
    """Bearer token obtained from the token endpoint."""
    access_token: str
    token_type: str = "Bearer"
    expires_at: Optional[datetime] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None

    def expired(self, expiry_delta: timedelta = DEFAULT_EXPIRY_DELTA,
                now: Optional[datetime] = None) -> bool:
        """Check whether the token is expired or about to expire."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at - expiry_delta

    def valid(self) -> bool:
        return bool(self.access_token) and not self.expired()

    def authorization_header(self) -> str:
        # Some servers answer "bearer"; the header is always sent capitalised.
        token_type = self.token_type or "Bearer"
        if token_type.lower() == "bearer":
            token_type = "Bearer"
        return f"{token_type} {self.access_token}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], now: Optional[datetime] = None) -> 'OAuth2Token':
        """
        Create from a token endpoint JSON response.

        Raises:
            ValueError: expires_in is not a number
        """
        now = now or datetime.now(timezone.utc)
        expires_at = None
        expires_in = data.get('expires_in')
        if expires_in not in (None, "", 0, "0"):
            expires_at = now + timedelta(seconds=int(float(expires_in)))

        return cls(
            access_token=data.get('access_token', ''),
            token_type=data.get('token_type') or "Bearer",
            expires_at=expires_at,
            refresh_token=data.get('refresh_token'),
            scope=data.get('scope'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'access_token': self.access_token,
            'token_type': self.token_type,
        }

        if self.expires_at is not None:
            result['expires_at'] = self.expires_at.isoformat()
        if self.refresh_token is not None:
            result['refresh_token'] = self.refresh_token
        if self.scope is not None:
            result['scope'] = self.scope

        return result


@dataclass
class AuthConfig:
    """Authentication selection and the material each variant needs."""
    auth_type: AuthType = AuthType.NONE

    # Personal access token
    personal_token: Optional[str] = None

    # Basic
    username: Optional[str] = None
    password: Optional[str] = None

    # OIDC client credentials
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    token_url: Optional[str] = None
    scopes: List[str] = field(default_factory=list)
    auth_style: ClientAuthStyle = ClientAuthStyle.HEADER
    endpoint_params: Dict[str, str] = field(default_factory=dict)
    expiry_delta: timedelta = DEFAULT_EXPIRY_DELTA

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, leaving secrets out."""
        result = {
            'auth_type': self.auth_type.value,
            'scopes': self.scopes,
        }

        if self.username is not None:
            result['username'] = self.username
        if self.client_id is not None:
            result['client_id'] = self.client_id
        if self.token_url is not None:
            result['token_url'] = self.token_url

        return result


class CredentialProvider(ABC):
    """Resolves authentication material and attaches it to outgoing requests."""

    auth_type: AuthType

    @abstractmethod
    async def apply(self, request: Any, session: Any) -> None:
        """Attach credentials to ``request`` before it is sent."""
        pass

    def token(self) -> str:
        """Return the current bearer token, if this variant has one."""
        return ""

    async def close(self) -> None:
        """Release any resources held by the provider."""
        pass


def basic_authorization_header(username: str, password: str) -> str:
    """Generate Authorization header for basic auth."""
    credentials = f"{username}:{password}"
    encoded = base64.b64encode(credentials.encode('utf-8')).decode('ascii')
    return f"Basic {encoded}"
