"""
Package auth provides the authentication strategies of the Thalassa Cloud client.

Supported variants:
- None (unauthenticated requests)
- Personal access token (static bearer token)
- Basic authentication
- OIDC client credentials (OAuth2 token exchange with a cached token)
- Custom (credentials supplied by the caller)
"""

from .types import (
    AuthType,
    AuthConfig,
    ClientAuthStyle,
    CredentialProvider,
    OAuth2Token,
    DEFAULT_EXPIRY_DELTA,
    basic_authorization_header,
)

from .oauth2 import (
    OAuth2Config,
    ClientCredentialsFlow,
)

from .providers import (
    NoAuth,
    CustomAuth,
    PersonalAccessTokenAuth,
    BasicAuth,
    OIDCClientCredentialsAuth,
    create_provider,
)

__all__ = [
    # Core types
    'AuthType',
    'AuthConfig',
    'ClientAuthStyle',
    'CredentialProvider',
    'OAuth2Token',
    'DEFAULT_EXPIRY_DELTA',
    'basic_authorization_header',

    # OAuth2
    'OAuth2Config',
    'ClientCredentialsFlow',

    # Providers
    'NoAuth',
    'CustomAuth',
    'PersonalAccessTokenAuth',
    'BasicAuth',
    'OIDCClientCredentialsAuth',
    'create_provider',
]
