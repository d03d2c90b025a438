"""
Package client provides the transport core shared by every Thalassa Cloud
resource module.

- Request building with default and scoping headers
- Dispatch through rate limiting, authentication, circuit breaking,
  retries and middleware
- Response checking with a dedicated not-found error
- A facade that hands out resource clients sharing one transport
"""

from .types import (
    ClientConfig,
    HTTPMethod,
    Middleware,
    FunctionMiddleware,
    as_middleware,
    GET,
    POST,
    PUT,
    PATCH,
    DELETE,
    DEFAULT_USER_AGENT,
    ORGANISATION_HEADER,
    PROJECT_HEADER,
)

from .request import Request, decode_result
from .response import Response, error_for_response, retry_after_seconds

from .options import (
    Option,
    with_base_url,
    with_organisation,
    with_project,
    with_timeout,
    with_retries,
    with_retry_config,
    with_rate_limit,
    with_circuit_breaker,
    with_user_agent,
    with_insecure,
    with_header,
    with_middleware,
    with_auth_none,
    with_auth_custom,
    with_auth_personal_token,
    with_auth_basic,
    with_auth_oidc,
)

from .client import Client, new_client
from .resource import ResourceClient, ThalassaClient

__all__ = [
    # Configuration
    'ClientConfig',
    'Option',
    'with_base_url',
    'with_organisation',
    'with_project',
    'with_timeout',
    'with_retries',
    'with_retry_config',
    'with_rate_limit',
    'with_circuit_breaker',
    'with_user_agent',
    'with_insecure',
    'with_header',
    'with_middleware',
    'with_auth_none',
    'with_auth_custom',
    'with_auth_personal_token',
    'with_auth_basic',
    'with_auth_oidc',

    # HTTP
    'HTTPMethod',
    'GET',
    'POST',
    'PUT',
    'PATCH',
    'DELETE',
    'DEFAULT_USER_AGENT',
    'ORGANISATION_HEADER',
    'PROJECT_HEADER',

    # Middleware
    'Middleware',
    'FunctionMiddleware',
    'as_middleware',

    # Requests and responses
    'Request',
    'Response',
    'decode_result',
    'error_for_response',
    'retry_after_seconds',

    # Clients
    'Client',
    'new_client',
    'ResourceClient',
    'ThalassaClient',
]
