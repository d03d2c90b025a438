"""
Thalassa Cloud Python Client

Transport core shared by the Thalassa Cloud resource modules.
"""

__version__ = "0.1.0"

from .client import (
    Client,
    ClientConfig,
    Request,
    Response,
    ResourceClient,
    ThalassaClient,
    new_client,
)
from .errors import (
    ThalassaError,
    ConfigurationError,
    APIError,
    NotFoundError,
    is_not_found,
)

__all__ = [
    "Client",
    "ClientConfig",
    "Request",
    "Response",
    "ResourceClient",
    "ThalassaClient",
    "new_client",
    "ThalassaError",
    "ConfigurationError",
    "APIError",
    "NotFoundError",
    "is_not_found",
]
