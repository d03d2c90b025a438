"""
Configuration and shared types for the Thalassa Cloud client core.
"""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from ..auth.types import AuthConfig
from ..circuit import CircuitBreakerOptions
from ..errors import ConfigurationError, ErrorCode, UnsupportedHTTPMethodError
from ..resilience import RetryConfig

DEFAULT_USER_AGENT = "thalassa-cloud-client-python/0.1.0"
ORGANISATION_HEADER = "X-Organisation-Identity"
PROJECT_HEADER = "X-Project-Identity"


class HTTPMethod(str, Enum):
    """HTTP methods supported by the dispatcher."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def parse(cls, method: Union['HTTPMethod', str]) -> 'HTTPMethod':
        if isinstance(method, cls):
            return method
        if isinstance(method, str):
            try:
                return cls(method.upper())
            except ValueError:
                pass
        raise UnsupportedHTTPMethodError(method)


GET = HTTPMethod.GET
POST = HTTPMethod.POST
PUT = HTTPMethod.PUT
PATCH = HTTPMethod.PATCH
DELETE = HTTPMethod.DELETE


class Middleware(ABC):
    """
    Request interceptor run before every physical send.

    Implementations may inspect or modify the request, or raise to abort it.
    """

    @abstractmethod
    async def process_request(self, client: Any, request: Any) -> None:
        pass


class FunctionMiddleware(Middleware):
    """Adapts a plain ``fn(client, request)`` callable, sync or async."""

    def __init__(self, func: Callable[[Any, Any], Any]):
        self.func = func

    async def process_request(self, client: Any, request: Any) -> None:
        result = self.func(client, request)
        if inspect.isawaitable(result):
            await result

    def __repr__(self) -> str:
        return f"FunctionMiddleware({getattr(self.func, '__name__', self.func)!r})"


def as_middleware(middleware: Union[Middleware, Callable[[Any, Any], Any]]) -> Middleware:
    if isinstance(middleware, Middleware):
        return middleware
    if callable(middleware):
        return FunctionMiddleware(middleware)
    raise ConfigurationError(f"middleware must be a Middleware or a callable, got {type(middleware).__name__}")


@dataclass
class ClientConfig:
    """Configuration for the client core"""
    base_url: str = ""
    organisation_identity: Optional[str] = None
    project_identity: Optional[str] = None
    timeout: Optional[timedelta] = field(default_factory=lambda: timedelta(seconds=60))
    retry: RetryConfig = field(default_factory=RetryConfig)
    rate_limit: Optional[float] = None
    rate_burst: Optional[int] = None
    circuit_breaker: Optional[CircuitBreakerOptions] = None
    user_agent: str = DEFAULT_USER_AGENT
    insecure: bool = False
    auth: AuthConfig = field(default_factory=AuthConfig)
    middleware: List[Middleware] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> bool:
        """Validate the configuration"""
        if not self.base_url:
            raise ConfigurationError("base URL is required", code=ErrorCode.MISSING_BASE_URL)
        if self.rate_limit is not None and self.rate_limit < 0:
            raise ConfigurationError("rate limit must not be negative")
        if self.retry.max_retries < 0:
            raise ConfigurationError("retry count must not be negative")
        if self.retry.min_backoff > self.retry.max_backoff:
            raise ConfigurationError("minimum retry wait must not exceed the maximum")
        return True
