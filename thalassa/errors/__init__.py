"""
Error handling for the Thalassa Cloud client.

Every failure raised by the client core derives from ``ThalassaError`` and
carries a structured code, the pipeline stage it came from and the
underlying cause. "Not found" responses are raised as ``NotFoundError`` so
callers can branch on them with ``is_not_found`` instead of matching text.
"""

import json
from enum import Enum
from datetime import datetime
from typing import Dict, Any, Optional
from dataclasses import dataclass, field


class ErrorCode(Enum):
    """Structured error codes for the client core."""

    # Configuration errors
    MISSING_BASE_URL = "missing_base_url"
    MISSING_OIDC_CONFIG = "missing_oidc_config"
    EMPTY_PERSONAL_TOKEN = "empty_personal_token"
    MISSING_BASIC_CREDENTIALS = "missing_basic_credentials"
    UNSUPPORTED_HTTP_METHOD = "unsupported_http_method"
    INVALID_CONFIGURATION = "invalid_configuration"

    # Authentication errors
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"

    # Transport errors
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"

    # Resilience errors
    CIRCUIT_OPEN = "circuit_open"
    TOO_MANY_REQUESTS = "too_many_requests"

    # Middleware errors
    MIDDLEWARE_REJECTED = "middleware_rejected"

    # Application errors
    NOT_FOUND = "not_found"
    API_ERROR = "api_error"
    DECODE_ERROR = "decode_error"


class ErrorSource(Enum):
    """Pipeline stage where an error originated."""

    CONFIGURATION = "configuration"
    RATE_LIMITER = "rate_limiter"
    AUTHENTICATION = "authentication"
    CIRCUIT_BREAKER = "circuit_breaker"
    MIDDLEWARE = "middleware"
    NETWORK = "network"
    SERVER = "server"


@dataclass
class ErrorContext:
    """Additional context for errors."""

    method: Optional[str] = None
    path: Optional[str] = None
    attempt: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)


class ThalassaError(Exception):
    """
    Base exception class for all client errors.

    Provides structured error information with an error code, the source
    stage and additional context.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        source: ErrorSource = ErrorSource.SERVER,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None
    ):
        self.code = code
        self.message = message
        self.source = source
        self.context = context or ErrorContext()
        self.cause = cause

        super().__init__(self.message)
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "error": self.code.value,
            "error_description": self.message,
            "error_source": self.source.value,
            "timestamp": self.context.timestamp.isoformat(),
        }

        if self.context.method:
            result["method"] = self.context.method

        if self.context.path:
            result["path"] = self.context.path

        if self.context.metadata:
            result["metadata"] = self.context.metadata

        if self.cause:
            result["caused_by"] = str(self.cause)

        return result

    def is_retryable(self) -> bool:
        """Check if this error might be resolved by retrying."""
        return self.code == ErrorCode.NETWORK_ERROR


class ConfigurationError(ThalassaError):
    """Invalid or incomplete client configuration. Never retried."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_CONFIGURATION, **kwargs):
        super().__init__(
            code=code,
            message=message,
            source=ErrorSource.CONFIGURATION,
            **kwargs
        )


class UnsupportedHTTPMethodError(ConfigurationError):
    """The requested HTTP method is not supported by the client."""

    def __init__(self, method: Any, **kwargs):
        self.method = method
        super().__init__(
            f"unsupported HTTP method: {method}",
            code=ErrorCode.UNSUPPORTED_HTTP_METHOD,
            **kwargs
        )


class AuthenticationError(ThalassaError):
    """The token endpoint rejected the credential exchange."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = "", **kwargs):
        self.status_code = status_code
        self.body = body
        context = kwargs.pop("context", ErrorContext())
        if status_code is not None:
            context.metadata["status_code"] = status_code

        super().__init__(
            code=ErrorCode.TOKEN_EXCHANGE_FAILED,
            message=message,
            source=ErrorSource.AUTHENTICATION,
            context=context,
            **kwargs
        )


class TransportError(ThalassaError):
    """Network failure while talking to the API."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            code=ErrorCode.NETWORK_ERROR,
            message=message,
            source=ErrorSource.NETWORK,
            **kwargs
        )


class RequestTimeoutError(ThalassaError, TimeoutError):
    """The caller's deadline expired somewhere in the request pipeline."""

    def __init__(self, message: str = "request deadline exceeded", **kwargs):
        kwargs.setdefault("source", ErrorSource.NETWORK)
        super().__init__(
            code=ErrorCode.TIMEOUT,
            message=message,
            **kwargs
        )


class CircuitOpenError(ThalassaError):
    """The circuit breaker rejected the call without attempting it."""

    def __init__(self, circuit_name: str, message: Optional[str] = None, **kwargs):
        self.circuit_name = circuit_name
        kwargs.setdefault("code", ErrorCode.CIRCUIT_OPEN)
        super().__init__(
            message=message or f"circuit breaker '{circuit_name}' is open",
            source=ErrorSource.CIRCUIT_BREAKER,
            **kwargs
        )


class TooManyRequestsError(CircuitOpenError):
    """The half-open circuit breaker has no trial slots left."""

    def __init__(self, circuit_name: str, **kwargs):
        super().__init__(
            circuit_name,
            f"circuit breaker '{circuit_name}' is half-open and has no trial slots left",
            code=ErrorCode.TOO_MANY_REQUESTS,
            **kwargs
        )


class MiddlewareError(ThalassaError):
    """A request middleware aborted the request."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            code=ErrorCode.MIDDLEWARE_REJECTED,
            message=message,
            source=ErrorSource.MIDDLEWARE,
            **kwargs
        )


class DecodeError(ThalassaError):
    """A successful response body could not be decoded into the requested result."""

    def __init__(self, message: str, body: str = "", **kwargs):
        self.body = body
        super().__init__(
            code=ErrorCode.DECODE_ERROR,
            message=message,
            source=ErrorSource.SERVER,
            **kwargs
        )


class APIError(ThalassaError):
    """Non-2xx response returned by the API."""

    def __init__(self, status_code: int, body: str = "", message: Optional[str] = None, **kwargs):
        self.status_code = status_code
        self.body = body
        kwargs.setdefault("code", ErrorCode.API_ERROR)
        context = kwargs.pop("context", ErrorContext())
        context.metadata["status_code"] = status_code

        super().__init__(
            message=message or f"request failed with status {status_code}: {body}",
            source=ErrorSource.SERVER,
            context=context,
            **kwargs
        )

    def is_retryable(self) -> bool:
        return self.status_code in (429, 502, 503, 504)


class NotFoundError(APIError):
    """The requested resource does not exist (HTTP 404)."""

    def __init__(self, body: str = "", message: Optional[str] = None, **kwargs):
        super().__init__(
            404,
            body,
            message or "not found",
            code=ErrorCode.NOT_FOUND,
            **kwargs
        )


def is_not_found(err: Optional[BaseException]) -> bool:
    """Report whether ``err`` or any error in its cause chain is a not-found error."""
    seen = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, NotFoundError):
            return True
        seen.add(id(err))
        err = err.__cause__
    return False


def extract_error_message(body: str) -> Optional[str]:
    """Pull a human readable message out of a JSON error body, if there is one."""
    if not body:
        return None
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    for key in ("message", "error_description", "error", "detail"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


__all__ = [
    "ErrorCode",
    "ErrorSource",
    "ErrorContext",
    "ThalassaError",
    "ConfigurationError",
    "UnsupportedHTTPMethodError",
    "AuthenticationError",
    "TransportError",
    "RequestTimeoutError",
    "CircuitOpenError",
    "TooManyRequestsError",
    "MiddlewareError",
    "DecodeError",
    "APIError",
    "NotFoundError",
    "is_not_found",
    "extract_error_message",
]
