"""
Request builder handed out by ``Client.r()``.
"""

import dataclasses
import json
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from ..errors import DecodeError

ResultSink = Union[type, Callable[[Any], Any]]


def _to_jsonable(value: Any) -> Any:
    if hasattr(value, 'to_dict') and callable(value.to_dict):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def decode_result(sink: ResultSink, payload: Any) -> Any:
    """Decode parsed JSON into the caller's result type."""
    if payload is None:
        return None
    from_dict = getattr(sink, 'from_dict', None)
    if callable(from_dict):
        if isinstance(payload, list):
            return [from_dict(item) for item in payload]
        return from_dict(payload)
    return sink(payload)


class Request:
    """
    A single logical API request.

    Built fresh for every operation; carries query parameters, headers, the
    body and the result sink the response is decoded into. Setters return the
    request so calls can be chained.
    """

    def __init__(self, headers: Optional[Mapping[str, str]] = None, insecure: bool = False,
                 timeout: Optional[float] = None):
        self.headers: Dict[str, str] = {}
        for key, value in (headers or {}).items():
            self.set_header(key, value)
        self.query_params: Dict[str, str] = {}
        self.body: Any = None
        self.result: Optional[ResultSink] = None
        self.insecure = insecure
        # Per-attempt transport timeout in seconds, also used for the token exchange.
        self.timeout = timeout
        self.method: Optional[str] = None
        self.path: Optional[str] = None
        self.url: Optional[str] = None
        self.attempt = 0

    def _header_key(self, name: str) -> str:
        for existing in self.headers:
            if existing.lower() == name.lower():
                return existing
        return name

    def set_header(self, name: str, value: str) -> 'Request':
        key = self._header_key(name)
        if key != name:
            del self.headers[key]
        self.headers[name] = value
        return self

    def set_headers(self, headers: Mapping[str, str]) -> 'Request':
        for name, value in headers.items():
            self.set_header(name, value)
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(self._header_key(name), default)

    def remove_header(self, name: str) -> 'Request':
        self.headers.pop(self._header_key(name), None)
        return self

    def set_auth_token(self, token: str) -> 'Request':
        """Attach a bearer token; used with custom authentication."""
        return self.set_header("Authorization", f"Bearer {token}")

    def set_query_param(self, name: str, value: Any) -> 'Request':
        if isinstance(value, bool):
            value = "true" if value else "false"
        self.query_params[name] = str(value)
        return self

    def set_query_params(self, params: Mapping[str, Any]) -> 'Request':
        for name, value in params.items():
            self.set_query_param(name, value)
        return self

    def set_body(self, body: Any) -> 'Request':
        self.body = body
        return self

    def set_result(self, sink: ResultSink) -> 'Request':
        """Decode a successful JSON response with ``sink`` (a type with ``from_dict`` or a callable)."""
        self.result = sink
        return self

    def encode_body(self) -> Tuple[Optional[Union[bytes, str]], Optional[str]]:
        """Return the wire body and its content type."""
        if self.body is None:
            return None, None
        if isinstance(self.body, (bytes, bytearray)):
            return bytes(self.body), None
        if isinstance(self.body, str):
            return self.body, None
        return json.dumps(self.body, default=_to_jsonable).encode('utf-8'), "application/json"

    def decode(self, body: bytes) -> Any:
        """Decode a response body into the result sink."""
        if self.result is None or not body:
            return None
        text = body.decode('utf-8', errors='replace')
        try:
            payload = json.loads(text)
        except ValueError as e:
            raise DecodeError(f"response body is not valid JSON: {e}", body=text, cause=e)
        try:
            return decode_result(self.result, payload)
        except (TypeError, ValueError, KeyError) as e:
            raise DecodeError(f"could not decode response into {getattr(self.result, '__name__', self.result)}: {e}",
                              body=text, cause=e)

    def __repr__(self) -> str:
        return f"Request(method={self.method!r}, path={self.path!r}, attempt={self.attempt})"
