"""
Response wrapper and status checking.
"""

import json
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..errors import APIError, NotFoundError, extract_error_message


class Response:
    """Completed HTTP exchange returned by ``Client.do``."""

    def __init__(
        self,
        status_code: int,
        body: bytes = b"",
        headers: Optional[Mapping[str, str]] = None,
        request: Any = None,
        url: str = "",
        elapsed: float = 0.0,
    ):
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}
        self.request = request
        self.url = url
        self.elapsed = elapsed
        self.result: Any = None

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def json(self) -> Any:
        return json.loads(self.text)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    def __repr__(self) -> str:
        return f"Response(status_code={self.status_code}, url={self.url!r})"


def error_for_response(response: Response) -> Optional[APIError]:
    """
    Translate an HTTP status into an error.

    Returns ``None`` for 2xx, ``NotFoundError`` for 404 and ``APIError``
    carrying the status and body for every other status.
    """
    if response.is_success:
        return None

    body = response.text
    message = extract_error_message(body)
    if response.status_code == 404:
        return NotFoundError(body, message)
    if message:
        message = f"request failed with status {response.status_code}: {message}"
    return APIError(response.status_code, body, message)


def retry_after_seconds(response: Response) -> Optional[float]:
    """Parse a ``Retry-After`` header given in seconds or as an HTTP date."""
    value = None
    for key, header in response.headers.items():
        if key.lower() == "retry-after":
            value = header
            break
    if not value:
        return None

    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())
