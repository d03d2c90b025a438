"""
Core Thalassa Cloud client: request building, dispatch and response checking.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Optional, Union

import aiohttp

from .options import Option
from .request import Request
from .response import Response, error_for_response, retry_after_seconds
from .types import (
    ClientConfig, HTTPMethod, ORGANISATION_HEADER, PROJECT_HEADER,
)
from ..auth import CredentialProvider, create_provider
from ..circuit import CircuitBreaker, CircuitBreakerOptions
from ..errors import (
    ConfigurationError, ErrorContext, MiddlewareError, RequestTimeoutError,
    ThalassaError, TransportError,
)
from ..ratelimit import RateLimiter, create_rate_limiter
from ..resilience import Retry

logger = logging.getLogger(__name__)


def _copy_config(config: ClientConfig) -> ClientConfig:
    return dataclasses.replace(
        config,
        retry=dataclasses.replace(config.retry),
        auth=dataclasses.replace(config.auth, scopes=list(config.auth.scopes)),
        middleware=list(config.middleware),
        headers=dict(config.headers),
    )


def _is_backend_failure(response: Response) -> bool:
    return response.status_code >= 500


def _is_not_backend_error(exc: BaseException) -> bool:
    return not isinstance(exc, TransportError)


class Client:
    """
    Transport client shared by every resource module.

    One instance owns the HTTP session, the credential provider, the rate
    limiter and the circuit breaker; all of them are shared by concurrent
    callers. Use ``r()`` to build a request, ``do()`` to send it and
    ``check()`` to turn the status into an error.
    """

    def __init__(self, config: ClientConfig, session: Optional[aiohttp.ClientSession] = None):
        config.validate()
        self._config = config
        self._provider: CredentialProvider = create_provider(config.auth)
        self._limiter: RateLimiter = create_rate_limiter(config.rate_limit, config.rate_burst)
        self._breaker: Optional[CircuitBreaker] = self._build_breaker(config.circuit_breaker)
        self._session = session
        self._owns_session = session is None

        logger.info(
            f"Thalassa client initialized for {config.base_url} "
            f"with auth type: {self._provider.auth_type.value}"
        )

    @staticmethod
    def _build_breaker(options: Optional[CircuitBreakerOptions]) -> Optional[CircuitBreaker]:
        if options is None:
            return None
        options = dataclasses.replace(
            options,
            is_failure=options.is_failure or _is_backend_failure,
            exclude=options.exclude or _is_not_backend_error,
        )
        return CircuitBreaker(options)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def organisation_identity(self) -> Optional[str]:
        return self._config.organisation_identity

    @property
    def project_identity(self) -> Optional[str]:
        return self._config.project_identity

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def circuit_breaker(self) -> Optional[CircuitBreaker]:
        return self._breaker

    @property
    def credential_provider(self) -> CredentialProvider:
        return self._provider

    def set_organisation(self, organisation: Optional[str]) -> None:
        self._config.organisation_identity = organisation or None

    def set_project(self, project: Optional[str]) -> None:
        self._config.project_identity = project or None

    def get_auth_token(self) -> str:
        """Return the active bearer token, or an empty string."""
        return self._provider.token()

    def with_options(self, *options: Option) -> 'Client':
        """
        Apply further options to this client.

        Rate limiter and circuit breaker are rebuilt only when their settings
        change. The authentication variant cannot be changed.
        """
        if not options:
            return self

        updated = _copy_config(self._config)
        for option in options:
            option(updated)
        updated.validate()

        if updated.auth != self._config.auth:
            raise ConfigurationError("authentication cannot be changed after the client is built")

        if (updated.rate_limit, updated.rate_burst) != (self._config.rate_limit, self._config.rate_burst):
            self._limiter = create_rate_limiter(updated.rate_limit, updated.rate_burst)
        if updated.circuit_breaker is not self._config.circuit_breaker:
            self._breaker = self._build_breaker(updated.circuit_breaker)

        self._config = updated
        return self

    def r(self) -> Request:
        """Return a new request scoped to the client's configuration."""
        headers = {
            "User-Agent": self._config.user_agent,
            "Accept": "application/json",
        }
        headers.update(self._config.headers)
        if self._config.organisation_identity:
            headers[ORGANISATION_HEADER] = self._config.organisation_identity
        if self._config.project_identity:
            headers[PROJECT_HEADER] = self._config.project_identity
        return Request(headers=headers, insecure=self._config.insecure, timeout=self._config_timeout())

    def _config_timeout(self) -> Optional[float]:
        if self._config.timeout is None:
            return None
        return self._config.timeout.total_seconds()

    def check(self, response: Response) -> None:
        """Raise ``NotFoundError`` for 404 and ``APIError`` for any other non-2xx status."""
        error = error_for_response(response)
        if error is not None:
            raise error

    async def do(
        self,
        request: Request,
        method: Union[HTTPMethod, str],
        path: str,
        timeout: Optional[float] = None,
    ) -> Response:
        """
        Execute ``request`` against ``path``.

        Pipeline: rate limit, authentication, circuit breaker, retries,
        middleware, send. ``timeout`` bounds the whole pipeline in seconds.

        Raises:
            UnsupportedHTTPMethodError: ``method`` is not a supported HTTP method
            RequestTimeoutError: ``timeout`` expired at any stage
            CircuitOpenError: The circuit breaker rejected the call
            TransportError: The request could not be delivered
            asyncio.CancelledError: The calling task was cancelled
        """
        request.method = HTTPMethod.parse(method).value
        request.path = path
        request.url = self._build_url(path)
        request.attempt = 0
        if request.timeout is None:
            request.timeout = self._config_timeout()

        if timeout is None:
            return await self._dispatch(request, None)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            return await asyncio.wait_for(self._dispatch(request, deadline), timeout)
        except RequestTimeoutError:
            raise
        except asyncio.TimeoutError as e:
            logger.warning(f"{request.method} {path} exceeded its deadline of {timeout:.3f}s")
            raise RequestTimeoutError(
                f"{request.method} {path}: deadline of {timeout:.3f}s exceeded",
                context=ErrorContext(method=request.method, path=path, attempt=request.attempt),
                cause=e
            )

    async def dial_websocket(self, url: str, timeout: Optional[float] = None) -> aiohttp.ClientWebSocketResponse:
        """
        Open an authenticated websocket on the shared session.

        ``url`` is either absolute (``ws://``, ``wss://``, ``http(s)://``) or a
        path below the base URL. The handshake goes through the rate limiter
        and carries the same headers and credentials as ``r()``. ``timeout``
        bounds the handshake and defaults to the client timeout.

        Raises:
            RequestTimeoutError: The handshake did not complete in time
            TransportError: The connection or the upgrade failed
        """
        request = self.r()
        request.method = HTTPMethod.GET.value
        request.path = url
        request.url = self._build_url(url)
        if timeout is None:
            timeout = request.timeout

        if timeout is None:
            return await self._open_websocket(request, None)

        deadline = asyncio.get_running_loop().time() + timeout
        try:
            return await asyncio.wait_for(self._open_websocket(request, deadline), timeout)
        except RequestTimeoutError:
            raise
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"websocket {request.url}: handshake exceeded {timeout:.3f}s",
                context=ErrorContext(method=request.method, path=url),
                cause=e
            )

    async def _open_websocket(self, request: Request, deadline: Optional[float]) -> aiohttp.ClientWebSocketResponse:
        remaining = None
        if deadline is not None:
            remaining = max(0.0, deadline - asyncio.get_running_loop().time())
        await self._limiter.acquire(timeout=remaining)

        session = await self._get_session()
        await self._provider.apply(request, session)

        kwargs = {}
        if self._config.insecure:
            kwargs['ssl'] = False

        logger.debug(f"Dialing websocket {request.url}")
        try:
            ws = await session.ws_connect(request.url, headers=dict(request.headers), **kwargs)
        except aiohttp.ClientError as e:
            raise TransportError(
                f"websocket {request.url}: {e}",
                context=ErrorContext(method=request.method, path=request.path),
                cause=e
            )
        logger.info(f"Websocket connected to {request.url}")
        return ws

    def _build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://", "ws://", "wss://")):
            return path
        return f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _dispatch(self, request: Request, deadline: Optional[float]) -> Response:
        remaining = None
        if deadline is not None:
            remaining = max(0.0, deadline - asyncio.get_running_loop().time())
        await self._limiter.acquire(timeout=remaining)

        session = await self._get_session()
        await self._provider.apply(request, session)

        if self._breaker is not None:
            return await self._breaker.call(self._execute_with_retry, request, session)
        return await self._execute_with_retry(request, session)

    async def _execute_with_retry(self, request: Request, session: aiohttp.ClientSession) -> Response:
        retry_config = self._config.retry
        retry = Retry(
            retry_config,
            should_retry_result=lambda response: response.status_code in retry_config.retryable_status_codes,
            should_retry_exception=lambda exc: isinstance(exc, TransportError),
            delay_hint=retry_after_seconds,
        )
        return await retry.execute(self._attempt, request, session)

    async def _attempt(self, request: Request, session: aiohttp.ClientSession) -> Response:
        request.attempt += 1
        for middleware in self._config.middleware:
            try:
                await middleware.process_request(self, request)
            except ThalassaError:
                raise
            except Exception as e:
                raise MiddlewareError(
                    f"middleware {middleware!r} rejected {request.method} {request.path}: {e}",
                    context=ErrorContext(method=request.method, path=request.path, attempt=request.attempt),
                    cause=e
                )
        return await self._send(request, session)

    async def _send(self, request: Request, session: aiohttp.ClientSession) -> Response:
        data, content_type = request.encode_body()
        headers = dict(request.headers)
        if content_type and not request.get_header("Content-Type"):
            headers["Content-Type"] = content_type

        kwargs = {}
        if request.timeout is not None:
            kwargs['timeout'] = aiohttp.ClientTimeout(total=request.timeout)
        if self._config.insecure:
            kwargs['ssl'] = False

        context = ErrorContext(method=request.method, path=request.path, attempt=request.attempt)
        logger.debug(f"Sending {request.method} {request.url} (attempt {request.attempt})")

        started = time.monotonic()
        try:
            async with session.request(
                request.method,
                request.url,
                params=request.query_params or None,
                headers=headers,
                data=data,
                **kwargs
            ) as resp:
                body = await resp.read()
                response = Response(
                    status_code=resp.status,
                    body=body,
                    headers=resp.headers.copy(),
                    request=request,
                    url=str(resp.url),
                    elapsed=time.monotonic() - started,
                )
        except aiohttp.ClientError as e:
            raise TransportError(f"{request.method} {request.url}: {e}", context=context, cause=e)
        except asyncio.TimeoutError as e:
            raise TransportError(f"{request.method} {request.url}: request timed out", context=context, cause=e)

        logger.debug(f"{request.method} {request.url} returned {response.status_code} in {response.elapsed:.3f}s")

        if response.is_success:
            response.result = request.decode(body)
        return response

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if the client created it."""
        await self._provider.close()
        await self._limiter.close()
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> 'Client':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def new_client(*options: Option, session: Optional[aiohttp.ClientSession] = None) -> Client:
    """Apply all options, configure authentication and return the client."""
    config = ClientConfig()
    for option in options:
        option(config)
    return Client(config, session=session)
