"""
Resource client base and the top-level Thalassa Cloud facade.

Resource modules (IaaS, Kubernetes, IAM, ...) subclass ``ResourceClient``.
All of them hold a reference to one shared ``Client`` and never own
transport state of their own.
"""

import logging
from typing import Any, Mapping, Optional, Type, TypeVar, Union

from .client import Client, new_client
from .options import Option
from .request import Request, ResultSink
from .response import Response
from .types import HTTPMethod

logger = logging.getLogger(__name__)

R = TypeVar('R', bound='ResourceClient')


class ResourceClient:
    """Base class for clients of a single API surface."""

    def __init__(self, client: Client, *options: Option):
        if options:
            client.with_options(*options)
        self.client = client

    def r(self) -> Request:
        return self.client.r()

    async def do(self, request: Request, method: Union[HTTPMethod, str], path: str,
                 timeout: Optional[float] = None) -> Response:
        return await self.client.do(request, method, path, timeout=timeout)

    def check(self, response: Response) -> None:
        self.client.check(response)

    async def request(
        self,
        method: Union[HTTPMethod, str],
        path: str,
        *,
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        result: Optional[ResultSink] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Build, send and check a request in one step.

        Returns the decoded result when ``result`` is given, otherwise the
        ``Response``. Raises ``NotFoundError`` / ``APIError`` for non-2xx.
        """
        req = self.r()
        if params:
            req.set_query_params(params)
        if body is not None:
            req.set_body(body)
        if result is not None:
            req.set_result(result)

        response = await self.do(req, method, path, timeout=timeout)
        self.check(response)
        if result is not None:
            return response.result
        return response


class ThalassaClient:
    """
    Entry point for the Thalassa Cloud API.

    Wraps one core ``Client`` and hands out resource clients that share it.
    """

    def __init__(self, client: Client):
        self._client = client

    @classmethod
    def new(cls, *options: Option, **kwargs) -> 'ThalassaClient':
        """Apply all options, configure authentication and return the facade."""
        return cls(new_client(*options, **kwargs))

    def set_organisation(self, organisation: str) -> None:
        self._client.set_organisation(organisation)

    def set_project(self, project: str) -> None:
        self._client.set_project(project)

    def get_client(self) -> Client:
        return self._client

    def resource(self, cls: Type[R], *options: Option) -> R:
        """Build a resource client of type ``cls`` on the shared core client."""
        return cls(self._client, *options)

    async def close(self) -> None:
        await self._client.close()

    async def __aenter__(self) -> 'ThalassaClient':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
