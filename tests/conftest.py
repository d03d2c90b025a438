"""
Shared fixtures: a scripted aiohttp backend and client factories.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from thalassa.client import new_client, with_base_url


@dataclass
class Reply:
    """A canned response served by the backend."""
    status: int = 200
    json: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    delay: float = 0.0


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: Any
    query: Dict[str, str]
    body: bytes


class Backend:
    """
    Local HTTP server that records every request.

    Replies are scripted per path and consumed in order; the last reply for a
    path is repeated. Unknown paths answer 404 with a JSON message.
    """

    def __init__(self):
        self.base_url = ""
        self.requests: List[RecordedRequest] = []
        self._replies: Dict[str, List[Reply]] = {}

    def set(self, path: str, *replies: Reply) -> None:
        self._replies[path] = list(replies)

    def hits(self, path: Optional[str] = None) -> List[RecordedRequest]:
        return [r for r in self.requests if path is None or r.path == path]

    async def handle(self, request: web.Request) -> web.StreamResponse:
        body = await request.read()
        self.requests.append(RecordedRequest(
            method=request.method,
            path=request.path,
            headers=request.headers.copy(),
            query=dict(request.query),
            body=body,
        ))

        replies = self._replies.get(request.path)
        if not replies:
            return web.json_response({"message": "resource not found"}, status=404)
        reply = replies.pop(0) if len(replies) > 1 else replies[0]

        if reply.delay:
            await asyncio.sleep(reply.delay)
        if reply.json is not None:
            return web.json_response(reply.json, status=reply.status, headers=reply.headers)
        return web.Response(status=reply.status, headers=reply.headers)


@pytest_asyncio.fixture
async def backend():
    """Start a recording backend for the duration of a test"""
    backend = Backend()
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", backend.handle)

    server = TestServer(app)
    await server.start_server()
    backend.base_url = str(server.make_url("")).rstrip("/")
    yield backend
    await server.close()


@pytest_asyncio.fixture
async def make_client(backend):
    """Build clients pointed at the backend and close them afterwards"""
    clients = []

    def factory(*options):
        client = new_client(with_base_url(backend.base_url), *options)
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.close()


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
