"""Test doubles for the document store and for peer services."""
import json
from typing import Dict, List, Optional, Tuple, Union

import httpx

from votingapi.store import MemoryStore


class RecordingStore(MemoryStore):
    """MemoryStore that remembers every write it is asked to make."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: List[Tuple[str, str]] = []

    async def set(self, key: str, value: str) -> None:
        self.writes.append(("set", key))
        await super().set(key, value)

    async def set_if_absent(self, key: str, value: str) -> bool:
        self.writes.append(("set_if_absent", key))
        return await super().set_if_absent(key, value)

    async def delete(self, key: str) -> int:
        self.writes.append(("delete", key))
        return await super().delete(key)


Reply = Union[int, Tuple[int, object], Exception]


class Downstream:
    """Scripted peer service. Unknown routes answer 404."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Reply] = {}
        self.calls: List[Tuple[str, str]] = []
        self.bodies: List[Optional[dict]] = []

    def on(self, method: str, path: str, reply: Reply = 200) -> "Downstream":
        self.routes[(method, path)] = reply
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path))
        self.bodies.append(json.loads(request.content) if request.content else None)

        reply = self.routes.get((request.method, request.url.path), 404)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, tuple):
            status, body = reply
            return httpx.Response(status, json=body)
        return httpx.Response(reply)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), timeout=1.5)


class Cluster(httpx.AsyncBaseTransport):
    """Routes each request to the in-process app registered for its host."""

    def __init__(self) -> None:
        self.apps: Dict[str, object] = {}

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        transport = httpx.ASGITransport(app=self.apps[request.url.host])
        return await transport.handle_async_request(request)
