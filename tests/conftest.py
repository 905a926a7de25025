"""Test fixtures: an in-memory ruote-kit stand-in behind httpx.MockTransport."""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

import httpx
import pytest

from ruote_client import Agent

BASE_URL = "http://ruote.test/_ruote/"


class FakeServer:
    """Routes (method, path) pairs to canned JSON payloads and records requests."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, payload: Any = None, status: int = 200) -> None:
        self.routes[(method, "/_ruote" + path)] = (status, payload)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        status, payload = route
        if callable(payload):
            payload = payload(request)
        if isinstance(payload, httpx.Response):
            return payload
        return httpx.Response(
            status,
            content=json.dumps(payload).encode(),
            headers={"Content-Type": "application/json"},
        )

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def body_of(request: httpx.Request) -> Any:
    return json.loads(request.content)


def process_json(wfid: str, **extra: Any) -> dict[str, Any]:
    return {"wfid": wfid, "definition_name": "review", **extra}


def workitem_json(wfid: str, expid: str, fields: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "fei": {"wfid": wfid, "expid": expid, "engine_id": "engine"},
        "fields": fields if fields is not None else {},
        "participant_name": "alice",
    }


def expression_json(wfid: str, expid: str, name: str = "participant") -> dict[str, Any]:
    return {
        "fei": {"wfid": wfid, "expid": expid, "engine_id": "engine"},
        "parent_id": {"wfid": wfid, "expid": "0", "engine_id": "engine"},
        "name": name,
        "original_tree": [name, {"ref": "alice"}, []],
    }


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def http_client(server: FakeServer) -> Iterator[httpx.Client]:
    client = httpx.Client(transport=httpx.MockTransport(server.handle))
    yield client
    client.close()


@pytest.fixture
def agent(http_client: httpx.Client) -> Agent:
    return Agent(BASE_URL, client=http_client)
