"""Shared fixtures: an in-process fake of the Leonardo REST API."""

import json
from typing import Any, Optional, Union
from unittest.mock import AsyncMock

import httpx
import pytest

from leonardo_tool.transport import LEONARDO_API_BASE

Reply = Union[dict, httpx.Response, Exception]


def status_payload(status: str, urls: Optional[list] = None) -> dict:
    """Build a GET /generations/{id} response body."""
    generation: dict[str, Any] = {"status": status}
    if urls is not None:
        generation["generated_images"] = [
            {"id": f"img-{i}", "url": url} for i, url in enumerate(urls)
        ]
    return {"generations_by_pk": generation}


class FakeLeonardoAPI:
    """
    Answers POST /generations and GET /generations/{id}.

    Status replies are consumed in order; the last one repeats forever.
    """

    def __init__(
        self,
        statuses: Optional[list[Reply]] = None,
        submit: Optional[Reply] = None,
        generation_id: str = "gen-123",
    ):
        self.statuses = list(statuses or [status_payload("PENDING")])
        self.submit = (
            submit
            if submit is not None
            else {"sdGenerationJob": {"generationId": generation_id}}
        )
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            return self._reply(self.submit)
        reply = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return self._reply(reply)

    @staticmethod
    def _reply(reply: Reply) -> httpx.Response:
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=LEONARDO_API_BASE, transport=self.transport)

    @property
    def submissions(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def status_queries(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def submitted_body(self) -> dict:
        return json.loads(self.submissions[0].content)


@pytest.fixture
def no_sleep():
    """Sleep replacement that returns immediately and records its calls."""
    return AsyncMock(return_value=None)


@pytest.fixture(autouse=True)
def clear_api_key_env(monkeypatch):
    """Keep a developer's real key and config path out of the tests."""
    monkeypatch.delenv("LEONARDO_API_KEY", raising=False)
    monkeypatch.delenv("LEONARDO_TOOL_CONFIG", raising=False)
