from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import httpx
import pytest

from dnsinspector.modules.models import ProviderResult, RawAnswer, RecordType


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeResolver:
    """
    Serves canned DoH JSON bodies keyed by (host, name, type) through
    an `httpx.MockTransport`. Host "*" answers for every resolver.
    """

    def __init__(self) -> None:
        self.zones: dict[tuple[str, str, str], tuple[list[str], int]] = {}
        self.failing_hosts: dict[str, int] = {}
        self.authenticated_hosts: set[str] = set()
        self.calls: list[tuple[str, str, str]] = []

    def add(
        self,
        name: str,
        rtype: str,
        *datas: str,
        host: str = "*",
        ttl: int = 300,
    ) -> None:
        self.zones[(host, name, rtype)] = (list(datas), ttl)

    def fail(self, host: str, status: int = 503) -> None:
        self.failing_hosts[host] = status

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        name = request.url.params["name"]
        rtype = request.url.params["type"]
        self.calls.append((host, name, rtype))

        if host in self.failing_hosts:
            return httpx.Response(self.failing_hosts[host], text="unavailable")

        body: dict = {"Status": 0, "AD": host in self.authenticated_hosts}
        entry = self.zones.get((host, name, rtype)) or self.zones.get(("*", name, rtype))
        if entry:
            datas, ttl = entry
            body["Answer"] = [
                {
                    "name": f"{name}.",
                    "type": RecordType(rtype).code,
                    "TTL": ttl,
                    "data": data,
                }
                for data in datas
            ]
        return httpx.Response(200, json=body)


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
async def client(resolver: FakeResolver) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(resolver.handler)) as c:
        yield c


class StubProvider:
    """
    An in-memory ProviderClient. `answers` maps (name, type) to data
    strings; `error` makes every fetch fail; `delay` postpones the answer.
    """

    def __init__(
        self,
        name: str,
        answers: dict[tuple[str, RecordType], list[str]] | None = None,
        *,
        ttl: int = 300,
        error: str | None = None,
        delay: float = 0.0,
        authenticated: bool = False,
        raises: BaseException | None = None,
    ) -> None:
        self.name = name
        self.answers = answers or {}
        self.ttl = ttl
        self.error = error
        self.delay = delay
        self.authenticated = authenticated
        self.raises = raises
        self.calls: list[tuple[str, RecordType]] = []

    async def fetch(self, domain: str, rtype: RecordType) -> ProviderResult:
        self.calls.append((domain, rtype))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return ProviderResult.failure(self.name, rtype, self.error)
        return ProviderResult(
            provider=self.name,
            type=rtype,
            answers=tuple(
                RawAnswer(name=domain, type=rtype, data=data, ttl=self.ttl)
                for data in self.answers.get((domain, rtype), [])
            ),
            authenticated=self.authenticated,
        )
