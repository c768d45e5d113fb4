from __future__ import annotations

import httpx
import pytest

from dnsinspector.modules.dns_search.providers import (
    CloudflareDohProvider,
    GoogleDohProvider,
    ProviderClient,
    ProviderEndpoints,
    Quad9DohProvider,
    create_providers,
)
from dnsinspector.modules.models import RecordType
from tests.conftest import FakeResolver

pytestmark = pytest.mark.anyio


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_google_answers_are_normalized(
    client: httpx.AsyncClient, resolver: FakeResolver
) -> None:
    resolver.add("example.com", "MX", "10 mail.example.com.", ttl=3600)
    provider = GoogleDohProvider(client)

    result = await provider.fetch("Example.COM.", RecordType.MX)

    assert result.ok
    assert result.provider == "Google"
    assert [(a.name, a.type, a.data, a.ttl) for a in result.answers] == [
        ("example.com", RecordType.MX, "10 mail.example.com.", 3600)
    ]
    assert resolver.calls == [("dns.google", "example.com", "MX")]


async def test_no_answer_section_is_an_empty_success(
    client: httpx.AsyncClient,
) -> None:
    result = await GoogleDohProvider(client).fetch("example.com", RecordType.CAA)

    assert result.ok
    assert result.answers == ()


async def test_cloudflare_sends_dns_json_accept_header() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"Status": 0})

    async with _client(handler) as client:
        await CloudflareDohProvider(client).fetch("example.com", RecordType.A)

    assert seen[0].url.host == "cloudflare-dns.com"
    assert seen[0].headers["accept"] == "application/dns-json"
    assert seen[0].url.params["type"] == "A"


async def test_http_error_status_becomes_failure(
    client: httpx.AsyncClient, resolver: FakeResolver
) -> None:
    resolver.fail("dns.google", status=502)

    result = await GoogleDohProvider(client).fetch("example.com", RecordType.A)

    assert not result.ok
    assert result.error == "HTTP 502"
    assert result.answers == ()


async def test_malformed_json_becomes_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>not json</html>")

    async with _client(handler) as client:
        result = await GoogleDohProvider(client).fetch("example.com", RecordType.A)

    assert not result.ok
    assert result.error.startswith("Malformed response")


async def test_non_object_json_becomes_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "an", "object"])

    async with _client(handler) as client:
        result = await GoogleDohProvider(client).fetch("example.com", RecordType.A)

    assert not result.ok


@pytest.mark.parametrize(
    "answer",
    [
        5,
        "93.184.215.14",
        [{"name": "example.com.", "type": None, "TTL": 60, "data": "93.184.215.14"}],
        [{"name": "example.com.", "type": [1], "TTL": 60, "data": "93.184.215.14"}],
        [{"name": "example.com.", "type": 1, "TTL": "soon", "data": "93.184.215.14"}],
        [{"name": "example.com.", "type": 1, "TTL": None, "data": "93.184.215.14"}],
    ],
    ids=["int", "string", "null-type", "list-type", "text-ttl", "null-ttl"],
)
async def test_malformed_answer_section_becomes_failure(answer: object) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Status": 0, "Answer": answer})

    async with _client(handler) as client:
        result = await GoogleDohProvider(client).fetch("example.com", RecordType.A)

    assert not result.ok
    assert result.answers == ()
    assert result.error.startswith("Malformed response")


async def test_transport_error_becomes_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        result = await GoogleDohProvider(client).fetch("example.com", RecordType.A)

    assert not result.ok
    assert "Transport error" in result.error


async def test_timeout_becomes_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    async with _client(handler) as client:
        result = await GoogleDohProvider(client).fetch("example.com", RecordType.A)

    assert result.error == "Request timed out"


@pytest.mark.parametrize(
    "domain", ["", "localhost", "exa mple.com", "example.c0m", "-bad..com"]
)
async def test_malformed_domain_makes_no_request(
    client: httpx.AsyncClient, resolver: FakeResolver, domain: str
) -> None:
    result = await GoogleDohProvider(client).fetch(domain, RecordType.A)

    assert not result.ok
    assert result.error.startswith("Invalid domain")
    assert resolver.calls == []


async def test_service_labels_are_valid_query_names(
    client: httpx.AsyncClient, resolver: FakeResolver
) -> None:
    resolver.add("_dmarc.example.com", "TXT", '"v=DMARC1; p=reject"')

    result = await GoogleDohProvider(client).fetch("_dmarc.example.com", RecordType.TXT)

    assert [a.data for a in result.answers] == ['"v=DMARC1; p=reject"']


async def test_answers_of_other_types_are_dropped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "Status": 0,
                "Answer": [
                    {"name": "www.example.com.", "type": 5, "TTL": 60, "data": "example.com."},
                    {"name": "example.com.", "type": 1, "TTL": 60, "data": "93.184.215.14"},
                ],
            },
        )

    async with _client(handler) as client:
        result = await GoogleDohProvider(client).fetch("www.example.com", RecordType.A)

    assert [a.data for a in result.answers] == ["93.184.215.14"]


async def test_ad_flag_is_reported(
    client: httpx.AsyncClient, resolver: FakeResolver
) -> None:
    resolver.authenticated_hosts.add("dns.google")

    google = await GoogleDohProvider(client).fetch("example.com", RecordType.NS)
    cloudflare = await CloudflareDohProvider(client).fetch("example.com", RecordType.NS)

    assert google.authenticated is True
    assert cloudflare.authenticated is False


async def test_endpoint_override_is_used(
    client: httpx.AsyncClient, resolver: FakeResolver
) -> None:
    provider = GoogleDohProvider(client, "https://doh.internal.test/resolve")
    await provider.fetch("example.com", RecordType.A)

    assert resolver.calls == [("doh.internal.test", "example.com", "A")]


def test_create_providers_keeps_order_and_overrides() -> None:
    client = httpx.AsyncClient()
    endpoints = ProviderEndpoints(
        quad9="https://quad9.example/dns-query",
        enabled=("cloudflare", "quad9", "google"),
    )

    providers = create_providers(client, endpoints)

    assert [p.name for p in providers] == ["Cloudflare", "Quad9", "Google"]
    assert isinstance(providers[1], Quad9DohProvider)
    assert providers[1].endpoint == "https://quad9.example/dns-query"
    assert all(isinstance(p, ProviderClient) for p in providers)


def test_unknown_provider_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown provider"):
        create_providers(httpx.AsyncClient(), ProviderEndpoints(enabled=("opendns",)))
