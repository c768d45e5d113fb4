from __future__ import annotations

import httpx
import pytest

from dnsinspector.core.session_cache import SessionCache
from dnsinspector.modules import inspector as inspector_module
from dnsinspector.modules.inspector import Inspector, InspectorConfig, inspect
from dnsinspector.modules.models import RecordType, Severity, Status
from dnsinspector.modules.security import CheckId
from tests.conftest import FakeResolver, StubProvider

pytestmark = pytest.mark.anyio


@pytest.fixture
def zone(resolver: FakeResolver) -> FakeResolver:
    resolver.add("example.com", "A", "93.184.215.14")
    resolver.add("example.com", "NS", "ns-1.awsdns-01.com.", "ns-2.awsdns-02.net.")
    resolver.add("example.com", "MX", "10 mail.example.com.")
    resolver.add("example.com", "TXT", '"v=spf1 include:_spf.example.com -all"')
    resolver.add("example.com", "CAA", '0 issue "letsencrypt.org"')
    resolver.add("_dmarc.example.com", "TXT", '"v=DMARC1; p=reject"')
    resolver.add("google._domainkey.example.com", "TXT", '"v=DKIM1; k=rsa; p=MIGf"')
    resolver.authenticated_hosts.add("dns.google")
    return resolver


@pytest.fixture
async def inspector(client: httpx.AsyncClient):
    async with Inspector(client=client) as session:
        yield session


async def test_inspect_collects_records_and_findings(
    inspector: Inspector, zone: FakeResolver
) -> None:
    result = await inspector.inspect("example.com", "https://example.com/")
    findings = {f.check_id: f for f in result.findings}

    assert result.ok
    assert not result.from_cache
    assert result.records[RecordType.A][0].sources == ["Google", "Cloudflare"]
    assert result.records[RecordType.AAAA] == []
    assert len(result.findings) == len(CheckId)
    assert findings[CheckId.SPF].status is Status.SUCCESS
    assert findings[CheckId.DMARC].status is Status.SUCCESS
    assert findings[CheckId.DNSSEC].status is Status.SUCCESS
    assert findings[CheckId.HTTPS].severity is Severity.NONE
    assert findings[CheckId.CERT_EXPIRY].severity is Severity.NONE
    assert result.tls is not None and result.tls.secure
    assert result.email is not None
    assert result.email.dmarc == ["v=DMARC1; p=reject"]
    assert list(result.email.dkim) == ["google"]
    assert result.cloud_provider is not None
    assert result.cloud_provider.provider == "Amazon Web Services"


async def test_second_inspection_is_served_from_cache(
    inspector: Inspector, zone: FakeResolver
) -> None:
    first = await inspector.inspect("example.com", "https://example.com/")
    calls = len(zone.calls)

    second = await inspector.inspect("Example.COM", "https://example.com/")

    assert len(zone.calls) == calls
    assert second.from_cache
    assert second.records.datas(RecordType.A) == first.records.datas(RecordType.A)


async def test_cached_results_are_not_shared(
    inspector: Inspector, zone: FakeResolver
) -> None:
    first = await inspector.inspect("example.com", "https://example.com/")
    first.records.records[RecordType.A].clear()
    first.findings.clear()

    second = await inspector.inspect("example.com", "https://example.com/")

    assert second.records.datas(RecordType.A) == ["93.184.215.14"]
    assert len(second.findings) == len(CheckId)


async def test_reset_session_forces_refetch(
    inspector: Inspector, zone: FakeResolver
) -> None:
    await inspector.inspect("example.com", "https://example.com/")
    calls = len(zone.calls)

    inspector.reset_session()
    result = await inspector.inspect("example.com", "https://example.com/")

    assert len(inspector.cache) > 0
    assert len(zone.calls) > calls
    assert not result.from_cache


async def test_invalid_domain_makes_no_network_calls(
    inspector: Inspector, resolver: FakeResolver
) -> None:
    result = await inspector.inspect("not a domain", "http://whatever")

    assert not result.ok
    assert "Invalid domain" in (result.error or "")
    assert result.findings == []
    assert resolver.calls == []


async def test_raw_ip_host_is_flagged_without_resolving(
    inspector: Inspector, resolver: FakeResolver
) -> None:
    result = await inspector.inspect("192.168.10.4", "http://192.168.10.4/admin")

    assert not result.ok
    assert resolver.calls == []
    assert [f.check_id for f in result.findings] == [CheckId.SUSPICIOUS_DOMAIN]
    assert result.findings[0].severity is Severity.CRITICAL
    assert "Raw IP address" in result.findings[0].message


async def test_all_resolvers_down_is_not_cached(
    inspector: Inspector, zone: FakeResolver
) -> None:
    zone.fail("dns.google")
    zone.fail("cloudflare-dns.com")

    result = await inspector.inspect("example.com", "https://example.com/")
    findings = {f.check_id: f for f in result.findings}

    assert result.ok
    assert all(records == [] for records in result.records.values())
    assert not result.records.any_succeeded
    assert "cannot verify" in findings[CheckId.SPF].message
    assert findings[CheckId.DMARC].status is not Status.SUCCESS
    assert inspector.cache.keys() == ["tls:https://example.com/"]


async def test_http_url_gets_insecure_tls(inspector: Inspector, zone: FakeResolver) -> None:
    result = await inspector.inspect("example.com", "http://example.com/")
    findings = {f.check_id: f for f in result.findings}

    assert result.tls is not None and not result.tls.secure
    assert findings[CheckId.HTTPS].severity is Severity.HIGH
    assert findings[CheckId.CERT_EXPIRY].severity is Severity.UNKNOWN


async def test_domain_can_be_given_as_url(inspector: Inspector, zone: FakeResolver) -> None:
    result = await inspector.inspect("https://Example.com:443/login", "https://example.com/login")

    assert result.domain == "example.com"
    assert result.records.datas(RecordType.A) == ["93.184.215.14"]


async def test_injected_cache_and_providers() -> None:
    cache = SessionCache()
    provider = StubProvider("Google", {("example.com", RecordType.A): ["192.0.2.1"]})
    config = InspectorConfig(record_types=(RecordType.A,), dkim_selectors=())

    async with Inspector(config=config, cache=cache, providers=[provider]) as session:
        result = await session.inspect("example.com", "https://example.com")
        info = cache.session_info()

    assert result.records.datas(RecordType.A) == ["192.0.2.1"]
    assert "dns:example.com" in info.keys
    assert len(cache) == 0


async def test_module_level_inspect_uses_a_throwaway_session(
    monkeypatch: pytest.MonkeyPatch, zone: FakeResolver
) -> None:
    transport = httpx.MockTransport(zone.handler)
    monkeypatch.setattr(
        inspector_module,
        "create_httpx_client",
        lambda options: httpx.AsyncClient(transport=transport),
    )

    result = await inspect("example.com", "https://example.com")

    assert result.records.datas(RecordType.MX) == ["10 mail.example.com"]
