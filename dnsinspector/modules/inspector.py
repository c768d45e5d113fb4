from __future__ import annotations

import asyncio
import dataclasses as dc
from typing import Self

import httpx
from loguru import logger

from dnsinspector.core.httpx import ClientOptions, create_httpx_client
from dnsinspector.core.session_cache import MISSING, SessionCache
from dnsinspector.modules.cloud import guess_cloud_provider
from dnsinspector.modules.dns_search.core import RecordAggregator
from dnsinspector.modules.dns_search.providers import (
    ProviderClient,
    ProviderEndpoints,
    create_providers,
)
from dnsinspector.modules.domain_utils import (
    InvalidDomainError,
    hostname_from_input,
    require_domain,
)
from dnsinspector.modules.email import DEFAULT_DKIM_SELECTORS, EmailRecordLookup
from dnsinspector.modules.models import (
    ALL_RECORD_TYPES,
    AggregationResult,
    CloudProviderGuess,
    EmailSecurityRecords,
    InspectionResult,
    RecordType,
    SecurityFinding,
    TlsSummary,
)
from dnsinspector.modules.security.checks import (
    SecurityEvaluator,
    check_suspicious_domain,
)
from dnsinspector.modules.tls import synthesize_tls_summary


@dc.dataclass(slots=True)
class CacheTTLs:
    '''
    Seconds each class of data stays in the session cache.
    '''
    dns: float = 5 * 60
    tls: float = 5 * 60
    cloud: float = 10 * 60
    security: float = 5 * 60
    email: float = 5 * 60


@dc.dataclass(slots=True)
class InspectorConfig:
    client: ClientOptions = dc.field(default_factory=ClientOptions)
    endpoints: ProviderEndpoints = dc.field(default_factory=ProviderEndpoints)
    ttls: CacheTTLs = dc.field(default_factory=CacheTTLs)
    record_types: tuple[RecordType, ...] = ALL_RECORD_TYPES
    global_timeout: float = 10.0
    resolve_nameservers: bool = True
    dkim_selectors: tuple[str, ...] = DEFAULT_DKIM_SELECTORS
    tls_placeholder_validity_days: int = 365


class Inspector:
    '''
    The caller-facing entry point: give it the domain and URL of the
    active tab and get back merged records plus security findings.

    One Inspector is one browsing session. Its `SessionCache` makes
    repeated inspections of the same domain cheap until entries expire
    or `reset_session` is called.

    Parameters
    ----------
    config : InspectorConfig | None
    cache : SessionCache | None
        _Injected session cache, a fresh one is created when None_
    client : httpx.AsyncClient | None
        _Shared client; the Inspector only closes clients it created_
    providers : list[ProviderClient] | None
        _Overrides the providers built from `config.endpoints`_
    '''

    def __init__(
        self,
        *,
        config: InspectorConfig | None = None,
        cache: SessionCache | None = None,
        client: httpx.AsyncClient | None = None,
        providers: list[ProviderClient] | None = None,
    ) -> None:
        self.config = config or InspectorConfig()
        self.cache = cache if cache is not None else SessionCache()
        self._owns_client = client is None and providers is None
        self.client = client
        if providers is None:
            if self.client is None:
                self.client = create_httpx_client(options=self.config.client)
            providers = create_providers(self.client, self.config.endpoints)

        self.aggregator = RecordAggregator(
            providers,
            global_timeout=self.config.global_timeout,
            resolve_nameservers=self.config.resolve_nameservers,
        )
        self.email_lookup = EmailRecordLookup(
            self.aggregator,
            dkim_selectors=self.config.dkim_selectors,
        )
        self.evaluator = SecurityEvaluator()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        '''
        Ends the session: drops cached state and closes an owned client.
        '''
        await self.cache.aclose()
        if self._owns_client and self.client is not None:
            await self.client.aclose()

    def reset_session(self) -> None:
        '''
        Forgets every cached record, summary and finding.
        '''
        self.cache.clear()
        logger.info('Session cache cleared')

    async def _records(self, domain: str) -> tuple[AggregationResult, bool]:
        key = f'dns:{domain}'
        cached = self.cache.get(key)
        if cached is not MISSING:
            return cached, True

        records = await self.aggregator.aggregate(domain, self.config.record_types)
        if records.any_succeeded:
            self.cache.set(key, records, self.config.ttls.dns)
        return records, False

    async def _email(self, domain: str) -> tuple[EmailSecurityRecords, bool]:
        key = f'email:{domain}'
        cached = self.cache.get(key)
        if cached is not MISSING:
            return cached, True

        email = await self.email_lookup(domain)
        if email.dmarc_lookup is not None and email.dmarc_lookup.any_succeeded:
            self.cache.set(key, email, self.config.ttls.email)
        return email, False

    def _tls(self, url: str) -> tuple[TlsSummary, bool]:
        key = f'tls:{url}'
        cached = self.cache.get(key)
        if cached is not MISSING:
            return cached, True

        tls = synthesize_tls_summary(
            url,
            validity_days=self.config.tls_placeholder_validity_days,
        )
        self.cache.set(key, tls, self.config.ttls.tls)
        return tls, False

    async def _cloud(
        self,
        domain: str,
        records: AggregationResult,
    ) -> tuple[CloudProviderGuess, bool]:
        key = f'cloud:{domain}'
        cached = self.cache.get(key)
        if cached is not MISSING:
            return cached, True

        guess = guess_cloud_provider(records)
        addresses = records.datas(RecordType.A) if RecordType.A in records else []
        if guess.confidence == 0 and addresses:
            try:
                ptr = await self.aggregator.reverse_lookup(addresses[0])
            except InvalidDomainError as exc:
                logger.debug(f'Skipping reverse lookup: {exc}')
            else:
                guess = guess_cloud_provider(records, [r.data for r in ptr])

        if records.any_succeeded:
            self.cache.set(key, guess, self.config.ttls.cloud)
        return guess, False

    def _findings(
        self,
        domain: str,
        url: str,
        records: AggregationResult,
        tls: TlsSummary,
        email: EmailSecurityRecords,
    ) -> tuple[list[SecurityFinding], bool]:
        key = f'security:{domain}|{url}'
        cached = self.cache.get(key)
        if cached is not MISSING:
            return cached, True

        findings = self.evaluator.evaluate(
            records,
            tls,
            domain,
            url,
            dmarc_records=email.dmarc_lookup,
        )
        if records.any_succeeded:
            self.cache.set(key, findings, self.config.ttls.security)
        return findings, False

    async def inspect(self, domain: str, url: str) -> InspectionResult:
        '''
        Inspects a domain, never raising for bad input or resolver
        failures; those are reported in the returned structure.

        A host that is not a domain name (a bare IP address, for one) is
        not resolved. Its result carries `error` and, when the host matches
        a phishing pattern, that single suspicious-domain finding.

        Parameters
        ----------
        domain : str
            _Hostname of the active tab (a URL is accepted too)_
        url : str
            _Full URL of the active tab_

        Returns
        -------
        InspectionResult
        '''
        try:
            domain = require_domain(domain)
        except InvalidDomainError as exc:
            logger.warning(str(exc))
            host = hostname_from_input(domain) if isinstance(domain, str) else ''
            suspicious = check_suspicious_domain(host)
            return InspectionResult(
                domain=host or str(domain),
                url=url,
                records=AggregationResult(domain=host or str(domain)),
                findings=[suspicious] if suspicious.is_issue else [],
                error=str(exc),
            )

        url = url or ''
        logger.info(f'Inspecting {domain}')
        (records, dns_hit), (email, email_hit) = await asyncio.gather(
            self._records(domain),
            self._email(domain),
        )
        tls, tls_hit = self._tls(url)
        cloud, cloud_hit = await self._cloud(domain, records)
        findings, findings_hit = self._findings(domain, url, records, tls, email)

        from_cache = all((dns_hit, email_hit, tls_hit, cloud_hit, findings_hit))
        if from_cache:
            logger.info(f'Served {domain} from the session cache')

        return InspectionResult(
            domain=domain,
            url=url,
            records=records,
            findings=findings,
            tls=tls,
            cloud_provider=cloud,
            email=email,
            from_cache=from_cache,
        )


async def inspect(
    domain: str,
    url: str,
    *,
    config: InspectorConfig | None = None,
) -> InspectionResult:
    '''
    One-shot inspection with a throwaway session.
    '''
    async with Inspector(config=config) as inspector:
        return await inspector.inspect(domain, url)
