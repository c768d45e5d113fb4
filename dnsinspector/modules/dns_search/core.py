from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Sequence

import httpx
from loguru import logger

from dnsinspector.modules.dns_search.providers import (
    ProviderClient,
    ProviderEndpoints,
    create_providers,
)
from dnsinspector.modules.domain_utils import (
    canonical_data,
    get_reverse_ip_name,
    is_valid_query_name,
    normalize_hostname,
)
from dnsinspector.modules.models import (
    ALL_RECORD_TYPES,
    AddressStatus,
    AggregatedRecord,
    AggregationResult,
    ProviderResult,
    RecordType,
    TypeStatus,
)


def order_rtypes(rtypes: Iterable[RecordType] | None) -> tuple[RecordType, ...]:
    '''
    Puts the requested record types in the canonical order so the
    output mapping is stable however the caller spelled the set.
    '''
    if rtypes is None:
        return ALL_RECORD_TYPES
    wanted = {RecordType(r) for r in rtypes}
    return tuple(r for r in ALL_RECORD_TYPES if r in wanted)


def merge_provider_results(results: Iterable[ProviderResult]) -> list[AggregatedRecord]:
    '''
    Folds provider results (already in provider order) into deduplicated
    records. The first provider to report a (type, canonical data) pair
    owns the record's ttl and name, later ones only add themselves to
    `sources`.

    Parameters
    ----------
    results : Iterable[ProviderResult]

    Returns
    -------
    list[AggregatedRecord]
        _In order of first appearance_
    '''
    merged: dict[tuple[RecordType, str], AggregatedRecord] = {}
    for result in results:
        if not result.ok:
            continue
        for answer in result.answers:
            data = canonical_data(answer.data)
            key = (answer.type, data)
            if (record := merged.get(key)) is None:
                merged[key] = AggregatedRecord(
                    type=answer.type,
                    data=data,
                    ttl=answer.ttl,
                    name=canonical_data(answer.name),
                    sources=[result.provider],
                )
            else:
                record.add_source(result.provider)
    return list(merged.values())


class RecordAggregator:
    '''
    Fans one question per (provider, record type) out concurrently,
    waits for all of them to settle and merges the answers.

    Parameters
    ----------
    providers : Sequence[ProviderClient]
        _Resolvers in priority order, the order decides merge precedence_
    global_timeout : float
        _Ceiling for a whole aggregation, unfinished pairs count as failed_
    resolve_nameservers : bool
        _Look up A records for NS targets_
    '''

    def __init__(
        self,
        providers: Sequence[ProviderClient],
        *,
        global_timeout: float = 10.0,
        resolve_nameservers: bool = True,
    ) -> None:
        if not providers:
            raise ValueError('At least one provider is required')
        self.providers: tuple[ProviderClient, ...] = tuple(providers)
        self.global_timeout = global_timeout
        self.resolve_nameservers = resolve_nameservers

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self.providers]

    async def _settle(
        self,
        jobs: list[tuple[ProviderClient, str, RecordType]],
        timeout: float | None,
    ) -> list[ProviderResult]:
        '''
        Runs every job and returns one ProviderResult per job, in job
        order. Jobs still running at `timeout` are cancelled and reported
        as failures, so this never raises on behalf of a provider.

        If the caller is cancelled while waiting, every job is cancelled
        and awaited before the cancellation propagates.
        '''
        if not jobs:
            return []

        tasks = [
            asyncio.create_task(provider.fetch(name, rtype))
            for provider, name, rtype in jobs
        ]
        try:
            await asyncio.wait(tasks, timeout=timeout)
        finally:
            pending = {task for task in tasks if not task.done()}
            for task in pending:
                task.cancel()
            # also retrieves exceptions of jobs that already finished
            await asyncio.gather(*tasks, return_exceptions=True)

        results: list[ProviderResult] = []
        for task, (provider, name, rtype) in zip(tasks, jobs):
            if task in pending:
                logger.warning(f'{provider.name} did not answer {rtype} {name} in time')
                results.append(ProviderResult.failure(provider.name, rtype, 'Timed out'))
            elif (exc := task.exception()) is not None:
                logger.opt(exception=exc).error(
                    f'{provider.name} raised while querying {rtype} {name}'
                )
                results.append(ProviderResult.failure(provider.name, rtype, repr(exc)))
            else:
                results.append(task.result())
        return results

    async def aggregate(
        self,
        domain: str,
        rtypes: Iterable[RecordType] | None = None,
    ) -> AggregationResult:
        '''
        Queries every provider for every record type and merges the
        answers into one deduplicated record list per type.

        Parameters
        ----------
        domain : str
        rtypes : Iterable[RecordType] | None
            _Types to query, all supported types when None_

        Returns
        -------
        AggregationResult
            _Never raises for provider failures; a type where every
            provider failed maps to an empty list with status FAILED_
        '''
        domain = normalize_hostname(domain)
        ordered = order_rtypes(rtypes)
        result = AggregationResult(domain=domain)

        if not is_valid_query_name(domain):
            logger.warning(f'Refusing to query malformed name {domain!r}')
            for rtype in ordered:
                result.records[rtype] = []
                result.statuses[rtype] = TypeStatus.FAILED
            result.errors['*'] = f'Invalid domain: {domain!r}'
            return result

        started = time.monotonic()
        jobs = [
            (provider, domain, rtype)
            for rtype in ordered
            for provider in self.providers
        ]
        settled = await self._settle(jobs, self.global_timeout)

        by_type: dict[RecordType, list[ProviderResult]] = {r: [] for r in ordered}
        for (_, _, rtype), provider_result in zip(jobs, settled):
            by_type[rtype].append(provider_result)

        for rtype, provider_results in by_type.items():
            records = merge_provider_results(provider_results)
            result.records[rtype] = records
            for provider_result in provider_results:
                if provider_result.ok:
                    result.authenticated |= provider_result.authenticated
                else:
                    result.errors[f'{provider_result.provider}:{rtype}'] = (
                        provider_result.error or 'Unknown error'
                    )

            if all(not p.ok for p in provider_results):
                result.statuses[rtype] = TypeStatus.FAILED
            elif records:
                result.statuses[rtype] = TypeStatus.OK
            else:
                result.statuses[rtype] = TypeStatus.EMPTY

        if self.resolve_nameservers and result.records.get(RecordType.NS):
            remaining = self.global_timeout - (time.monotonic() - started)
            await self._resolve_nameservers(result.records[RecordType.NS], max(remaining, 0.0))

        logger.debug(
            f'Aggregated {sum(len(v) for v in result.records.values())} record(s) '
            f'for {domain} from {len(self.providers)} provider(s)'
        )
        return result

    async def _resolve_nameservers(
        self,
        ns_records: list[AggregatedRecord],
        timeout: float,
    ) -> None:
        '''
        Attaches the A record addresses of each nameserver, asking the
        provider that first reported it. A failed lookup only marks the
        record, it never removes it.
        '''
        by_name = {provider.name: provider for provider in self.providers}
        jobs = [
            (by_name.get(record.sources[0], self.providers[0]), record.data, RecordType.A)
            for record in ns_records
        ]
        for record, lookup in zip(ns_records, await self._settle(jobs, timeout)):
            if not lookup.ok:
                record.address_status = AddressStatus.FAILED
            elif lookup.answers:
                record.addresses = [canonical_data(a.data) for a in lookup.answers]
                record.address_status = AddressStatus.RESOLVED
            else:
                record.address_status = AddressStatus.NOT_FOUND

    async def reverse_lookup(self, ip_address: str) -> list[AggregatedRecord]:
        '''
        Looks up PTR records for an IP address.

        Raises
        ------
        InvalidDomainError
            _The input is not an IP address_
        '''
        rev_name = get_reverse_ip_name(ip_address)
        result = await self.aggregate(rev_name, (RecordType.PTR,))
        return result[RecordType.PTR]


async def fetch_dns_records(
    *,
    domain_name: str,
    client: httpx.AsyncClient,
    endpoints: ProviderEndpoints | None = None,
    rtypes: Iterable[RecordType] | None = None,
    global_timeout: float = 10.0,
) -> AggregationResult:
    '''
    Fetches and merges DNS records for a domain from every enabled resolver.

    Parameters
    ----------
    domain_name : str
    client : httpx.AsyncClient
    endpoints : ProviderEndpoints | None
    rtypes : Iterable[RecordType] | None

    Returns
    -------
    AggregationResult
    '''
    aggregator = RecordAggregator(
        create_providers(client, endpoints),
        global_timeout=global_timeout,
    )
    return await aggregator.aggregate(domain_name, rtypes)
