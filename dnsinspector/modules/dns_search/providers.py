from __future__ import annotations

import abc
import dataclasses as dc
from typing import ClassVar, Final, Protocol, runtime_checkable

import httpx
from loguru import logger

from dnsinspector.core.httpx import DOH_JSON_MEDIA_TYPE, HttpxExceptions
from dnsinspector.modules.domain_utils import is_valid_query_name, normalize_hostname
from dnsinspector.modules.models import ProviderResult, RawAnswer, RecordType


@runtime_checkable
class ProviderClient(Protocol):
    '''
    Anything that can answer one (name, record type) question.
    '''
    name: str

    async def fetch(self, domain: str, rtype: RecordType) -> ProviderResult: ...


@dc.dataclass(slots=True)
class ProviderEndpoints:
    '''
    Resolver endpoint overrides and the ordered set of enabled resolvers.
    '''
    google: str | None = None
    cloudflare: str | None = None
    quad9: str | None = None
    enabled: tuple[str, ...] = ('google', 'cloudflare')


class DohJsonProvider(abc.ABC):
    '''
    A DNS-over-HTTPS resolver speaking the JSON API
    (`GET <endpoint>?name=<name>&type=<TYPE>`).

    Each `fetch` issues exactly one request and never raises for
    transport or payload problems; those become a failed
    `ProviderResult`.
    '''
    NAME: ClassVar[str]
    ENDPOINT: ClassVar[str]
    ACCEPT: ClassVar[str | None] = None

    def __init__(self, client: httpx.AsyncClient, endpoint: str | None = None) -> None:
        self.client: httpx.AsyncClient = client
        self.endpoint: str = endpoint or self.ENDPOINT
        self.name: str = self.NAME

    def __repr__(self) -> str:
        return f'{type(self).__name__}(endpoint={self.endpoint!r})'

    def build_params(self, domain: str, rtype: RecordType) -> dict[str, str]:
        return {'name': domain, 'type': rtype.value}

    def build_headers(self) -> dict[str, str]:
        if self.ACCEPT is None:
            return {}
        return {'Accept': self.ACCEPT}

    async def query(self, domain: str, rtype: RecordType) -> dict:
        '''
        Sends the DoH request and returns the decoded JSON body.

        Raises
        ------
        httpx.HTTPStatusError
        ValueError
            _The body is not JSON or not a JSON object_
        '''
        response = await self.client.get(
            self.endpoint,
            params=self.build_params(domain, rtype),
            headers=self.build_headers(),
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f'Unexpected response body type: {type(body).__name__}')
        return body

    def parse_answers(self, body: dict, rtype: RecordType) -> tuple[RawAnswer, ...]:
        '''
        Normalizes the `Answer` section, keeping only answers of the
        queried type (CNAME chain links in an A answer are dropped).

        Raises
        ------
        ValueError
            _`Answer` is not a list_
        TypeError
            _An answer carries a `type` or `TTL` that is not a number_
        '''
        section = body.get('Answer')
        if section is None:
            return ()
        if not isinstance(section, list):
            raise ValueError(f'Answer section is a {type(section).__name__}, not a list')

        answers: list[RawAnswer] = []
        for entry in section:
            if not isinstance(entry, dict):
                continue
            answer_type = RecordType.from_code(entry.get('type', rtype.code))
            if answer_type is not rtype:
                continue
            data = entry.get('data')
            if not isinstance(data, str) or not data.strip():
                continue
            answers.append(
                RawAnswer(
                    name=normalize_hostname(str(entry.get('name', ''))),
                    type=rtype,
                    data=data.strip(),
                    ttl=max(0, int(entry.get('TTL', 0))),
                )
            )
        return tuple(answers)

    async def fetch(self, domain: str, rtype: RecordType) -> ProviderResult:
        domain = normalize_hostname(domain)
        if not is_valid_query_name(domain):
            return ProviderResult.failure(self.name, rtype, f'Invalid domain: {domain!r}')

        try:
            body = await self.query(domain, rtype)
            answers = self.parse_answers(body, rtype)
        except httpx.HTTPStatusError as exc:
            logger.warning(
                f'{self.name} returned HTTP {exc.response.status_code} for {rtype} {domain}'
            )
            return ProviderResult.failure(
                self.name, rtype, f'HTTP {exc.response.status_code}'
            )
        except httpx.TimeoutException as exc:
            logger.warning(f'{self.name} timed out for {rtype} {domain}: {exc!r}')
            return ProviderResult.failure(self.name, rtype, 'Request timed out')
        except HttpxExceptions as exc:
            logger.warning(f'{self.name} transport error for {rtype} {domain}: {exc!r}')
            return ProviderResult.failure(self.name, rtype, f'Transport error: {exc}')
        except (ValueError, TypeError) as exc:
            logger.warning(f'{self.name} sent a malformed body for {rtype} {domain}: {exc}')
            return ProviderResult.failure(self.name, rtype, f'Malformed response: {exc}')

        logger.debug(f'{self.name}: {len(answers)} {rtype} answer(s) for {domain}')
        return ProviderResult(
            provider=self.name,
            type=rtype,
            answers=answers,
            authenticated=body.get('AD') is True,
        )


class GoogleDohProvider(DohJsonProvider):
    NAME = 'Google'
    ENDPOINT = 'https://dns.google/resolve'


class CloudflareDohProvider(DohJsonProvider):
    NAME = 'Cloudflare'
    ENDPOINT = 'https://cloudflare-dns.com/dns-query'
    ACCEPT = DOH_JSON_MEDIA_TYPE


class Quad9DohProvider(DohJsonProvider):
    NAME = 'Quad9'
    ENDPOINT = 'https://dns.quad9.net:5053/dns-query'
    ACCEPT = DOH_JSON_MEDIA_TYPE


PROVIDER_VARIANTS: Final[dict[str, type[DohJsonProvider]]] = {
    'google': GoogleDohProvider,
    'cloudflare': CloudflareDohProvider,
    'quad9': Quad9DohProvider,
}


def create_providers(
    client: httpx.AsyncClient,
    endpoints: ProviderEndpoints | None = None,
) -> list[DohJsonProvider]:
    '''
    Builds the enabled providers, in order, sharing one client.

    Raises
    ------
    ValueError
        _An unknown provider key is enabled_
    '''
    endpoints = endpoints or ProviderEndpoints()
    providers: list[DohJsonProvider] = []
    for key in endpoints.enabled:
        variant = PROVIDER_VARIANTS.get(key.lower())
        if variant is None:
            raise ValueError(
                f'Unknown provider `{key}`, supported: {", ".join(PROVIDER_VARIANTS)}'
            )
        providers.append(variant(client, getattr(endpoints, key.lower())))
    return providers
