from __future__ import annotations

from collections.abc import Mapping
from typing import Final, NamedTuple

from dnsinspector.modules.models import (
    AggregatedRecord,
    CloudProviderGuess,
    RecordType,
)


class CloudHint(NamedTuple):
    provider: str
    needle: str
    weight: float


# substring hints, matched against lowercased NS/CNAME/PTR data
NAMESERVER_HINTS: Final[tuple[CloudHint, ...]] = (
    CloudHint('Amazon Web Services', 'awsdns', 0.6),
    CloudHint('Microsoft Azure', 'azure-dns', 0.6),
    CloudHint('Google Cloud', 'googledomains.com', 0.5),
    CloudHint('Google Cloud', 'ns-cloud', 0.6),
    CloudHint('Cloudflare', 'ns.cloudflare.com', 0.6),
    CloudHint('DigitalOcean', 'digitalocean.com', 0.6),
    CloudHint('Akamai', 'akam.net', 0.5),
    CloudHint('Vercel', 'vercel-dns.com', 0.6),
    CloudHint('Netlify', 'nsone.net', 0.3),
)

CNAME_HINTS: Final[tuple[CloudHint, ...]] = (
    CloudHint('Amazon Web Services', '.cloudfront.net', 0.8),
    CloudHint('Amazon Web Services', '.amazonaws.com', 0.8),
    CloudHint('Amazon Web Services', '.elasticbeanstalk.com', 0.8),
    CloudHint('Microsoft Azure', '.azurewebsites.net', 0.8),
    CloudHint('Microsoft Azure', '.azureedge.net', 0.8),
    CloudHint('Microsoft Azure', '.cloudapp.azure.com', 0.8),
    CloudHint('Microsoft Azure', '.trafficmanager.net', 0.7),
    CloudHint('Microsoft Azure', '.blob.core.windows.net', 0.8),
    CloudHint('Google Cloud', '.googlehosted.com', 0.8),
    CloudHint('Google Cloud', '.appspot.com', 0.8),
    CloudHint('Cloudflare', '.cdn.cloudflare.net', 0.8),
    CloudHint('Cloudflare', '.pages.dev', 0.8),
    CloudHint('Fastly', '.fastly.net', 0.8),
    CloudHint('Akamai', '.akamaiedge.net', 0.8),
    CloudHint('Akamai', '.edgekey.net', 0.8),
    CloudHint('Heroku', '.herokuapp.com', 0.8),
    CloudHint('Heroku', '.herokudns.com', 0.8),
    CloudHint('GitHub Pages', '.github.io', 0.8),
    CloudHint('Netlify', '.netlify.app', 0.8),
    CloudHint('Vercel', '.vercel.app', 0.8),
    CloudHint('Vercel', '.vercel-dns.com', 0.8),
)

PTR_HINTS: Final[tuple[CloudHint, ...]] = (
    CloudHint('Amazon Web Services', 'amazonaws.com', 0.7),
    CloudHint('Google Cloud', 'googleusercontent.com', 0.7),
    CloudHint('Google Cloud', '1e100.net', 0.5),
    CloudHint('Microsoft Azure', 'cloudapp.azure.com', 0.7),
    CloudHint('Microsoft Azure', 'msedge.net', 0.5),
    CloudHint('Akamai', 'akamaitechnologies.com', 0.7),
    CloudHint('Fastly', 'fastly', 0.5),
    CloudHint('DigitalOcean', 'digitalocean', 0.6),
)

# coarse first-octet-pair prefixes of well known anycast ranges
ADDRESS_PREFIX_HINTS: Final[tuple[CloudHint, ...]] = (
    CloudHint('Cloudflare', '104.16.', 0.4),
    CloudHint('Cloudflare', '104.17.', 0.4),
    CloudHint('Cloudflare', '172.67.', 0.4),
    CloudHint('Fastly', '151.101.', 0.4),
    CloudHint('Vercel', '76.76.21.', 0.4),
    CloudHint('GitHub Pages', '185.199.108.', 0.4),
)


def _score(
    scores: dict[str, float],
    evidence: list[str],
    values: list[str],
    hints: tuple[CloudHint, ...],
    label: str,
    *,
    prefix: bool = False,
) -> None:
    for value in values:
        lowered = value.lower().rstrip('.')
        for hint in hints:
            matched = lowered.startswith(hint.needle) if prefix else hint.needle in lowered
            if matched:
                scores[hint.provider] = scores.get(hint.provider, 0.0) + hint.weight
                evidence.append(f'{label} {value} matches {hint.needle}')


def guess_cloud_provider(
    records: Mapping[RecordType, list[AggregatedRecord]],
    ptr_names: list[str] | None = None,
) -> CloudProviderGuess:
    '''
    A crude hosting guess from nameserver, CNAME, PTR and address
    patterns. It is a substring heuristic, not IP range attribution.

    Parameters
    ----------
    records : Mapping[RecordType, list[AggregatedRecord]]
    ptr_names : list[str] | None
        _Reverse names of the first A record, if looked up_

    Returns
    -------
    CloudProviderGuess
    '''
    scores: dict[str, float] = {}
    evidence: list[str] = []

    def datas(rtype: RecordType) -> list[str]:
        return [record.data for record in records.get(rtype, [])]

    _score(scores, evidence, datas(RecordType.NS), NAMESERVER_HINTS, 'NS')
    _score(scores, evidence, datas(RecordType.CNAME), CNAME_HINTS, 'CNAME')
    _score(scores, evidence, ptr_names or [], PTR_HINTS, 'PTR')
    _score(
        scores, evidence, datas(RecordType.A), ADDRESS_PREFIX_HINTS, 'A', prefix=True
    )

    if not scores:
        return CloudProviderGuess()

    provider = max(scores, key=lambda name: scores[name])
    return CloudProviderGuess(
        provider=provider,
        confidence=round(min(scores[provider], 1.0), 2),
        evidence=evidence,
    )
