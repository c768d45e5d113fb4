from __future__ import annotations

import dataclasses as dc
from collections.abc import Iterator, Mapping
from enum import StrEnum
from typing import Final


class RecordType(StrEnum):
    A = 'A'
    AAAA = 'AAAA'
    CNAME = 'CNAME'
    MX = 'MX'
    TXT = 'TXT'
    NS = 'NS'
    SOA = 'SOA'
    CAA = 'CAA'
    PTR = 'PTR'

    @property
    def code(self) -> int:
        return _RTYPE_CODES[self]

    @classmethod
    def from_code(cls, code: int | str) -> RecordType | None:
        '''
        Maps the numeric `type` field of a DoH JSON answer back to a
        RecordType, returns None for types outside the supported set.
        '''
        if isinstance(code, str) and not code.isdigit():
            try:
                return cls(code.upper())
            except ValueError:
                return None
        return _CODE_RTYPES.get(int(code))


_RTYPE_CODES: Final[dict[RecordType, int]] = {
    RecordType.A: 1,
    RecordType.NS: 2,
    RecordType.CNAME: 5,
    RecordType.SOA: 6,
    RecordType.PTR: 12,
    RecordType.MX: 15,
    RecordType.TXT: 16,
    RecordType.AAAA: 28,
    RecordType.CAA: 257,
}
_CODE_RTYPES: Final[dict[int, RecordType]] = {
    code: rtype for rtype, code in _RTYPE_CODES.items()
}

ALL_RECORD_TYPES: Final[tuple[RecordType, ...]] = (
    RecordType.NS,
    RecordType.A,
    RecordType.AAAA,
    RecordType.CNAME,
    RecordType.MX,
    RecordType.TXT,
    RecordType.CAA,
    RecordType.SOA,
    RecordType.PTR,
)


class Status(StrEnum):
    SUCCESS = 'success'
    INFO = 'info'
    WARNING = 'warning'
    DANGER = 'danger'
    ERROR = 'error'


class Severity(StrEnum):
    NONE = 'none'
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'
    UNKNOWN = 'unknown'

    @property
    def rank(self) -> int:
        return _SEVERITY_RANKS[self]


_SEVERITY_RANKS: Final[dict[Severity, int]] = {
    Severity.NONE: 0,
    Severity.LOW: 1,
    Severity.UNKNOWN: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class TypeStatus(StrEnum):
    '''
    Outcome of one record type across every provider.
    '''
    OK = 'ok'
    EMPTY = 'empty'
    FAILED = 'failed'


class AddressStatus(StrEnum):
    RESOLVED = 'resolved'
    NOT_FOUND = 'not_found'
    FAILED = 'failed'


@dc.dataclass(slots=True, frozen=True)
class RawAnswer:
    '''
    One answer exactly as a resolver returned it.
    '''
    name: str
    type: RecordType
    data: str
    ttl: int = 0


@dc.dataclass(slots=True, frozen=True)
class ProviderResult:
    provider: str
    type: RecordType
    answers: tuple[RawAnswer, ...] = ()
    authenticated: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, provider: str, rtype: RecordType, error: str) -> ProviderResult:
        return cls(provider=provider, type=rtype, error=error)


@dc.dataclass(slots=True)
class AggregatedRecord:
    '''
    A record deduplicated across providers by (type, canonical data).
    '''
    type: RecordType
    data: str
    ttl: int
    name: str = ''
    sources: list[str] = dc.field(default_factory=list)
    addresses: list[str] = dc.field(default_factory=list)
    address_status: AddressStatus | None = None

    @property
    def key(self) -> tuple[RecordType, str]:
        return (self.type, self.data)

    def add_source(self, provider: str) -> None:
        if provider not in self.sources:
            self.sources.append(provider)


@dc.dataclass(slots=True)
class AggregationResult(Mapping[RecordType, list[AggregatedRecord]]):
    '''
    Per-type aggregated records for one name. Behaves as a read-only
    mapping of RecordType -> records; the extra attributes keep what
    the mapping alone cannot say (which types failed outright and
    whether any resolver reported DNSSEC-authenticated data).
    '''
    domain: str
    records: dict[RecordType, list[AggregatedRecord]] = dc.field(default_factory=dict)
    statuses: dict[RecordType, TypeStatus] = dc.field(default_factory=dict)
    authenticated: bool = False
    errors: dict[str, str] = dc.field(default_factory=dict)

    def __getitem__(self, rtype: RecordType) -> list[AggregatedRecord]:
        return self.records[rtype]

    def __iter__(self) -> Iterator[RecordType]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def status(self, rtype: RecordType) -> TypeStatus | None:
        return self.statuses.get(rtype)

    def all_failed(self, rtype: RecordType) -> bool:
        return self.statuses.get(rtype) is TypeStatus.FAILED

    @property
    def any_succeeded(self) -> bool:
        return any(s is not TypeStatus.FAILED for s in self.statuses.values())

    def datas(self, rtype: RecordType) -> list[str]:
        return [record.data for record in self.records.get(rtype, [])]


@dc.dataclass(slots=True)
class SecurityFinding:
    check_id: str
    status: Status
    severity: Severity
    message: str
    recommendation: str | None = None

    @property
    def is_issue(self) -> bool:
        return self.severity.rank >= Severity.MEDIUM.rank


@dc.dataclass(slots=True)
class TlsSummary:
    '''
    Placeholder TLS metadata derived from the URL scheme only,
    no certificate is fetched or parsed.
    '''
    secure: bool
    protocol: str = 'None'
    issuer: str = 'None'
    valid_from: str | None = None
    valid_until: str | None = None


@dc.dataclass(slots=True)
class CloudProviderGuess:
    provider: str = 'Unknown'
    confidence: float = 0.0
    evidence: list[str] = dc.field(default_factory=list)


@dc.dataclass(slots=True)
class EmailSecurityRecords:
    domain: str
    dmarc: list[str] = dc.field(default_factory=list)
    dkim: dict[str, list[str]] = dc.field(default_factory=dict)
    bimi: list[str] = dc.field(default_factory=list)
    dmarc_lookup: AggregationResult | None = None


@dc.dataclass(slots=True)
class InspectionResult:
    domain: str
    url: str
    records: AggregationResult
    findings: list[SecurityFinding] = dc.field(default_factory=list)
    tls: TlsSummary | None = None
    cloud_provider: CloudProviderGuess | None = None
    email: EmailSecurityRecords | None = None
    from_cache: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
