from __future__ import annotations

import dataclasses as dc
import io
from collections.abc import Callable, Iterable, Mapping

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dnsinspector.modules.domain_utils import QUOTE, strip_txt_quotes
from dnsinspector.modules.models import (
    AddressStatus,
    AggregatedRecord,
    RecordType,
    SecurityFinding,
    Severity,
)


def _buffer_console() -> Console:
    # renders into memory only; callers decide where the text goes
    return Console(record=True, width=120, file=io.StringIO())


class RecordFormatter:
    '''
    Turns aggregated records into the one-line strings shown in the
    DNS tab, one layout per record type.
    '''

    def __init__(self, *, show_ttl: bool = True, show_sources: bool = False) -> None:
        self.show_ttl = show_ttl
        self.show_sources = show_sources
        self._layouts: dict[RecordType, Callable[[AggregatedRecord], str]] = {
            RecordType.MX: self._mx,
            RecordType.TXT: self._txt,
            RecordType.CNAME: self._cname,
            RecordType.NS: self._ns,
            RecordType.SOA: self._soa,
            RecordType.CAA: self._caa,
            RecordType.PTR: self._ptr,
        }

    def _mx(self, record: AggregatedRecord) -> str:
        priority, _, host = record.data.partition(' ')
        if not host:
            return record.data
        return f'Priority: {priority}, Host: {host.rstrip(".")}'

    def _txt(self, record: AggregatedRecord) -> str:
        text = strip_txt_quotes(record.data)
        if text.lower().startswith('v=spf1'):
            return f'SPF: {text}'
        return text

    def _cname(self, record: AggregatedRecord) -> str:
        return f'Points to: {record.data}'

    def _ns(self, record: AggregatedRecord) -> str:
        if record.address_status is AddressStatus.RESOLVED:
            return f'{record.data} (IP: {", ".join(record.addresses)})'
        if record.address_status is AddressStatus.NOT_FOUND:
            return f'{record.data} (IP: none)'
        if record.address_status is AddressStatus.FAILED:
            return f'{record.data} (IP: lookup failed)'
        return record.data

    def _soa(self, record: AggregatedRecord) -> str:
        parts = record.data.split()
        if len(parts) < 7:
            return record.data
        mname, rname, serial, refresh, retry, expire, minimum = parts[:7]
        return (
            f'Primary NS: {mname.rstrip(".")}, Admin: {rname.rstrip(".")}, '
            f'Serial: {serial}, Refresh: {refresh}s, '
            f'Retry: {retry}s, Expire: {expire}s, '
            f'Minimum: {minimum}s'
        )

    def _caa(self, record: AggregatedRecord) -> str:
        parts = record.data.split(' ', 2)
        if len(parts) < 3:
            return record.data
        flags, tag, value = parts
        return f'Flags: {flags}, Tag: {tag.strip(QUOTE)}, Value: {value.strip(QUOTE)}'

    def _ptr(self, record: AggregatedRecord) -> str:
        return f'Hostname: {record.data}'

    def format(self, record: AggregatedRecord) -> str:
        layout = self._layouts.get(record.type)
        text = layout(record) if layout else record.data
        if self.show_ttl:
            text += f' (TTL: {record.ttl}s)'
        if self.show_sources and record.sources:
            text += f' [{", ".join(record.sources)}]'
        return text

    def format_all(
        self,
        records: Mapping[RecordType, list[AggregatedRecord]],
    ) -> dict[RecordType, list[str]]:
        return {
            rtype: [self.format(record) for record in items]
            for rtype, items in records.items()
        }


@dc.dataclass(slots=True)
class FindingBuckets:
    critical: list[SecurityFinding] = dc.field(default_factory=list)
    high: list[SecurityFinding] = dc.field(default_factory=list)
    medium: list[SecurityFinding] = dc.field(default_factory=list)
    informational: list[SecurityFinding] = dc.field(default_factory=list)
    passed: list[SecurityFinding] = dc.field(default_factory=list)

    @property
    def issue_count(self) -> int:
        return len(self.critical) + len(self.high) + len(self.medium)

    @property
    def summary(self) -> str:
        total = self.issue_count
        if total == 0:
            return 'No security issues found'
        return f'{total} security {"issue" if total == 1 else "issues"} found'


def bucket_findings(findings: Iterable[SecurityFinding]) -> FindingBuckets:
    buckets = FindingBuckets()
    for finding in findings:
        match finding.severity:
            case Severity.CRITICAL:
                buckets.critical.append(finding)
            case Severity.HIGH:
                buckets.high.append(finding)
            case Severity.MEDIUM:
                buckets.medium.append(finding)
            case Severity.LOW | Severity.UNKNOWN:
                buckets.informational.append(finding)
            case _:
                buckets.passed.append(finding)
    return buckets


def render_records(
    records: Mapping[RecordType, list[AggregatedRecord]],
    formatter: RecordFormatter | None = None,
) -> str:
    formatter = formatter or RecordFormatter()
    console = _buffer_console()
    for rtype, lines in formatter.format_all(records).items():
        console.print(f'[bold underline]{rtype} Records:[/]')
        if not lines:
            console.print('  No records found')
        for line in lines:
            console.print(f'  -> [green]{escape(line)}[/]')
    return console.export_text()


def render_findings(findings: Iterable[SecurityFinding]) -> str:
    buckets = bucket_findings(findings)
    console = _buffer_console()
    style = 'red' if buckets.critical else 'yellow' if buckets.high else 'cyan'
    if not buckets.issue_count:
        style = 'green'
    console.print(f'[bold {style}]{buckets.summary}[/]')

    table = Table(title='Security Check Results')
    table.add_column('Category', style='magenta', no_wrap=True)
    table.add_column('Check', style='cyan', no_wrap=True)
    table.add_column('Message', style='white')
    table.add_column('Recommendation', style='green')

    categories = (
        ('Critical Issues', buckets.critical),
        ('High Priority Issues', buckets.high),
        ('Medium Priority Issues', buckets.medium),
        ('Informational', buckets.informational),
        ('Passed Checks', buckets.passed),
    )
    for title, items in categories:
        for finding in items:
            table.add_row(
                title,
                finding.check_id,
                escape(finding.message),
                escape(finding.recommendation or ''),
            )

    console.print(table)
    return console.export_text()
