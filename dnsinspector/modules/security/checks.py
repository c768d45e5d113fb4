from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Final

from loguru import logger

from dnsinspector.modules.domain_utils import strip_txt_quotes
from dnsinspector.modules.models import (
    AggregatedRecord,
    RecordType,
    SecurityFinding,
    Severity,
    Status,
    TlsSummary,
    TypeStatus,
)
from dnsinspector.modules.security.patterns import match_suspicious_patterns

RecordMap = Mapping[RecordType, list[AggregatedRecord]]

CERT_WARNING_WINDOW: Final = timedelta(days=30)


class CheckId(StrEnum):
    SPF = 'spf'
    DMARC = 'dmarc'
    DNSSEC = 'dnssec'
    CAA = 'caa'
    MX = 'mx'
    WILDCARD = 'wildcard'
    HTTPS = 'https'
    CERT_EXPIRY = 'cert_expiry'
    SUSPICIOUS_DOMAIN = 'suspicious_domain'


def _passed(check_id: CheckId, message: str) -> SecurityFinding:
    return SecurityFinding(
        check_id=check_id,
        status=Status.SUCCESS,
        severity=Severity.NONE,
        message=message,
    )


def _cannot_verify(check_id: CheckId, message: str) -> SecurityFinding:
    return SecurityFinding(
        check_id=check_id,
        status=Status.WARNING,
        severity=Severity.MEDIUM,
        message=message,
    )


def _records_or_gap(
    records: RecordMap | None,
    rtype: RecordType,
) -> tuple[list[AggregatedRecord] | None, str | None]:
    '''
    Returns the records of one type, or None and the reason the type
    cannot be judged (never queried, or every provider failed).
    '''
    if records is None or rtype not in records:
        return None, f'No {rtype} data was fetched'

    statuses = getattr(records, 'statuses', None) or {}
    if statuses.get(rtype) is TypeStatus.FAILED:
        return None, f'{rtype} lookup failed on every resolver'

    return list(records[rtype]), None


def _txt_values(records: Iterable[AggregatedRecord]) -> list[str]:
    return [strip_txt_quotes(record.data) for record in records]


def check_spf(records: RecordMap | None) -> SecurityFinding:
    txt, gap = _records_or_gap(records, RecordType.TXT)
    if txt is None:
        return _cannot_verify(CheckId.SPF, f'{gap}, cannot verify SPF configuration')

    if not txt:
        return _cannot_verify(
            CheckId.SPF, 'No TXT records found, cannot verify SPF configuration'
        )

    if not any('v=spf1' in value.lower() for value in _txt_values(txt)):
        return SecurityFinding(
            check_id=CheckId.SPF,
            status=Status.WARNING,
            severity=Severity.HIGH,
            message='No SPF record found. SPF helps prevent email spoofing.',
            recommendation=(
                'Add an SPF record to define which mail servers are '
                'authorized to send email from this domain.'
            ),
        )

    return _passed(CheckId.SPF, 'SPF record found')


def check_dmarc(dmarc_records: RecordMap | None) -> SecurityFinding:
    txt, gap = _records_or_gap(dmarc_records, RecordType.TXT)
    if txt is None:
        return _cannot_verify(CheckId.DMARC, f'{gap}, cannot verify DMARC configuration')

    if not txt:
        return SecurityFinding(
            check_id=CheckId.DMARC,
            status=Status.WARNING,
            severity=Severity.HIGH,
            message=(
                'No DMARC record found. DMARC helps prevent email spoofing '
                'and improves deliverability.'
            ),
            recommendation=(
                'Add a DMARC record to specify policy for handling emails '
                'that fail SPF or DKIM checks.'
            ),
        )

    if not any('v=dmarc1' in value.lower() for value in _txt_values(txt)):
        return SecurityFinding(
            check_id=CheckId.DMARC,
            status=Status.WARNING,
            severity=Severity.HIGH,
            message='No valid DMARC record found.',
            recommendation='Add a DMARC record with a v=DMARC1 tag.',
        )

    return _passed(CheckId.DMARC, 'DMARC record found')


def check_dnssec(records: RecordMap | None) -> SecurityFinding:
    '''
    Looks for the resolver-reported AD flag only. This is an indicator,
    no signature chain is validated.
    '''
    authenticated = getattr(records, 'authenticated', None)
    any_succeeded = getattr(records, 'any_succeeded', bool(records))
    if authenticated is None or not any_succeeded:
        return _cannot_verify(
            CheckId.DNSSEC, 'No resolver answered, cannot verify DNSSEC status'
        )

    if not authenticated:
        return SecurityFinding(
            check_id=CheckId.DNSSEC,
            status=Status.INFO,
            severity=Severity.MEDIUM,
            message=(
                'DNSSEC validation not detected. DNSSEC adds authentication '
                'to DNS lookups.'
            ),
            recommendation='Consider implementing DNSSEC for additional DNS security.',
        )

    return _passed(CheckId.DNSSEC, 'DNSSEC appears to be enabled')


def check_caa(records: RecordMap | None) -> SecurityFinding:
    caa, gap = _records_or_gap(records, RecordType.CAA)
    if caa is None:
        return _cannot_verify(CheckId.CAA, f'{gap}, cannot verify CAA configuration')

    if not caa:
        return SecurityFinding(
            check_id=CheckId.CAA,
            status=Status.INFO,
            severity=Severity.MEDIUM,
            message=(
                'No CAA records found. CAA records restrict which Certificate '
                'Authorities can issue certificates for your domain.'
            ),
            recommendation=(
                'Consider adding CAA records to prevent unauthorized '
                'certificate issuance.'
            ),
        )

    return _passed(CheckId.CAA, 'CAA records found')


def check_mx(records: RecordMap | None) -> SecurityFinding:
    mx, gap = _records_or_gap(records, RecordType.MX)
    if mx is None:
        return _cannot_verify(CheckId.MX, f'{gap}, cannot verify mail configuration')

    if not mx:
        return SecurityFinding(
            check_id=CheckId.MX,
            status=Status.INFO,
            severity=Severity.LOW,
            message='No MX records found, the domain does not appear to receive email.',
        )

    return _passed(CheckId.MX, f'{len(mx)} MX record(s) found')


def check_wildcard(records: RecordMap | None) -> SecurityFinding:
    if not records or not getattr(records, 'any_succeeded', True):
        return _cannot_verify(CheckId.WILDCARD, 'No DNS data was fetched')

    wildcards = sorted({
        record.name
        for items in records.values()
        for record in items
        if '*' in record.name
    })
    if wildcards:
        return SecurityFinding(
            check_id=CheckId.WILDCARD,
            status=Status.WARNING,
            severity=Severity.LOW,
            message=f'Wildcard DNS records detected: {", ".join(wildcards)}',
            recommendation=(
                'Make sure wildcard records are intended, they answer for '
                'every undefined subdomain.'
            ),
        )

    return _passed(CheckId.WILDCARD, 'No wildcard records detected')


def check_https(url: str) -> SecurityFinding:
    if not (url or '').lower().startswith('https://'):
        return SecurityFinding(
            check_id=CheckId.HTTPS,
            status=Status.WARNING,
            severity=Severity.HIGH,
            message='This site is not using HTTPS. Communications are not encrypted.',
            recommendation=(
                'Implement HTTPS to secure communications between visitors '
                'and your website.'
            ),
        )

    return _passed(CheckId.HTTPS, 'Site is using HTTPS')


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    '''
    Parses an ISO-8601 timestamp, naive values are taken as UTC.
    '''
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def check_cert_expiry(
    tls: TlsSummary | None,
    now: datetime | None = None,
) -> SecurityFinding:
    now = now or datetime.now(timezone.utc)
    valid_until = parse_timestamp(tls.valid_until) if tls else None
    if valid_until is None:
        return SecurityFinding(
            check_id=CheckId.CERT_EXPIRY,
            status=Status.ERROR,
            severity=Severity.UNKNOWN,
            message='Cannot determine certificate expiration date',
        )

    days_left = math.floor((valid_until - now).total_seconds() / 86400)
    if valid_until < now:
        return SecurityFinding(
            check_id=CheckId.CERT_EXPIRY,
            status=Status.DANGER,
            severity=Severity.CRITICAL,
            message='SSL certificate has expired!',
            recommendation='Renew the SSL certificate immediately.',
        )

    if valid_until < now + CERT_WARNING_WINDOW:
        return SecurityFinding(
            check_id=CheckId.CERT_EXPIRY,
            status=Status.WARNING,
            severity=Severity.HIGH,
            message=f'SSL certificate expires in {days_left} days',
            recommendation='Plan to renew the SSL certificate soon.',
        )

    return _passed(
        CheckId.CERT_EXPIRY,
        f'SSL certificate is valid for {days_left} more days',
    )


def check_suspicious_domain(domain: str) -> SecurityFinding:
    matches = match_suspicious_patterns(domain)
    if matches:
        return SecurityFinding(
            check_id=CheckId.SUSPICIOUS_DOMAIN,
            status=Status.DANGER,
            severity=Severity.CRITICAL,
            message=(
                'This domain matches patterns commonly used in phishing '
                f'attacks ({", ".join(matches)})'
            ),
            recommendation='Proceed with extreme caution when visiting this site.',
        )

    return _passed(
        CheckId.SUSPICIOUS_DOMAIN,
        'Domain does not match known phishing patterns',
    )


class SecurityEvaluator:
    '''
    Runs the fixed battery of heuristic checks. Every check is a pure
    function of its inputs and yields exactly one finding.
    '''

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def evaluate(
        self,
        records: RecordMap | None,
        tls: TlsSummary | None,
        domain: str,
        url: str,
        *,
        dmarc_records: RecordMap | None = None,
    ) -> list[SecurityFinding]:
        '''
        Parameters
        ----------
        records : RecordMap | None
            _Aggregated records of the inspected domain_
        tls : TlsSummary | None
        domain : str
        url : str
        dmarc_records : RecordMap | None
            _Aggregated TXT records of `_dmarc.<domain>`_

        Returns
        -------
        list[SecurityFinding]
            _Unsorted, one per check_
        '''
        findings = [
            check_spf(records),
            check_dmarc(dmarc_records),
            check_dnssec(records),
            check_caa(records),
            check_mx(records),
            check_wildcard(records),
            check_https(url),
            check_cert_expiry(tls, self._clock()),
            check_suspicious_domain(domain),
        ]
        issues = sum(1 for f in findings if f.is_issue)
        logger.debug(f'{domain}: {len(findings)} checks, {issues} issue(s)')
        return findings


def highest_severity(findings: Iterable[SecurityFinding]) -> Severity:
    worst = Severity.NONE
    for finding in findings:
        if finding.severity.rank > worst.rank:
            worst = finding.severity
    return worst
