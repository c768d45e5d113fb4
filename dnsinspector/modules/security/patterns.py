import re
from typing import Final, NamedTuple


class SuspiciousPattern(NamedTuple):
    label: str
    regex: re.Pattern[str]


def _brand_lookalike(brand: str) -> SuspiciousPattern:
    # brand followed by a dot, unless the name is the brand's own .com zone
    return SuspiciousPattern(
        label=f'{brand.capitalize()} lookalike',
        regex=re.compile(
            rf'^(?!(?:.*\.)?{brand}\.com$).*{brand}.*\.',
            re.IGNORECASE,
        ),
    )


SUSPICIOUS_PATTERNS: Final[tuple[SuspiciousPattern, ...]] = (
    _brand_lookalike('paypal'),
    _brand_lookalike('google'),
    _brand_lookalike('apple'),
    _brand_lookalike('microsoft'),
    SuspiciousPattern('Raw IP address', re.compile(r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}')),
    SuspiciousPattern('Free .tk domain', re.compile(r'.*\.tk$', re.IGNORECASE)),
    SuspiciousPattern('High-abuse .xyz domain', re.compile(r'.*\.xyz$', re.IGNORECASE)),
    SuspiciousPattern('"secure" infix', re.compile(r'.*-secure-.*\.', re.IGNORECASE)),
    SuspiciousPattern('"login" infix', re.compile(r'.*-login-.*\.', re.IGNORECASE)),
    SuspiciousPattern('Temporary domain', re.compile(r'.*\.temp\.', re.IGNORECASE)),
    SuspiciousPattern('Setup domain', re.compile(r'.*\.setup\.', re.IGNORECASE)),
)


def match_suspicious_patterns(domain: str) -> list[str]:
    '''
    Returns the labels of every phishing pattern the domain matches.
    '''
    if not domain or not isinstance(domain, str):
        return []
    return [
        pattern.label
        for pattern in SUSPICIOUS_PATTERNS
        if pattern.regex.search(domain)
    ]


def is_suspicious_domain(domain: str) -> bool:
    return bool(match_suspicious_patterns(domain))
