import re
from typing import Final
from urllib.parse import urlsplit

import dns.exception
import dns.reversename

# letters/digits/hyphens, at least one dot, ends in a 2+ letter label
_HOSTNAME_RE: Final = re.compile(
    r'^(?=.{1,253}$)(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$'
)

# query names may also carry service labels (_dmarc, selector._domainkey)
_QUERY_NAME_RE: Final = re.compile(
    r'^(?=.{1,253}$)(?:[a-z0-9_](?:[a-z0-9_-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$'
)


QUOTE: Final = '"'


class InvalidDomainError(ValueError): ...


def normalize_hostname(hostname: str) -> str:
    return hostname.strip().lower().rstrip('.')


def canonical_data(data: str) -> str:
    '''
    Strips one trailing dot from an answer payload, the dedup key form.
    '''
    return data[:-1] if data.endswith('.') else data


def strip_txt_quotes(value: str) -> str:
    if len(value) >= 2 and value.startswith(QUOTE) and value.endswith(QUOTE):
        return value[1:-1]
    return value


def hostname_from_input(value: str) -> str:
    '''
    Accepts either a bare hostname or a URL and returns the
    normalized hostname part.
    '''
    value = value.strip()
    if '://' in value:
        value = urlsplit(value).hostname or ''
    else:
        value = value.split('/', 1)[0].rsplit('@', 1)[-1]
        if value.count(':') == 1:
            value = value.split(':', 1)[0]
    return normalize_hostname(value)


def is_valid_domain(domain: str) -> bool:
    return bool(domain) and bool(_HOSTNAME_RE.match(domain))


def is_valid_query_name(name: str) -> bool:
    return bool(name) and bool(_QUERY_NAME_RE.match(name.lower()))


def require_domain(value: str) -> str:
    '''
    Canonicalizes and validates a user supplied domain.

    Parameters
    ----------
    value : str
        _A hostname or URL_

    Returns
    -------
    str

    Raises
    ------
    InvalidDomainError
    '''
    if not isinstance(value, str):
        raise InvalidDomainError(f'Invalid domain: {value!r}')

    domain = hostname_from_input(value)
    if not is_valid_domain(domain):
        raise InvalidDomainError(f'Invalid domain format: {value!r}')
    return domain


def get_reverse_ip_name(ip_address: str) -> str:
    try:
        rev_name = dns.reversename.from_address(ip_address)
        return str(rev_name).rstrip('.')
    except (dns.exception.SyntaxError, ValueError) as e:
        raise InvalidDomainError(f'Invalid IP address: {ip_address}') from e
