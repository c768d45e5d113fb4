import dataclasses as dc

import httpx

DOH_JSON_MEDIA_TYPE = 'application/dns-json'

HttpxExceptions = (
    httpx.HTTPError,
    httpx.InvalidURL,
)


def _default_headers() -> dict[str, str]:
    return {
        'Accept': f'{DOH_JSON_MEDIA_TYPE}, application/json',
        'User-Agent': 'dnsinspector/0.1 (+https://dns.google/resolve)',
    }


@dc.dataclass(slots=True)
class ClientOptions:
    '''
    Options for configuring the HTTPX AsyncClient used for
    DNS-over-HTTPS queries. Every outbound call is bounded
    by these timeouts, there is no retry layer on top.
    '''
    timeout: float = 5.0
    connect_timeout: float = 3.0
    read_timeout: float = 5.0
    max_connections: int = 20
    max_keepalive: int = 10
    keep_alive_expiry: int = 15
    http2: bool = True
    follow_redirects: bool = True
    headers: dict[str, str] = dc.field(default_factory=_default_headers)

    @property
    def httpx_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self.timeout,
            connect=self.connect_timeout,
            read=self.read_timeout,
        )

    @property
    def httpx_limits(self) -> httpx.Limits:
        return httpx.Limits(
            max_connections=self.max_connections,
            max_keepalive_connections=self.max_keepalive,
            keepalive_expiry=self.keep_alive_expiry,
        )


def create_httpx_client(
    *,
    options: ClientOptions | None = None,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    '''
    Creates the shared AsyncClient for resolver queries.

    Parameters
    ----------
    options : ClientOptions | None, optional
        by default None
    headers : dict[str, str] | None, optional
        _Merged over the option headers_, by default None
    transport : httpx.AsyncBaseTransport | None, optional
        _A custom transport, e.g. `httpx.MockTransport`_, by default None

    Returns
    -------
    httpx.AsyncClient
    '''
    options = options or ClientOptions()
    merged_headers = {**options.headers, **(headers or {})}

    kwargs = {
        'timeout': options.httpx_timeout,
        'headers': merged_headers,
        'limits': options.httpx_limits,
        'follow_redirects': options.follow_redirects,
    }
    if transport is not None:
        kwargs['transport'] = transport
    else:
        kwargs['http2'] = options.http2

    return httpx.AsyncClient(**kwargs)
