from datetime import datetime, timedelta, timezone

from dnsinspector.modules.models import TlsSummary


def synthesize_tls_summary(
    url: str,
    *,
    validity_days: int = 365,
    now: datetime | None = None,
) -> TlsSummary:
    '''
    Builds placeholder TLS metadata from the URL scheme alone. No
    connection is made and no certificate is read, so `valid_until`
    is `now + validity_days` for any https URL.

    Parameters
    ----------
    url : str
    validity_days : int, optional
        by default 365
    now : datetime | None, optional
        by default the current UTC time

    Returns
    -------
    TlsSummary
    '''
    now = now or datetime.now(timezone.utc)
    if not (url or '').lower().startswith('https://'):
        return TlsSummary(secure=False)

    return TlsSummary(
        secure=True,
        protocol='TLS',
        issuer='Certificate Authority',
        valid_from=now.isoformat(),
        valid_until=(now + timedelta(days=validity_days)).isoformat(),
    )
