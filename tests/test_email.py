import pytest

from dnsinspector.modules.dns_search.core import RecordAggregator
from dnsinspector.modules.email import EmailRecordLookup
from dnsinspector.modules.models import RecordType
from tests.conftest import StubProvider

pytestmark = pytest.mark.anyio

TXT = RecordType.TXT


async def test_collects_dmarc_dkim_and_bimi() -> None:
    provider = StubProvider(
        "Google",
        {
            ("_dmarc.example.com", TXT): ['"v=DMARC1; p=quarantine"', '"unrelated"'],
            ("selector1._domainkey.example.com", TXT): ['"v=DKIM1; k=rsa; p=abc"'],
            ("default._bimi.example.com", TXT): ['"v=BIMI1; l=https://example.com/logo.svg"'],
        },
    )
    lookup = EmailRecordLookup(
        RecordAggregator([provider]),
        dkim_selectors=("default", "selector1"),
    )

    email = await lookup("example.com")

    assert email.dmarc == ["v=DMARC1; p=quarantine"]
    assert email.dkim == {"selector1": ["v=DKIM1; k=rsa; p=abc"]}
    assert email.bimi == ["v=BIMI1; l=https://example.com/logo.svg"]
    assert email.dmarc_lookup is not None
    assert email.dmarc_lookup.domain == "_dmarc.example.com"


async def test_missing_records_are_empty() -> None:
    lookup = EmailRecordLookup(RecordAggregator([StubProvider("Google")]))

    email = await lookup("example.com")

    assert email.dmarc == []
    assert email.dkim == {}
    assert email.bimi == []
    assert email.dmarc_lookup is not None
    assert email.dmarc_lookup.any_succeeded
