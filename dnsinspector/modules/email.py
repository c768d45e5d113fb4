import asyncio
from typing import Final

from loguru import logger

from dnsinspector.modules.dns_search.core import RecordAggregator
from dnsinspector.modules.domain_utils import strip_txt_quotes
from dnsinspector.modules.models import (
    AggregationResult,
    EmailSecurityRecords,
    RecordType,
)

DEFAULT_DKIM_SELECTORS: Final[tuple[str, ...]] = (
    'default',
    'google',
    'k1',
    'selector1',
    'selector2',
)


class EmailRecordLookup:
    '''
    Looks up the TXT records behind email authentication:
    DMARC at `_dmarc.<domain>`, DKIM keys for a handful of common
    selectors and BIMI at `default._bimi.<domain>`.

    DKIM selectors cannot be enumerated, so those lookups are best
    effort and a miss says nothing about the domain.
    '''

    def __init__(
        self,
        aggregator: RecordAggregator,
        *,
        dkim_selectors: tuple[str, ...] = DEFAULT_DKIM_SELECTORS,
    ) -> None:
        self.aggregator = aggregator
        self.dkim_selectors = dkim_selectors

    async def _txt(self, name: str) -> AggregationResult:
        return await self.aggregator.aggregate(name, (RecordType.TXT,))

    @staticmethod
    def _values(result: AggregationResult, marker: str | None = None) -> list[str]:
        values = [strip_txt_quotes(data) for data in result.datas(RecordType.TXT)]
        if marker is None:
            return values
        return [value for value in values if marker in value.lower()]

    async def lookup_dmarc(self, domain: str) -> AggregationResult:
        return await self._txt(f'_dmarc.{domain}')

    async def __call__(self, domain: str) -> EmailSecurityRecords:
        dmarc_task = self.lookup_dmarc(domain)
        bimi_task = self._txt(f'default._bimi.{domain}')
        dkim_tasks = [
            self._txt(f'{selector}._domainkey.{domain}')
            for selector in self.dkim_selectors
        ]
        dmarc, bimi, *dkim = await asyncio.gather(dmarc_task, bimi_task, *dkim_tasks)

        dkim_records = {
            selector: values
            for selector, result in zip(self.dkim_selectors, dkim)
            if (values := self._values(result))
        }
        logger.debug(
            f'{domain}: DMARC={bool(dmarc.datas(RecordType.TXT))} '
            f'DKIM selectors={list(dkim_records)} BIMI={bool(bimi.datas(RecordType.TXT))}'
        )
        return EmailSecurityRecords(
            domain=domain,
            dmarc=self._values(dmarc, 'v=dmarc1'),
            dkim=dkim_records,
            bimi=self._values(bimi, 'v=bimi1'),
            dmarc_lookup=dmarc,
        )
