from .core import (
    RecordAggregator,
    fetch_dns_records,
    merge_provider_results,
    order_rtypes,
)
from .formatter import (
    FindingBuckets,
    RecordFormatter,
    bucket_findings,
    render_findings,
    render_records,
)
from .providers import (
    CloudflareDohProvider,
    DohJsonProvider,
    GoogleDohProvider,
    ProviderClient,
    ProviderEndpoints,
    Quad9DohProvider,
    create_providers,
)

__all__ = [
    "RecordAggregator",
    "fetch_dns_records",
    "merge_provider_results",
    "order_rtypes",
    "FindingBuckets",
    "RecordFormatter",
    "bucket_findings",
    "render_findings",
    "render_records",
    "CloudflareDohProvider",
    "DohJsonProvider",
    "GoogleDohProvider",
    "ProviderClient",
    "ProviderEndpoints",
    "Quad9DohProvider",
    "create_providers",
]
