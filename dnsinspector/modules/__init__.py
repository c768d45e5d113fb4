from .inspector import (
    CacheTTLs,
    Inspector,
    InspectorConfig,
    inspect,
)
from .models import (
    AggregatedRecord,
    AggregationResult,
    InspectionResult,
    ProviderResult,
    RawAnswer,
    RecordType,
    SecurityFinding,
    Severity,
    Status,
)

__all__ = [
    "CacheTTLs",
    "Inspector",
    "InspectorConfig",
    "inspect",
    "AggregatedRecord",
    "AggregationResult",
    "InspectionResult",
    "ProviderResult",
    "RawAnswer",
    "RecordType",
    "SecurityFinding",
    "Severity",
    "Status",
]
