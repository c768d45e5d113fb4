from dnsinspector.core import SessionCache, configure_lib_logger, disable_lib_logger
from dnsinspector.modules import (
    AggregatedRecord,
    AggregationResult,
    CacheTTLs,
    InspectionResult,
    Inspector,
    InspectorConfig,
    RecordType,
    SecurityFinding,
    Severity,
    Status,
    inspect,
)

__version__ = "0.1.0"

__all__ = [
    "SessionCache",
    "configure_lib_logger",
    "disable_lib_logger",
    "AggregatedRecord",
    "AggregationResult",
    "CacheTTLs",
    "InspectionResult",
    "Inspector",
    "InspectorConfig",
    "RecordType",
    "SecurityFinding",
    "Severity",
    "Status",
    "inspect",
]
