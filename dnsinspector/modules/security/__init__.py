from .checks import (
    CheckId,
    SecurityEvaluator,
    check_caa,
    check_cert_expiry,
    check_dmarc,
    check_dnssec,
    check_https,
    check_mx,
    check_spf,
    check_suspicious_domain,
    check_wildcard,
    highest_severity,
)
from .patterns import (
    SUSPICIOUS_PATTERNS,
    is_suspicious_domain,
    match_suspicious_patterns,
)

__all__ = [
    "CheckId",
    "SecurityEvaluator",
    "check_caa",
    "check_cert_expiry",
    "check_dmarc",
    "check_dnssec",
    "check_https",
    "check_mx",
    "check_spf",
    "check_suspicious_domain",
    "check_wildcard",
    "highest_severity",
    "SUSPICIOUS_PATTERNS",
    "is_suspicious_domain",
    "match_suspicious_patterns",
]
