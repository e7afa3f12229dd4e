"""
Enumerations shared across the scan evaluation engine.
"""

from enum import Enum


class ScanType(str, Enum):
    """Kind of scan, which decides the quota counter it is charged to."""
    LOCAL = "LOCAL"
    AI_VISION = "AI_VISION"
    AUTO = "AUTO"


class JobStatus(str, Enum):
    """Lifecycle states of a scan job."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class ScanStatus(str, Enum):
    """Authenticity verdict of an evaluated scan."""
    LIKELY_GENUINE = "LIKELY_GENUINE"
    SUSPICIOUS = "SUSPICIOUS"
    HIGH_RISK = "HIGH_RISK"
    INDETERMINATE = "INDETERMINATE"


class EvaluationMode(str, Enum):
    """Branch taken by the evaluation engine."""
    UNDEFINED_CATEGORY = "UNDEFINED_CATEGORY"
    REFERENCE_COMPARE = "REFERENCE_COMPARE"
    MASTER_PLUS_CLOUD = "MASTER_PLUS_CLOUD"


class ConfidenceTier(str, Enum):
    """Confidence of a reference comparison."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Likelihood(str, Enum):
    """Safe-search likelihood buckets reported by the vision provider."""
    UNKNOWN = "UNKNOWN"
    VERY_UNLIKELY = "VERY_UNLIKELY"
    UNLIKELY = "UNLIKELY"
    POSSIBLE = "POSSIBLE"
    LIKELY = "LIKELY"
    VERY_LIKELY = "VERY_LIKELY"


class VisionOrigin(str, Enum):
    """Where a vision signature came from."""
    PROVIDER = "PROVIDER"
    FALLBACK = "FALLBACK"


class ReviewVerdict(str, Enum):
    """Human reviewer override of a scan verdict."""
    GENUINE = "GENUINE"
    FAKE = "FAKE"
