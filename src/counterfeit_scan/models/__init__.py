"""
Domain models for scan evaluation.
"""

from .enums import (
    ConfidenceTier,
    EvaluationMode,
    JobStatus,
    Likelihood,
    ReviewVerdict,
    ScanStatus,
    ScanType,
    VisionOrigin,
)
from .evaluation import EvaluationResult, clamp_score, map_risk_to_status
from .product import ProductProfile, ReferenceFingerprint, RuleConfiguration
from .violations import Violation, ViolationCode
from .vision import (
    DominantColor,
    LabelAnnotation,
    LogoAnnotation,
    TextDetection,
    VisionSignature,
    fallback_signature,
)

__all__ = [
    "ConfidenceTier",
    "EvaluationMode",
    "JobStatus",
    "Likelihood",
    "ReviewVerdict",
    "ScanStatus",
    "ScanType",
    "VisionOrigin",
    "EvaluationResult",
    "clamp_score",
    "map_risk_to_status",
    "ProductProfile",
    "ReferenceFingerprint",
    "RuleConfiguration",
    "Violation",
    "ViolationCode",
    "DominantColor",
    "LabelAnnotation",
    "LogoAnnotation",
    "TextDetection",
    "VisionSignature",
    "fallback_signature",
]
