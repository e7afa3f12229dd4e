"""
Scan evaluation services.
"""

from .authenticity_detector import AuthenticityDetector, AuthenticityReport
from .category_matcher import CategoryMatch, CategoryMatcher
from .evaluation_engine import EvaluationEngine
from .identifier_parser import likely_category_from_labels, logo_contains_brand, parse_identifiers
from .quota_service import QuotaDecision, QuotaService, UsageSnapshot
from .reference_comparator import (
    ReferenceComparator,
    ReferenceComparison,
    adjust_risk_with_reference,
    fingerprint_from_signature,
)
from .scan_job_service import JobStatusView, ScanJobService, ScanResultView
from .training_service import TrainingAdjuster, TrainingRecord, TrainingService

__all__ = [
    "AuthenticityDetector",
    "AuthenticityReport",
    "CategoryMatch",
    "CategoryMatcher",
    "EvaluationEngine",
    "likely_category_from_labels",
    "logo_contains_brand",
    "parse_identifiers",
    "QuotaDecision",
    "QuotaService",
    "UsageSnapshot",
    "ReferenceComparator",
    "ReferenceComparison",
    "adjust_risk_with_reference",
    "fingerprint_from_signature",
    "JobStatusView",
    "ScanJobService",
    "ScanResultView",
    "TrainingAdjuster",
    "TrainingRecord",
    "TrainingService",
]
