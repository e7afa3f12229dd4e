"""
Violation codes and the violation record contributed to a risk score.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ViolationCode(str, Enum):
    """Closed set of reasons that can contribute to a scan's risk score."""

    # Configuration / audit
    NO_RULES_DEFINED = "NO_RULES_DEFINED"
    CATEGORY_BASELINE = "CATEGORY_BASELINE"
    IDENTIFIER_PATTERN_ERROR = "IDENTIFIER_PATTERN_ERROR"

    # Generic product checks
    CATEGORY_MISMATCH = "CATEGORY_MISMATCH"
    BRAND_MISMATCH = "BRAND_MISMATCH"
    MISSING_IDENTIFIER = "MISSING_IDENTIFIER"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    EXPECTED_LOGO_MISSING = "EXPECTED_LOGO_MISSING"
    EXPECTED_LOGO_LOW_CONFIDENCE = "EXPECTED_LOGO_LOW_CONFIDENCE"

    # Authenticity detector: logos
    LOGO_MISSING = "LOGO_MISSING"
    APPLE_LOGO_MISSING = "APPLE_LOGO_MISSING"
    LOGO_QUALITY = "LOGO_QUALITY"
    BRAND_VERIFIED = "BRAND_VERIFIED"
    LOGO_BRAND_MISMATCH = "LOGO_BRAND_MISMATCH"
    MULTIPLE_LOGOS = "MULTIPLE_LOGOS"

    # Authenticity detector: text
    WATERMARK_DETECTED = "WATERMARK_DETECTED"
    LOW_TEXT_QUALITY = "LOW_TEXT_QUALITY"
    MISSPELLED_BRAND = "MISSPELLED_BRAND"
    SUSPICIOUS_TEXT = "SUSPICIOUS_TEXT"

    # Authenticity detector: category patterns
    COUNTERFEIT_PATTERN = "COUNTERFEIT_PATTERN"

    # Image safety
    SPOOF_DETECTED = "SPOOF_DETECTED"

    # Reference comparison
    HIGH_SIMILARITY = "HIGH_SIMILARITY"
    MEDIUM_SIMILARITY = "MEDIUM_SIMILARITY"
    BELOW_AVERAGE_SIMILARITY = "BELOW_AVERAGE_SIMILARITY"
    LOW_SIMILARITY = "LOW_SIMILARITY"
    NO_REFERENCE_AVAILABLE = "NO_REFERENCE_AVAILABLE"
    REFERENCE_NOT_FOUND = "REFERENCE_NOT_FOUND"
    REFERENCE_ERROR = "REFERENCE_ERROR"

    # Adjustments
    DETECTION_CHALLENGE = "DETECTION_CHALLENGE"
    TRAINING_ADJUSTMENT = "TRAINING_ADJUSTMENT"

    @property
    def display_name(self) -> str:
        """Human-readable flag name shown next to a scan."""
        return _TITLES[self]


_TITLES = {
    ViolationCode.NO_RULES_DEFINED: "No Rules Defined",
    ViolationCode.CATEGORY_BASELINE: "Category Baseline",
    ViolationCode.IDENTIFIER_PATTERN_ERROR: "Identifier Pattern Error",
    ViolationCode.CATEGORY_MISMATCH: "Category Mismatch",
    ViolationCode.BRAND_MISMATCH: "Brand Name Mismatch",
    ViolationCode.MISSING_IDENTIFIER: "Missing Identifier",
    ViolationCode.INVALID_IDENTIFIER: "Invalid Identifier",
    ViolationCode.EXPECTED_LOGO_MISSING: "Expected Logo Missing",
    ViolationCode.EXPECTED_LOGO_LOW_CONFIDENCE: "Expected Logo Low Confidence",
    ViolationCode.LOGO_MISSING: "Logo Missing",
    ViolationCode.APPLE_LOGO_MISSING: "Apple Logo Missing",
    ViolationCode.LOGO_QUALITY: "Logo Quality",
    ViolationCode.BRAND_VERIFIED: "Brand Verified",
    ViolationCode.LOGO_BRAND_MISMATCH: "Brand Mismatch",
    ViolationCode.MULTIPLE_LOGOS: "Multiple Logos",
    ViolationCode.WATERMARK_DETECTED: "Watermark Detected",
    ViolationCode.LOW_TEXT_QUALITY: "Text Quality",
    ViolationCode.MISSPELLED_BRAND: "Misspelled Brand",
    ViolationCode.SUSPICIOUS_TEXT: "Suspicious Text",
    ViolationCode.COUNTERFEIT_PATTERN: "Counterfeit Pattern",
    ViolationCode.SPOOF_DETECTED: "Spoof Detected",
    ViolationCode.HIGH_SIMILARITY: "High Reference Similarity",
    ViolationCode.MEDIUM_SIMILARITY: "Medium Reference Similarity",
    ViolationCode.BELOW_AVERAGE_SIMILARITY: "Below-Average Reference Similarity",
    ViolationCode.LOW_SIMILARITY: "Low Reference Similarity",
    ViolationCode.NO_REFERENCE_AVAILABLE: "No Reference Available",
    ViolationCode.REFERENCE_NOT_FOUND: "Reference Not Found",
    ViolationCode.REFERENCE_ERROR: "Reference Error",
    ViolationCode.DETECTION_CHALLENGE: "Detection Challenge Adjustment",
    ViolationCode.TRAINING_ADJUSTMENT: "Training Adjustment",
}


class Violation(BaseModel):
    """One named, weighted reason contributing to a scan's risk score."""
    model_config = ConfigDict(frozen=True)

    code: ViolationCode
    message: str
    weight: int = 0
    identifier: Optional[str] = Field(None, description="Identifier the violation refers to, if any")
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def title(self) -> str:
        return self.code.display_name

    def to_record(self) -> Dict[str, Any]:
        """Serializable form stored with the scan history."""
        record = {
            "code": self.code.value,
            "title": self.title,
            "message": self.message,
            "weight": self.weight,
        }
        if self.identifier:
            record["identifier"] = self.identifier
        if self.details:
            record["details"] = self.details
        return record
