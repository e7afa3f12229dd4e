"""
Authenticity detection from logos, OCR text and category-specific patterns.

The detector works purely on a vision signature and the declared category.
Every finding is recorded as a typed violation; the risk contribution of a
check is the sum of its violation weights.
"""

import re
from typing import Any, Dict, List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from ..config.detection_profiles import DetectionVocabulary
from ..models.enums import Likelihood
from ..models.vision import LogoAnnotation, TextDetection, VisionSignature
from ..models.violations import Violation, ViolationCode

logger = structlog.get_logger(__name__)

LOGO_MISSING_WEIGHT = 35
APPLE_LOGO_MISSING_WEIGHT = 15
LOGO_LOW_CONFIDENCE_WEIGHT = 40
LOGO_MODERATE_CONFIDENCE_WEIGHT = 20
LOGO_BRAND_MISMATCH_WEIGHT = 50
MULTIPLE_LOGOS_WEIGHT = 35
MAX_CONSISTENT_LOGOS = 2

WATERMARK_WEIGHT = 70
VERY_POOR_TEXT_WEIGHT = 30
POOR_TEXT_WEIGHT = 15
MISSPELLED_BRAND_WEIGHT = 50
SUSPICIOUS_TEXT_WEIGHT = 35
COUNTERFEIT_PATTERN_WEIGHT = 60
SPOOF_WEIGHT = 50

VERY_POOR_TEXT_CONFIDENCE = 0.5
POOR_TEXT_CONFIDENCE = 0.7
LOW_LOGO_CONFIDENCE = 0.6
MODERATE_LOGO_CONFIDENCE = 0.8

SPOOF_LIKELIHOODS = (Likelihood.LIKELY, Likelihood.VERY_LIKELY)


def _percent(value: float) -> str:
    return f"{value * 100:.0f}%"


def _names_overlap(first: str, second: str) -> bool:
    first, second = first.lower(), second.lower()
    return bool(first and second) and (first in second or second in first)


class AuthenticityReport(BaseModel):
    """Combined result of the logo, text and pattern checks."""
    risk_score: int = 0
    flags: Dict[str, str] = Field(default_factory=dict)
    violations: List[Violation] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)


class AuthenticityDetector:
    """Counterfeit heuristics over a vision signature."""

    def __init__(self, vocabulary: Optional[DetectionVocabulary] = None):
        self.vocabulary = vocabulary or DetectionVocabulary()
        self._misspelling_patterns = [
            (brand, typo, re.compile(rf"\b{re.escape(typo.lower())}\b"))
            for brand, typos in self.vocabulary.brand_misspellings.items()
            for typo in typos
        ]

    def expected_brands(self, category: Optional[str]) -> Sequence[str]:
        """Brands whose logos are expected for a category."""
        if not category:
            return ()
        return self.vocabulary.category_brands.get(category, ())

    def detect_brand_logo(self, signature: VisionSignature, category: Optional[str]) -> List[Violation]:
        """
        Verify brand logos against the brands expected for a category.

        Verification never lowers risk; a well-detected logo is recorded as
        a zero-weight ``BRAND_VERIFIED`` entry.
        """
        expected = self.expected_brands(category)
        if not expected:
            return []

        logos = signature.logos
        violations: List[Violation] = []

        if not logos:
            violations.append(Violation(
                code=ViolationCode.LOGO_MISSING,
                message=f"No brand logo detected (expected: {', '.join(expected)})",
                weight=LOGO_MISSING_WEIGHT
            ))
            if "Apple" in expected:
                violations.append(Violation(
                    code=ViolationCode.APPLE_LOGO_MISSING,
                    message="Apple logo not detected - critical authenticity marker",
                    weight=APPLE_LOGO_MISSING_WEIGHT
                ))
            return violations

        matched = self._find_expected_logo(logos, expected)
        if matched is not None:
            violations.append(self._grade_logo(matched))
        else:
            detected = ", ".join(logo.description for logo in logos)
            violations.append(Violation(
                code=ViolationCode.LOGO_BRAND_MISMATCH,
                message=f"Unexpected brand: {detected} (expected: {', '.join(expected)})",
                weight=LOGO_BRAND_MISMATCH_WEIGHT,
                details={"detected": [logo.description for logo in logos]}
            ))

        if len(logos) > MAX_CONSISTENT_LOGOS:
            violations.append(Violation(
                code=ViolationCode.MULTIPLE_LOGOS,
                message=f"{len(logos)} different logos detected - highly suspicious",
                weight=MULTIPLE_LOGOS_WEIGHT
            ))

        return violations

    @staticmethod
    def _find_expected_logo(logos: Sequence[LogoAnnotation], expected: Sequence[str]) -> Optional[LogoAnnotation]:
        for logo in logos:
            if any(_names_overlap(logo.description, brand) for brand in expected):
                return logo
        return None

    @staticmethod
    def _grade_logo(logo: LogoAnnotation) -> Violation:
        confidence = logo.score
        if confidence < LOW_LOGO_CONFIDENCE:
            return Violation(
                code=ViolationCode.LOGO_QUALITY,
                message=f"Low confidence logo detection ({_percent(confidence)}) - possible fake",
                weight=LOGO_LOW_CONFIDENCE_WEIGHT,
                details={"logo": logo.description, "confidence": confidence}
            )
        if confidence < MODERATE_LOGO_CONFIDENCE:
            return Violation(
                code=ViolationCode.LOGO_QUALITY,
                message=f"Moderate logo confidence ({_percent(confidence)})",
                weight=LOGO_MODERATE_CONFIDENCE_WEIGHT,
                details={"logo": logo.description, "confidence": confidence}
            )
        return Violation(
            code=ViolationCode.BRAND_VERIFIED,
            message=f"{logo.description} logo detected ({_percent(confidence)} confidence)",
            weight=0,
            details={"logo": logo.description, "confidence": confidence}
        )

    def detect_watermark(self, text: str) -> Optional[Violation]:
        """First stock-photo or website watermark found in OCR text."""
        text_lower = text.lower()
        for watermark in self.vocabulary.watermark_patterns:
            if watermark in text_lower:
                return Violation(
                    code=ViolationCode.WATERMARK_DETECTED,
                    message=f'Stock photo or website watermark found: "{watermark}" - strong counterfeit indicator',
                    weight=WATERMARK_WEIGHT,
                    details={"pattern": watermark}
                )
        return None

    @staticmethod
    def check_text_confidence(detection: TextDetection, severe_only: bool = False) -> Optional[Violation]:
        """
        Penalize poor OCR confidence, a sign of bad print quality.

        A confidence of zero means the provider reported none and is not
        penalized.
        """
        confidence = detection.confidence
        if confidence <= 0:
            return None
        if confidence < VERY_POOR_TEXT_CONFIDENCE:
            return Violation(
                code=ViolationCode.LOW_TEXT_QUALITY,
                message=f"Very poor text quality ({_percent(confidence)} confidence)",
                weight=VERY_POOR_TEXT_WEIGHT,
                details={"confidence": confidence}
            )
        if not severe_only and confidence < POOR_TEXT_CONFIDENCE:
            return Violation(
                code=ViolationCode.LOW_TEXT_QUALITY,
                message=f"Low text quality ({_percent(confidence)} confidence)",
                weight=POOR_TEXT_WEIGHT,
                details={"confidence": confidence}
            )
        return None

    def detect_misspelled_brand(self, text: str) -> Optional[Violation]:
        """First known brand misspelling found as a whole word."""
        text_lower = text.lower()
        for brand, typo, pattern in self._misspelling_patterns:
            if pattern.search(text_lower):
                return Violation(
                    code=ViolationCode.MISSPELLED_BRAND,
                    message=f'Found "{typo}" (should be "{brand}") - strong counterfeit indicator',
                    weight=MISSPELLED_BRAND_WEIGHT,
                    details={"brand": brand, "misspelling": typo}
                )
        return None

    def detect_suspicious_text(self, text: str) -> Optional[Violation]:
        """First generic counterfeit phrase found in OCR text."""
        text_lower = text.lower()
        for phrase in self.vocabulary.suspicious_phrases:
            if phrase in text_lower:
                return Violation(
                    code=ViolationCode.SUSPICIOUS_TEXT,
                    message=f'Found suspicious text pattern: "{phrase}"',
                    weight=SUSPICIOUS_TEXT_WEIGHT,
                    details={"pattern": phrase}
                )
        return None

    def analyze_text_quality(self, signature: VisionSignature) -> List[Violation]:
        """Watermark, OCR confidence, misspelling and phrase checks; all independent."""
        text = signature.text.text
        if not text:
            return []

        findings = (
            self.detect_watermark(text),
            self.check_text_confidence(signature.text),
            self.detect_misspelled_brand(text),
            self.detect_suspicious_text(text),
        )
        return [violation for violation in findings if violation is not None]

    def check_counterfeit_patterns(self, signature: VisionSignature, category: Optional[str]) -> List[Violation]:
        """Category-specific logical rules over the detected labels."""
        pattern = self.vocabulary.counterfeit_patterns.get(category) if category else None
        if pattern is None:
            return []

        labels = [label.description.lower() for label in signature.labels]
        triggered = all(
            any(term in label for label in labels for term in group)
            for group in pattern.term_groups
        )
        if not triggered:
            return []

        return [Violation(
            code=ViolationCode.COUNTERFEIT_PATTERN,
            message=pattern.message,
            weight=COUNTERFEIT_PATTERN_WEIGHT,
            details={"category": category}
        )]

    @staticmethod
    def check_spoof(signature: VisionSignature) -> Optional[Violation]:
        """Safe-search spoof likelihood of LIKELY or above."""
        if signature.spoof in SPOOF_LIKELIHOODS:
            return Violation(
                code=ViolationCode.SPOOF_DETECTED,
                message="Image manipulation or spoofing detected",
                weight=SPOOF_WEIGHT,
                details={"likelihood": signature.spoof.value}
            )
        return None

    def universal_checks(self, signature: VisionSignature) -> List[Violation]:
        """Safety checks that run even for products without rules."""
        findings = (
            self.detect_watermark(signature.text.text),
            self.check_spoof(signature),
            self.check_text_confidence(signature.text, severe_only=True),
        )
        return [violation for violation in findings if violation is not None]

    def analyze(self, signature: VisionSignature, category: Optional[str]) -> AuthenticityReport:
        """
        Run the logo, text-quality and pattern checks.

        Args:
            signature: Vision signature of the scanned image
            category: Declared product category

        Returns:
            AuthenticityReport with summed risk and merged flags
        """
        logo_violations = self.detect_brand_logo(signature, category)
        text_violations = self.analyze_text_quality(signature)
        pattern_violations = self.check_counterfeit_patterns(signature, category)

        violations = logo_violations + text_violations + pattern_violations
        risk_score = sum(v.weight for v in violations)

        # Later checks overwrite earlier flags with the same title
        flags: Dict[str, str] = {}
        for violation in violations:
            flags[violation.title] = violation.message

        logo_detected = any(
            v.code in (ViolationCode.LOGO_QUALITY, ViolationCode.BRAND_VERIFIED)
            for v in logo_violations
        )

        logger.debug(
            "Authenticity analyzed",
            category=category,
            risk_score=risk_score,
            flags=list(flags)
        )

        return AuthenticityReport(
            risk_score=risk_score,
            flags=flags,
            violations=violations,
            details={
                "logo_detected": logo_detected,
                "text_quality": signature.text.confidence,
                "patterns_found": bool(pattern_violations),
            }
        )
