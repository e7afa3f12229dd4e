"""
Scan evaluation engine.

Combines category matching, authenticity heuristics, reference comparison,
product rules, detection challenges and verified-history feedback into one
bounded risk score. Three modes exist:

* ``UNDEFINED_CATEGORY`` when the product has no rule configuration; only
  universal safety checks run and the verdict is ``INDETERMINATE``.
* ``REFERENCE_COMPARE`` when a reference image is named for the scan.
* ``MASTER_PLUS_CLOUD`` otherwise, driven by the product's rules.
"""

import re
from typing import Any, Dict, List, Optional, Protocol, Sequence

import structlog

from ..config.detection_profiles import DetectionProfileResolver
from ..models.enums import EvaluationMode, ScanStatus
from ..models.evaluation import EvaluationResult, clamp_score
from ..models.product import ProductProfile, ReferenceFingerprint
from ..models.vision import VisionSignature
from ..models.violations import Violation, ViolationCode
from .authenticity_detector import AuthenticityDetector
from .category_matcher import CategoryMatcher
from .identifier_parser import likely_category_from_labels, logo_contains_brand, parse_identifiers
from .reference_comparator import ReferenceComparator, ReferenceComparison, reference_adjustment
from .training_service import TrainingAdjuster, TrainingRecord

logger = structlog.get_logger(__name__)

DEFAULT_CATEGORY_MISMATCH_WEIGHT = 20
DEFAULT_BRAND_MISMATCH_WEIGHT = 20
DEFAULT_MISSING_IDENTIFIER_WEIGHT = 30
DEFAULT_INVALID_IDENTIFIER_WEIGHT = 40

# Reference outcomes whose penalty a product's weight table may override
REFERENCE_WEIGHT_KEYS = {
    ViolationCode.LOW_SIMILARITY: "low_similarity",
    ViolationCode.BELOW_AVERAGE_SIMILARITY: "medium_similarity",
}

LOGO_PENALTY_CODES = frozenset({
    ViolationCode.LOGO_MISSING,
    ViolationCode.APPLE_LOGO_MISSING,
    ViolationCode.LOGO_QUALITY,
    ViolationCode.EXPECTED_LOGO_MISSING,
    ViolationCode.EXPECTED_LOGO_LOW_CONFIDENCE,
})


class ReferenceSource(Protocol):
    """Read access to stored reference fingerprints."""

    async def get_fingerprint(self, reference_id: str) -> Optional[ReferenceFingerprint]:
        ...

    async def list_active_fingerprints(self, product_id: str) -> List[ReferenceFingerprint]:
        ...


class EvaluationEngine:
    """Risk aggregator over injected, immutable detection components."""

    def __init__(
        self,
        detector: Optional[AuthenticityDetector] = None,
        matcher: Optional[CategoryMatcher] = None,
        comparator: Optional[ReferenceComparator] = None,
        profiles: Optional[DetectionProfileResolver] = None,
        training: Optional[TrainingAdjuster] = None
    ):
        self.detector = detector or AuthenticityDetector()
        self.matcher = matcher or CategoryMatcher()
        self.comparator = comparator or ReferenceComparator()
        self.profiles = profiles or DetectionProfileResolver()
        self.training = training or TrainingAdjuster()

    async def evaluate(
        self,
        product: ProductProfile,
        signature: VisionSignature,
        reference_id: Optional[str] = None,
        references: Optional[ReferenceSource] = None,
        training_records: Sequence[TrainingRecord] = ()
    ) -> EvaluationResult:
        """
        Evaluate one scan.

        Args:
            product: Product profile the scan claims to be
            signature: Vision signature of the scanned image
            reference_id: Reference image selected for comparison, if any
            references: Fingerprint lookup used for reference comparison
            training_records: Verified scans of the same product

        Returns:
            Immutable EvaluationResult
        """
        debug_info: Dict[str, Any] = {
            "vision_origin": signature.origin.value,
            "likely_category": likely_category_from_labels(
                signature.labels, self.matcher.vocabulary.label_categories
            ),
        }

        if not product.has_rules:
            violations = [Violation(
                code=ViolationCode.NO_RULES_DEFINED,
                message="No validation rules defined for this category",
                weight=0
            )]
            violations.extend(self.detector.universal_checks(signature))
            result = EvaluationResult.from_violations(
                violations,
                EvaluationMode.UNDEFINED_CATEGORY,
                debug_info,
                status=ScanStatus.INDETERMINATE
            )
            self._log_result(product, result)
            return result

        parsed = parse_identifiers(signature.text.text)
        debug_info["parsed_identifiers"] = parsed

        violations = self._core_checks(product, signature, debug_info)

        if reference_id:
            mode = EvaluationMode.REFERENCE_COMPARE
            violations.append(
                await self._reference_violation(product, signature, reference_id, references, debug_info)
            )
            violations.extend(self._brand_checks(product, parsed))
        else:
            mode = EvaluationMode.MASTER_PLUS_CLOUD
            violations.extend(self._brand_checks(product, parsed))
            violations.extend(self._rule_checks(product, signature, parsed))
            if product.rules.use_reference_match:
                violations.append(
                    await self._best_reference_violation(product, signature, references, debug_info)
                )

        violations.extend(self._challenge_adjustments(product, signature, violations))
        violations.extend(self._training_adjustment(violations, training_records, debug_info))

        result = EvaluationResult.from_violations(violations, mode, debug_info)
        self._log_result(product, result)
        return result

    def _core_checks(
        self,
        product: ProductProfile,
        signature: VisionSignature,
        debug_info: Dict[str, Any]
    ) -> List[Violation]:
        """Baseline, category match, authenticity heuristics and spoof check."""
        category = product.category
        violations = [Violation(
            code=ViolationCode.CATEGORY_BASELINE,
            message=f"Baseline risk for {category or 'uncategorized'} products",
            weight=self.profiles.get_baseline_risk(category)
        )]

        if product.rules.use_generic_labels and signature.labels:
            match = self.matcher.validate(category, signature.labels)
            debug_info["category_match"] = match.model_dump()
            if not match.is_match:
                violations.append(Violation(
                    code=ViolationCode.CATEGORY_MISMATCH,
                    message=match.reason,
                    weight=product.weight_for("category_mismatch", DEFAULT_CATEGORY_MISMATCH_WEIGHT),
                    details={"confidence": match.confidence, "detected": match.detected_labels}
                ))

        report = self.detector.analyze(signature, category)
        debug_info["authenticity"] = report.details
        violations.extend(report.violations)

        spoof = self.detector.check_spoof(signature)
        if spoof is not None:
            violations.append(spoof)

        return violations

    @staticmethod
    def _brand_checks(product: ProductProfile, parsed: Dict[str, str]) -> List[Violation]:
        """Brand named in the OCR text against the product brand."""
        detected = parsed.get("brand_name")
        if not product.brand or not detected:
            return []

        expected, found = product.brand.lower(), detected.lower()
        if expected in found or found in expected:
            return []

        return [Violation(
            code=ViolationCode.BRAND_MISMATCH,
            message=f'Brand mismatch: detected "{detected}", expected "{product.brand}"',
            weight=product.weight_for("brand_mismatch", DEFAULT_BRAND_MISMATCH_WEIGHT),
            details={"detected": detected, "expected": product.brand}
        )]

    def _rule_checks(
        self,
        product: ProductProfile,
        signature: VisionSignature,
        parsed: Dict[str, str]
    ) -> List[Violation]:
        """Required identifiers, identifier patterns and the optional logo rule."""
        rules = product.rules
        violations: List[Violation] = []

        for identifier in rules.required_identifiers:
            if not parsed.get(identifier):
                violations.append(Violation(
                    code=ViolationCode.MISSING_IDENTIFIER,
                    message=f"Missing required identifier: {identifier}",
                    weight=product.weight_for(f"missing_{identifier}", DEFAULT_MISSING_IDENTIFIER_WEIGHT),
                    identifier=identifier
                ))

        for identifier, pattern in rules.identifier_patterns.items():
            value = parsed.get(identifier)
            if not value:
                continue
            try:
                regex = re.compile(pattern)
            except re.error as e:
                logger.warning(
                    "Invalid identifier pattern",
                    product_id=product.id,
                    identifier=identifier,
                    pattern=pattern,
                    error=str(e)
                )
                violations.append(Violation(
                    code=ViolationCode.IDENTIFIER_PATTERN_ERROR,
                    message=f"Pattern for {identifier} is invalid, validation skipped",
                    weight=0,
                    identifier=identifier,
                    details={"pattern": pattern, "error": str(e)}
                ))
                continue

            if not regex.search(value):
                violations.append(Violation(
                    code=ViolationCode.INVALID_IDENTIFIER,
                    message=f"Invalid {identifier} format: {value}",
                    weight=product.weight_for(f"invalid_{identifier}", DEFAULT_INVALID_IDENTIFIER_WEIGHT),
                    identifier=identifier,
                    details={"value": value, "pattern": pattern}
                ))

        if rules.use_logo_check and product.brand:
            violations.extend(self._logo_rule_check(product, signature))

        return violations

    def _logo_rule_check(self, product: ProductProfile, signature: VisionSignature) -> List[Violation]:
        """Expected brand logo, judged against the brand's confidence threshold."""
        threshold = self.profiles.get_logo_threshold(product.brand)

        if logo_contains_brand(signature.logos, product.brand, threshold.min_confidence):
            return []

        if logo_contains_brand(signature.logos, product.brand, min_score=0.0):
            best = max(
                logo.score for logo in signature.logos
                if product.brand.lower() in logo.description.lower()
            )
            return [Violation(
                code=ViolationCode.EXPECTED_LOGO_LOW_CONFIDENCE,
                message=(
                    f"{product.brand} logo confidence {best:.0%} is below "
                    f"the required {threshold.min_confidence:.0%}"
                ),
                weight=product.weight_for("logo_low_confidence", threshold.low_confidence_penalty),
                details={"confidence": best, "min_confidence": threshold.min_confidence}
            )]

        return [Violation(
            code=ViolationCode.EXPECTED_LOGO_MISSING,
            message=f"Expected {product.brand} logo not detected",
            weight=product.weight_for("logo_missing", threshold.missing_penalty)
        )]

    async def _reference_violation(
        self,
        product: ProductProfile,
        signature: VisionSignature,
        reference_id: str,
        references: Optional[ReferenceSource],
        debug_info: Dict[str, Any]
    ) -> Violation:
        """Compare with the selected reference image."""
        try:
            fingerprint = await references.get_fingerprint(reference_id) if references else None
            if fingerprint is None:
                return Violation(
                    code=ViolationCode.REFERENCE_NOT_FOUND,
                    message="Reference image not found",
                    weight=0,
                    details={"reference_id": reference_id}
                )

            if fingerprint.is_empty:
                return self._reference_outcome(product, None)

            comparison = self.comparator.compare(signature, fingerprint, product.brand)

        except Exception as e:
            logger.error(
                "Reference comparison failed",
                reference_id=reference_id,
                error=str(e),
                error_type=type(e).__name__
            )
            return Violation(
                code=ViolationCode.REFERENCE_ERROR,
                message="Error during reference comparison",
                weight=0,
                details={"reference_id": reference_id, "error": str(e)}
            )

        debug_info["reference_comparison"] = comparison.model_dump(mode="json")
        return self._reference_outcome(product, comparison)

    async def _best_reference_violation(
        self,
        product: ProductProfile,
        signature: VisionSignature,
        references: Optional[ReferenceSource],
        debug_info: Dict[str, Any]
    ) -> Violation:
        """Compare with the closest of the product's active references."""
        try:
            fingerprints = (
                await references.list_active_fingerprints(product.id)
                if references and product.id else []
            )
            comparison = self.comparator.compare_with_best_reference(signature, fingerprints, product.brand)

        except Exception as e:
            logger.error(
                "Automatic reference matching failed",
                product_id=product.id,
                error=str(e),
                error_type=type(e).__name__
            )
            return Violation(
                code=ViolationCode.REFERENCE_ERROR,
                message="Error during reference comparison",
                weight=0,
                details={"error": str(e)}
            )

        if comparison is not None:
            debug_info["reference_comparison"] = comparison.model_dump(mode="json")
        return self._reference_outcome(product, comparison)

    @staticmethod
    def _reference_outcome(product: ProductProfile, comparison: Optional[ReferenceComparison]) -> Violation:
        code, adjustment, reason = reference_adjustment(comparison)
        weight_key = REFERENCE_WEIGHT_KEYS.get(code)
        if weight_key:
            adjustment = product.weight_for(weight_key, adjustment)

        details: Dict[str, Any] = {}
        if comparison is not None:
            details = {
                "overall_similarity": round(comparison.overall_similarity, 2),
                "confidence": comparison.confidence.value,
                "is_match": comparison.is_match,
                "reference_id": comparison.reference_id,
            }
        return Violation(code=code, message=reason, weight=adjustment, details=details)

    def _challenge_adjustments(
        self,
        product: ProductProfile,
        signature: VisionSignature,
        violations: Sequence[Violation]
    ) -> List[Violation]:
        """Corrections for logo penalties in known hard-to-detect situations."""
        if not any(v.code in LOGO_PENALTY_CODES and v.weight > 0 for v in violations):
            return []

        context = {
            "has_dark_colors": signature.has_dark_colors(),
            "no_logo": not signature.logos,
        }
        keys = [key for key in dict.fromkeys((product.brand, product.category)) if key]

        adjustments: List[Violation] = []
        for key in keys:
            adjustment = self.profiles.get_challenge_adjustment(key, context)
            if adjustment:
                adjustments.append(Violation(
                    code=ViolationCode.DETECTION_CHALLENGE,
                    message=f"Detection challenge adjustment for {key}",
                    weight=adjustment,
                    details={"key": key, **context}
                ))
        return adjustments

    def _training_adjustment(
        self,
        violations: Sequence[Violation],
        records: Sequence[TrainingRecord],
        debug_info: Dict[str, Any]
    ) -> List[Violation]:
        """Nudge toward the verified genuine or fake pattern."""
        current = clamp_score(sum(v.weight for v in violations))
        training = self.training.calculate(current, records)
        debug_info["training"] = training.model_dump()

        if not training.adjustment:
            return []
        return [Violation(
            code=ViolationCode.TRAINING_ADJUSTMENT,
            message=training.reason,
            weight=training.adjustment,
            details={"genuine_mean": training.genuine_mean, "fake_mean": training.fake_mean}
        )]

    @staticmethod
    def _log_result(product: ProductProfile, result: EvaluationResult) -> None:
        logger.info(
            "Scan evaluated",
            product_id=product.id,
            mode=result.used_mode.value,
            status=result.status.value,
            risk_score=result.risk_score,
            violations=len(result.violations)
        )
