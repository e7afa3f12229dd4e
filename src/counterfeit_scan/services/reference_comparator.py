"""
Comparison of a scanned image's vision signature with a stored reference
fingerprint of a genuine product.
"""

import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, Field

from ..models.enums import ConfidenceTier
from ..models.evaluation import clamp_score
from ..models.product import ReferenceFingerprint
from ..models.vision import (
    DominantColor,
    LogoAnnotation,
    TextDetection,
    VisionSignature,
    rgb_to_hex,
    to_rgb,
)
from ..models.violations import ViolationCode

logger = structlog.get_logger(__name__)

MAX_RGB_DISTANCE = 441.0
TOP_COLORS = 3

DEFAULT_WEIGHTS = (0.5, 0.3, 0.2)          # logo, color, text
LOGOLESS_REFERENCE_WEIGHTS = (0.0, 0.4, 0.6)

HIGH_MATCH_SIMILARITY = 75.0
MEDIUM_MATCH_SIMILARITY = 60.0
MEDIUM_NO_MATCH_SIMILARITY = 45.0

# Logo similarity credited when the brand is only confirmed through OCR text
TEXT_BRAND_SIMILARITY = 50.0

HIGH_SIMILARITY_ADJUSTMENT = -30
MEDIUM_SIMILARITY_ADJUSTMENT = -15
BELOW_AVERAGE_SIMILARITY_ADJUSTMENT = 25
LOW_SIMILARITY_ADJUSTMENT = 40
NO_REFERENCE_ADJUSTMENT = 10


class LogoComparison(BaseModel):
    """Logo similarity between scan and reference."""
    similarity: float = 0.0
    matched: bool = False
    matched_brands: List[str] = Field(default_factory=list)
    method: str = "NONE"


class ReferenceComparison(BaseModel):
    """Weighted similarity of a scan to one reference fingerprint."""
    overall_similarity: float = 0.0
    color_similarity: float = 0.0
    logo_similarity: float = 0.0
    text_similarity: float = 0.0
    is_match: bool = False
    confidence: ConfidenceTier = ConfidenceTier.LOW
    reference_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class RiskAdjustment(BaseModel):
    """Risk change implied by a reference comparison."""
    code: ViolationCode
    adjustment: int
    adjusted_score: int
    reason: str


def compare_colors(first: Any, second: Any) -> float:
    """Similarity of two colors in RGB space, 0-1."""
    rgb1, rgb2 = to_rgb(first), to_rgb(second)
    if rgb1 is None or rgb2 is None:
        return 0.0
    distance = math.sqrt(sum((a - b) ** 2 for a, b in zip(rgb1, rgb2)))
    return 1 - distance / MAX_RGB_DISTANCE


def calculate_color_similarity(
    scanned: Sequence[DominantColor],
    reference: Sequence[DominantColor]
) -> float:
    """
    Compare the top three dominant colors of each image.

    Each scanned color is paired with its closest reference color. Pair
    similarities are weighted by the smaller of the two pixel fractions and
    normalized by the total weight, scaled to 0-100, so an image compared
    with its own fingerprint scores 100.
    """
    if not scanned or not reference:
        return 0.0

    candidates = reference[:TOP_COLORS]
    total = 0.0
    total_weight = 0.0
    similarities = []
    for color in scanned[:TOP_COLORS]:
        similarity, closest = max(
            ((compare_colors(color.color, ref.color), ref) for ref in candidates),
            key=lambda pair: pair[0]
        )
        weight = min(color.pixel_fraction, closest.pixel_fraction)
        total += similarity * weight
        total_weight += weight
        similarities.append(similarity)

    if total_weight == 0:
        # No pixel fractions reported
        return sum(similarities) / len(similarities) * 100
    return total / total_weight * 100


def calculate_logo_similarity(
    scanned: Sequence[LogoAnnotation],
    reference: Sequence[LogoAnnotation],
    brand: Optional[str] = None,
    scanned_text: str = "",
    reference_text: str = ""
) -> LogoComparison:
    """
    Compare detected logos, falling back to the brand name in OCR text.

    Visual matching averages ``1 - |score difference|`` over scanned logos
    that overlap a reference logo by name. Without a visual match, a brand
    name found in the scanned text and in the reference earns a partial
    score.
    """
    if scanned and reference:
        reference_names = [logo.description.lower() for logo in reference]
        matched_brands = [
            logo.description.lower() for logo in scanned
            if any(_overlaps(logo.description.lower(), name) for name in reference_names)
        ]

        if matched_brands:
            total = 0.0
            matches = 0
            for logo in scanned:
                ref = next(
                    (r for r in reference if _overlaps(logo.description.lower(), r.description.lower())),
                    None
                )
                if ref is not None:
                    total += (1 - abs(logo.score - ref.score)) * 100
                    matches += 1

            return LogoComparison(
                similarity=total / matches if matches else 0.0,
                matched=True,
                matched_brands=matched_brands,
                method="VISUAL_LOGO"
            )

    if brand:
        brand_lower = brand.lower()
        reference_mentions = brand_lower in reference_text.lower() or any(
            _overlaps(brand_lower, logo.description.lower()) for logo in reference
        )
        if brand_lower in scanned_text.lower() and reference_mentions:
            return LogoComparison(
                similarity=TEXT_BRAND_SIMILARITY,
                matched=True,
                matched_brands=[brand_lower],
                method="TEXT_BRAND"
            )

    return LogoComparison()


def _overlaps(first: str, second: str) -> bool:
    return bool(first and second) and (first in second or second in first)


def calculate_text_similarity(scanned: TextDetection, reference: TextDetection) -> float:
    """Shared words over the longer text's word count, scaled to 0-100."""
    words1 = scanned.text.lower().split()
    words2 = reference.text.lower().split()
    if not words1 or not words2:
        return 0.0

    reference_words = set(words2)
    common = [word for word in words1 if word in reference_words]
    return len(common) / max(len(words1), len(words2)) * 100


def confidence_tier(similarity: float) -> Tuple[bool, ConfidenceTier]:
    """Match decision and confidence tier for an overall similarity."""
    if similarity >= HIGH_MATCH_SIMILARITY:
        return True, ConfidenceTier.HIGH
    if similarity >= MEDIUM_MATCH_SIMILARITY:
        return True, ConfidenceTier.MEDIUM
    if similarity >= MEDIUM_NO_MATCH_SIMILARITY:
        return False, ConfidenceTier.MEDIUM
    return False, ConfidenceTier.LOW


class ReferenceComparator:
    """Weighted color/logo/text similarity against genuine references."""

    def compare(
        self,
        signature: VisionSignature,
        fingerprint: ReferenceFingerprint,
        brand: Optional[str] = None
    ) -> ReferenceComparison:
        """
        Compare a scan with one reference fingerprint.

        Args:
            signature: Vision signature of the scanned image
            fingerprint: Stored fingerprint of a genuine reference image
            brand: Product brand, used for the text-based logo fallback

        Returns:
            ReferenceComparison with sub-scores, overall similarity and tier
        """
        color_similarity = calculate_color_similarity(signature.dominant_colors, fingerprint.dominant_colors)
        logo = calculate_logo_similarity(
            signature.logos,
            fingerprint.logos,
            brand=brand,
            scanned_text=signature.text.text,
            reference_text=fingerprint.text.text
        )
        text_similarity = calculate_text_similarity(signature.text, fingerprint.text)

        w_logo, w_color, w_text = DEFAULT_WEIGHTS if fingerprint.logos else LOGOLESS_REFERENCE_WEIGHTS
        overall = logo.similarity * w_logo + color_similarity * w_color + text_similarity * w_text
        is_match, tier = confidence_tier(overall)

        logger.debug(
            "Reference compared",
            reference_id=fingerprint.reference_id,
            overall_similarity=round(overall, 2),
            confidence=tier.value
        )

        return ReferenceComparison(
            overall_similarity=overall,
            color_similarity=color_similarity,
            logo_similarity=logo.similarity,
            text_similarity=text_similarity,
            is_match=is_match,
            confidence=tier,
            reference_id=fingerprint.reference_id,
            details={
                "logo_matched": logo.matched,
                "matched_brands": logo.matched_brands,
                "logo_method": logo.method,
                "weights": {"logo": w_logo, "color": w_color, "text": w_text},
            }
        )

    def compare_with_best_reference(
        self,
        signature: VisionSignature,
        fingerprints: Sequence[ReferenceFingerprint],
        brand: Optional[str] = None
    ) -> Optional[ReferenceComparison]:
        """Best comparison across several references, or None without any."""
        best: Optional[ReferenceComparison] = None
        for fingerprint in fingerprints:
            comparison = self.compare(signature, fingerprint, brand)
            if best is None or comparison.overall_similarity > best.overall_similarity:
                best = comparison
        return best


def reference_adjustment(comparison: Optional[ReferenceComparison]) -> Tuple[ViolationCode, int, str]:
    """Violation code, risk points and reason for a comparison outcome."""
    if comparison is None:
        return (
            ViolationCode.NO_REFERENCE_AVAILABLE,
            NO_REFERENCE_ADJUSTMENT,
            "No reference image available for comparison"
        )

    similarity = f"{comparison.overall_similarity:.0f}%"
    if comparison.is_match:
        if comparison.confidence == ConfidenceTier.HIGH:
            return (
                ViolationCode.HIGH_SIMILARITY,
                HIGH_SIMILARITY_ADJUSTMENT,
                f"High similarity ({similarity}) to genuine reference"
            )
        return (
            ViolationCode.MEDIUM_SIMILARITY,
            MEDIUM_SIMILARITY_ADJUSTMENT,
            f"Medium similarity ({similarity}) to genuine reference"
        )

    if comparison.confidence == ConfidenceTier.LOW:
        return (
            ViolationCode.LOW_SIMILARITY,
            LOW_SIMILARITY_ADJUSTMENT,
            f"Low similarity ({similarity}) to genuine reference - likely counterfeit"
        )
    return (
        ViolationCode.BELOW_AVERAGE_SIMILARITY,
        BELOW_AVERAGE_SIMILARITY_ADJUSTMENT,
        f"Below-average similarity ({similarity}) to genuine reference"
    )


def adjust_risk_with_reference(
    base_risk_score: int,
    comparison: Optional[ReferenceComparison]
) -> RiskAdjustment:
    """Apply a comparison's adjustment to a base risk score."""
    code, adjustment, reason = reference_adjustment(comparison)
    return RiskAdjustment(
        code=code,
        adjustment=adjustment,
        adjusted_score=clamp_score(base_risk_score + adjustment),
        reason=reason
    )


def fingerprint_from_signature(
    signature: VisionSignature,
    reference_id: Optional[str] = None,
    product_id: Optional[str] = None
) -> ReferenceFingerprint:
    """Derive a storable fingerprint from a reference image's signature."""
    return ReferenceFingerprint(
        reference_id=reference_id,
        product_id=product_id,
        dominant_colors=[
            DominantColor(
                color=rgb_to_hex(color.rgb),
                score=color.score,
                pixel_fraction=color.pixel_fraction
            )
            for color in signature.dominant_colors
        ],
        logos=list(signature.logos),
        text=signature.text,
        labels=list(signature.labels)
    )
