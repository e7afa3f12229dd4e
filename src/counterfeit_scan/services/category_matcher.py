"""
Category validation of vision labels against a declared product category.
"""

from typing import List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from ..config.detection_profiles import DetectionVocabulary
from ..models.vision import LabelAnnotation

logger = structlog.get_logger(__name__)

MIN_MATCH_CONFIDENCE = 0.5


class CategoryMatch(BaseModel):
    """Outcome of matching labels against a category's keywords."""
    is_match: bool
    confidence: float = Field(ge=0.0, le=1.0)
    matched_labels: List[str] = Field(default_factory=list)
    matched_keywords: List[str] = Field(default_factory=list)
    detected_labels: List[str] = Field(default_factory=list)
    reason: str


class CategoryMatcher:
    """Keyword-dictionary category matcher."""

    def __init__(self, vocabulary: Optional[DetectionVocabulary] = None):
        self.vocabulary = vocabulary or DetectionVocabulary()

    def validate(self, category: Optional[str], labels: Sequence[LabelAnnotation]) -> CategoryMatch:
        """
        Decide whether detected labels are consistent with a category.

        A label matches when it contains a keyword or is contained in one
        (case-insensitive); each label counts once. Unknown categories and
        the lenient category always match.

        Args:
            category: Declared product category
            labels: Labels reported by the vision provider

        Returns:
            CategoryMatch with the mean confidence of matched labels
        """
        descriptions = [label.description for label in labels]
        keywords = self.vocabulary.category_keywords.get(category) if category else None

        if not category or category == self.vocabulary.lenient_category or keywords is None:
            return CategoryMatch(
                is_match=True,
                confidence=1.0,
                matched_labels=descriptions[:3],
                detected_labels=descriptions[:5],
                reason="No specific category validation required"
            )

        if not keywords:
            return CategoryMatch(
                is_match=True,
                confidence=0.5,
                matched_labels=descriptions[:3],
                detected_labels=descriptions[:5],
                reason="Category keywords not defined, allowing scan"
            )

        matched_labels: List[str] = []
        matched_keywords: List[str] = []
        total_confidence = 0.0

        for label in labels:
            label_lower = label.description.lower()
            if not label_lower:
                continue
            for keyword in keywords:
                keyword_lower = keyword.lower()
                if keyword_lower in label_lower or label_lower in keyword_lower:
                    matched_labels.append(label.description)
                    matched_keywords.append(keyword)
                    total_confidence += label.score
                    break

        match_count = len(matched_labels)
        confidence = total_confidence / match_count if match_count else 0.0
        is_match = match_count > 0 and confidence > MIN_MATCH_CONFIDENCE

        if is_match:
            reason = f"Detected {match_count} matching label(s) for {category}"
        else:
            reason = (
                f"No matching labels found for {category}. "
                f"Detected: {', '.join(descriptions[:3])}"
            )

        logger.debug(
            "Category validated",
            category=category,
            is_match=is_match,
            confidence=round(confidence, 3),
            matched=match_count
        )

        return CategoryMatch(
            is_match=is_match,
            confidence=confidence,
            matched_labels=matched_labels,
            matched_keywords=matched_keywords,
            detected_labels=descriptions[:5],
            reason=reason
        )
