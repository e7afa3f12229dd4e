"""
Identifier extraction from OCR text.

Each identifier kind has its own pattern; the first match wins and kinds
without a match are left out of the result.
"""

import re
from typing import Dict, Iterable, Mapping, Optional

from ..config.detection_profiles import DEFAULT_LABEL_CATEGORIES
from ..models.vision import LabelAnnotation, LogoAnnotation

ISBN_PATTERN = re.compile(
    r"(?:ISBN(?:-1[03])?:?\s*)?"
    r"(?=[-0-9 ]{17}|[-0-9X ]{13}|[0-9X]{10})"
    r"(?:97[89][- ]?)?[0-9]{1,5}[- ]?(?:[0-9]+[- ]?){2}[0-9X]",
    re.IGNORECASE
)
IMEI_PATTERN = re.compile(r"\b\d{15}\b")
BRAND_PATTERNS = (
    re.compile(r"(?:brand|manufacturer):[ \t]*([a-z0-9 \t&]+)", re.IGNORECASE),
    re.compile(r"(?:made by|produced by):[ \t]*([a-z0-9 \t&]+)", re.IGNORECASE),
)
PUBLISHER_PATTERN = re.compile(r"(?:publisher|published by):[ \t]*([a-z0-9 \t&]+)", re.IGNORECASE)
MODEL_PATTERN = re.compile(r"(?:model no\.?|model):\s*([a-z0-9\-/]+)", re.IGNORECASE)
BATCH_PATTERN = re.compile(r"(?:batch|lot)(?:\s*no\.?)?:\s*([a-z0-9\-/]+)", re.IGNORECASE)

_NON_ISBN_CHARS = re.compile(r"[^0-9X]", re.IGNORECASE)


def _first_group(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def parse_identifiers(text: Optional[str]) -> Dict[str, str]:
    """
    Extract structured identifiers from free-form OCR text.

    Args:
        text: Full OCR text, possibly empty

    Returns:
        Mapping of identifier name (``isbn``, ``imei``, ``brand_name``,
        ``publisher``, ``model_number``, ``batch_number``) to value
    """
    identifiers: Dict[str, str] = {}
    if not text:
        return identifiers

    isbn = ISBN_PATTERN.search(text)
    if isbn:
        identifiers["isbn"] = _NON_ISBN_CHARS.sub("", isbn.group(0)).upper()

    imei = IMEI_PATTERN.search(text)
    if imei:
        identifiers["imei"] = imei.group(0)

    for pattern in BRAND_PATTERNS:
        brand = _first_group(pattern, text)
        if brand:
            identifiers["brand_name"] = brand
            break

    publisher = _first_group(PUBLISHER_PATTERN, text)
    if publisher:
        identifiers["publisher"] = publisher

    model = _first_group(MODEL_PATTERN, text)
    if model:
        identifiers["model_number"] = model

    batch = _first_group(BATCH_PATTERN, text)
    if batch:
        identifiers["batch_number"] = batch

    return identifiers


def likely_category_from_labels(
    labels: Iterable[LabelAnnotation],
    label_categories: Mapping[str, str] = DEFAULT_LABEL_CATEGORIES
) -> Optional[str]:
    """Coarse category guessed from the first well-known label."""
    for label in labels:
        category = label_categories.get(label.description.lower())
        if category:
            return category
    return None


def logo_contains_brand(logos: Iterable[LogoAnnotation], brand: Optional[str], min_score: float = 0.7) -> bool:
    """True when a logo naming the brand was detected with at least ``min_score``."""
    if not brand:
        return False
    brand_lower = brand.lower()
    return any(
        brand_lower in logo.description.lower() and logo.score >= min_score
        for logo in logos
    )
