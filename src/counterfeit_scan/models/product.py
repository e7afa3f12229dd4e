"""
Product profile, rule configuration and reference fingerprint models.
"""

from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .vision import DominantColor, LabelAnnotation, LogoAnnotation, TextDetection

logger = structlog.get_logger(__name__)


class RuleConfiguration(BaseModel):
    """Per-product detection rules maintained by administrators."""
    model_config = ConfigDict(frozen=True)

    use_logo_check: bool = False
    use_generic_labels: bool = True
    use_reference_match: bool = False
    required_identifiers: List[str] = Field(default_factory=list)
    identifier_patterns: Dict[str, str] = Field(default_factory=dict)


class ProductProfile(BaseModel):
    """Tenant-scoped product identity plus optional rules and weight table."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    tenant_id: Optional[str] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None
    product_name: Optional[str] = None
    rules: Optional[RuleConfiguration] = None
    weights: Dict[str, int] = Field(default_factory=dict)

    @field_validator("weights")
    @classmethod
    def validate_weights(cls, v: Dict[str, int]) -> Dict[str, int]:
        """Weights are integer points between 0 and 100."""
        for code, weight in v.items():
            if not 0 <= weight <= 100:
                raise ValueError(f"weight for {code} must be between 0 and 100, got {weight}")
        return v

    @property
    def has_rules(self) -> bool:
        return self.rules is not None

    def weight_for(self, key: str, default: int) -> int:
        """Configured weight for a violation key, or the default."""
        value = self.weights.get(key)
        return default if value is None else value

    @classmethod
    def from_metadata(cls, metadata: Optional[Dict[str, Any]], **identity: Any) -> "ProductProfile":
        """
        Build a profile from a stored ``metadata_json`` document.

        An absent, empty or invalid ``rules`` object yields a profile without
        rule configuration; an invalid weight table is dropped.
        """
        metadata = metadata or {}
        rules_doc = metadata.get("rules") or {}
        rules = None
        if rules_doc:
            try:
                rules = RuleConfiguration.model_validate(rules_doc)
            except ValidationError as e:
                logger.warning(
                    "Invalid rule configuration ignored",
                    product_id=identity.get("id"),
                    error=str(e)
                )

        try:
            return cls(rules=rules, weights=metadata.get("weights") or {}, **identity)
        except ValidationError as e:
            logger.warning("Invalid weight table ignored", product_id=identity.get("id"), error=str(e))
            return cls(rules=rules, **identity)

    @classmethod
    def unknown(cls) -> "ProductProfile":
        """Placeholder used when a scan names no product."""
        return cls(brand="Unknown", category="Other")


class ReferenceFingerprint(BaseModel):
    """Stored vision summary of a genuine reference image."""
    model_config = ConfigDict(frozen=True)

    reference_id: Optional[str] = None
    product_id: Optional[str] = None
    dominant_colors: List[DominantColor] = Field(default_factory=list)
    logos: List[LogoAnnotation] = Field(default_factory=list)
    text: TextDetection = Field(default_factory=TextDetection)
    labels: List[LabelAnnotation] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.dominant_colors or self.logos or self.text.text)
