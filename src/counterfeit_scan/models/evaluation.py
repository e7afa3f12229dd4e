"""
Evaluation result and the canonical risk-to-status mapping.
"""

from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import EvaluationMode, ScanStatus
from .violations import Violation, ViolationCode

MIN_RISK_SCORE = 0
MAX_RISK_SCORE = 100

LIKELY_GENUINE_MAX = 30
SUSPICIOUS_MAX = 60


def clamp_score(value: float) -> int:
    """Clamp a raw score into the inclusive 0-100 range."""
    return int(max(MIN_RISK_SCORE, min(MAX_RISK_SCORE, round(value))))


def map_risk_to_status(score: int) -> ScanStatus:
    """
    Map a clamped risk score to a verdict.

    ``<=30`` likely genuine, ``31-60`` suspicious, ``>60`` high risk.
    """
    if score <= LIKELY_GENUINE_MAX:
        return ScanStatus.LIKELY_GENUINE
    if score <= SUSPICIOUS_MAX:
        return ScanStatus.SUSPICIOUS
    return ScanStatus.HIGH_RISK


class EvaluationResult(BaseModel):
    """Immutable outcome of one scan evaluation."""
    model_config = ConfigDict(frozen=True)

    status: ScanStatus
    risk_score: int = Field(..., ge=MIN_RISK_SCORE, le=MAX_RISK_SCORE)
    violations: List[Violation] = Field(default_factory=list)
    used_mode: EvaluationMode
    debug_info: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_violations(
        cls,
        violations: Iterable[Violation],
        used_mode: EvaluationMode,
        debug_info: Optional[Dict[str, Any]] = None,
        status: Optional[ScanStatus] = None
    ) -> "EvaluationResult":
        """Aggregate violations into a clamped score and its status."""
        violations = list(violations)
        risk_score = clamp_score(sum(v.weight for v in violations))
        return cls(
            status=status or map_risk_to_status(risk_score),
            risk_score=risk_score,
            violations=violations,
            used_mode=used_mode,
            debug_info=debug_info or {}
        )

    def codes(self) -> List[ViolationCode]:
        return [v.code for v in self.violations]

    def find(self, code: ViolationCode) -> List[Violation]:
        """All violations recorded under a code."""
        return [v for v in self.violations if v.code == code]

    def flags(self) -> Dict[str, str]:
        """Flag title to message, later violations overwriting earlier ones."""
        return {v.title: v.message for v in self.violations}
