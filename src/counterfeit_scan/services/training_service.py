"""
Human verification capture and the feedback-driven training adjustment.

The adjustment is a two-centroid heuristic: a new score moves toward the
mean risk of verified genuine scans or verified fake scans, whichever is
closer. It is not a learned model.
"""

from typing import Any, Dict, List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config.database import get_db_session
from ..config.settings import get_settings
from ..db.repositories.scan_history_repository import ScanHistoryRepository
from ..models.database import ScanHistory
from ..models.enums import ReviewVerdict, ScanStatus

logger = structlog.get_logger(__name__)


class TrainingRecord(BaseModel):
    """Verified scan outcome used as training input."""
    scan_id: Optional[str] = None
    risk_score: int
    status: ScanStatus
    user_override: Optional[ReviewVerdict] = None
    flags: Dict[str, str] = Field(default_factory=dict)
    reference_comparison: Optional[Dict[str, Any]] = None

    @property
    def is_genuine(self) -> bool:
        if self.user_override is not None:
            return self.user_override == ReviewVerdict.GENUINE
        return self.status == ScanStatus.LIKELY_GENUINE

    @classmethod
    def from_history(cls, scan: ScanHistory) -> "TrainingRecord":
        return cls(
            scan_id=scan.id,
            risk_score=scan.risk_score,
            status=scan.status,
            user_override=scan.user_override,
            flags=scan.flags_json or {},
            reference_comparison=scan.reference_comparison
        )


class TrainingAdjustment(BaseModel):
    """Score nudge derived from verified history."""
    adjustment: int = 0
    reason: str
    genuine_mean: Optional[float] = None
    fake_mean: Optional[float] = None


class TrainingAdjuster:
    """Centroid comparison against verified genuine and fake scans."""

    def __init__(self, min_records: Optional[int] = None, adjustment_points: Optional[int] = None):
        settings = get_settings()
        self.min_records = min_records if min_records is not None else settings.training_min_records
        self.adjustment_points = (
            adjustment_points if adjustment_points is not None else settings.training_adjustment_points
        )

    def calculate(self, current_risk_score: float, records: Sequence[TrainingRecord]) -> TrainingAdjustment:
        """
        Adjustment for a score given the product's verified scans.

        Args:
            current_risk_score: Score before the adjustment
            records: Verified scans for the same product

        Returns:
            TrainingAdjustment of ``-points``, ``0`` or ``+points``
        """
        if len(records) < self.min_records:
            return TrainingAdjustment(reason="Insufficient training data")

        genuine = [r.risk_score for r in records if r.is_genuine]
        fake = [r.risk_score for r in records if not r.is_genuine]
        if not genuine or not fake:
            return TrainingAdjustment(reason="Need both genuine and fake examples")

        genuine_mean = sum(genuine) / len(genuine)
        fake_mean = sum(fake) / len(fake)

        if abs(current_risk_score - genuine_mean) < abs(current_risk_score - fake_mean):
            adjustment = -self.adjustment_points
            reason = f"Pattern matches {len(genuine)} verified genuine products"
        else:
            adjustment = self.adjustment_points
            reason = f"Pattern matches {len(fake)} verified fake products"

        return TrainingAdjustment(
            adjustment=adjustment,
            reason=reason,
            genuine_mean=genuine_mean,
            fake_mean=fake_mean
        )


class TrainingService:
    """Verification workflow and training data access."""

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        self.session_maker = session_maker

    async def verify_scan(
        self,
        scan_id: str,
        user_id: str,
        override: Optional[ReviewVerdict] = None,
        notes: Optional[str] = None
    ) -> ScanHistory:
        """
        Mark a scan as verified by a reviewer.

        Args:
            scan_id: Scan history record ID
            user_id: Reviewer ID
            override: GENUINE or FAKE, or None when the verdict was right
            notes: Free-form reviewer notes

        Raises:
            ScanNotFoundError: If the scan does not exist
        """
        async with get_db_session(self.session_maker) as session:
            scan = await ScanHistoryRepository(session).verify_scan(scan_id, user_id, override, notes)

        logger.info("Scan verification recorded", scan_id=scan_id, user_id=user_id)
        return scan

    async def get_training_stats(self, tenant_id: Optional[str] = None) -> Dict[str, Any]:
        """Verification coverage and accuracy, for one tenant or overall."""
        async with get_db_session(self.session_maker) as session:
            counts = await ScanHistoryRepository(session).get_verification_counts(tenant_id)

        total, verified, correct = counts["total"], counts["verified"], counts["correct"]
        return {
            "total_scans": total,
            "verified_scans": verified,
            "verification_rate": round(verified / total * 100, 2) if total else 0.0,
            "overrides": counts["overrides"],
            "accuracy": round(correct / verified * 100, 2) if verified else 0.0,
        }

    async def get_training_data(
        self,
        tenant_id: Optional[str] = None,
        product_id: Optional[str] = None
    ) -> List[TrainingRecord]:
        """Verified scans, optionally narrowed to a tenant and product."""
        async with get_db_session(self.session_maker) as session:
            scans = await ScanHistoryRepository(session).get_verified_scans(tenant_id, product_id)
            return [TrainingRecord.from_history(scan) for scan in scans]
