"""
Repository for persisted scan outcomes and their human verification.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import case, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import ScanNotFoundError
from ...models.database import ScanHistory, ScanJob
from ...models.enums import ReviewVerdict, ScanStatus, VisionOrigin
from ...models.evaluation import EvaluationResult


class ScanHistoryRepository:
    """Write sink for evaluation results plus verification and statistics queries."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = structlog.get_logger(component="scan_history_repository")

    async def save_result(
        self,
        job: ScanJob,
        evaluation: EvaluationResult,
        vision_origin: VisionOrigin = VisionOrigin.PROVIDER,
        reference_comparison: Optional[Dict[str, Any]] = None
    ) -> ScanHistory:
        """
        Persist an evaluation result for a scan job.

        Args:
            job: Job the result belongs to, linked through ``job_id``
            evaluation: Immutable evaluation outcome
            vision_origin: Whether the signature came from the provider or the fallback
            reference_comparison: Serialized reference comparison, if one ran

        Returns:
            Created ScanHistory instance
        """
        try:
            history = ScanHistory(
                job_id=job.id,
                tenant_id=job.tenant_id,
                user_id=job.user_id,
                product_id=job.product_id,
                scan_type=job.scan_type,
                image_path=job.image_path,
                status=evaluation.status,
                risk_score=evaluation.risk_score,
                used_mode=evaluation.used_mode,
                violations_json=[v.to_record() for v in evaluation.violations],
                flags_json=evaluation.flags(),
                debug_json=evaluation.debug_info,
                reference_comparison=reference_comparison,
                vision_used=vision_origin == VisionOrigin.PROVIDER,
                vision_origin=vision_origin
            )
            self.session.add(history)
            await self.session.flush()

            self.logger.info(
                "Scan result saved",
                scan_id=history.id,
                job_id=job.id,
                status=evaluation.status.value,
                risk_score=evaluation.risk_score
            )
            return history

        except Exception as e:
            self.logger.error("Failed to save scan result", job_id=job.id, error=str(e))
            raise

    async def get_by_id(self, scan_id: str) -> Optional[ScanHistory]:
        """Get scan history record by ID."""
        try:
            result = await self.session.execute(select(ScanHistory).where(ScanHistory.id == scan_id))
            return result.scalar_one_or_none()

        except Exception as e:
            self.logger.error("Failed to get scan", scan_id=scan_id, error=str(e))
            raise

    async def get_by_job_id(self, job_id: str) -> Optional[ScanHistory]:
        """Get the result recorded for a scan job."""
        try:
            result = await self.session.execute(select(ScanHistory).where(ScanHistory.job_id == job_id))
            return result.scalar_one_or_none()

        except Exception as e:
            self.logger.error("Failed to get scan by job", job_id=job_id, error=str(e))
            raise

    async def list_history(self, tenant_id: Optional[str], limit: int = 50) -> List[ScanHistory]:
        """Scan history of a tenant, newest first."""
        try:
            result = await self.session.execute(
                select(ScanHistory)
                .where(ScanHistory.tenant_id == tenant_id)
                .order_by(desc(ScanHistory.created_at))
                .limit(limit)
            )
            return list(result.scalars().all())

        except Exception as e:
            self.logger.error("Failed to list scan history", tenant_id=tenant_id, error=str(e))
            raise

    async def verify_scan(
        self,
        scan_id: str,
        user_id: str,
        override: Optional[ReviewVerdict],
        notes: Optional[str] = None
    ) -> ScanHistory:
        """
        Record a reviewer's verification of a scan.

        Raises:
            ScanNotFoundError: If the scan does not exist
        """
        scan = await self.get_by_id(scan_id)
        if scan is None:
            raise ScanNotFoundError(f"Scan {scan_id} not found")

        try:
            scan.user_verified = True
            scan.user_override = override
            scan.verification_notes = notes
            scan.verified_at = datetime.utcnow()
            scan.verified_by = user_id
            await self.session.flush()

            self.logger.info(
                "Scan verified",
                scan_id=scan_id,
                override=override.value if override else None
            )
            return scan

        except Exception as e:
            self.logger.error("Failed to verify scan", scan_id=scan_id, error=str(e))
            raise

    async def get_verified_scans(
        self,
        tenant_id: Optional[str] = None,
        product_id: Optional[str] = None
    ) -> List[ScanHistory]:
        """Verified scans, optionally narrowed to a tenant and product."""
        try:
            query = select(ScanHistory).where(ScanHistory.user_verified.is_(True))
            if tenant_id:
                query = query.where(ScanHistory.tenant_id == tenant_id)
            if product_id:
                query = query.where(ScanHistory.product_id == product_id)
            query = query.order_by(desc(ScanHistory.verified_at))

            result = await self.session.execute(query)
            return list(result.scalars().all())

        except Exception as e:
            self.logger.error(
                "Failed to get verified scans",
                tenant_id=tenant_id,
                product_id=product_id,
                error=str(e)
            )
            raise

    async def get_verification_counts(self, tenant_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Aggregate counts used for training statistics.

        A verified scan is correct when the reviewer confirmed the verdict
        direction or did not override it.
        """
        try:
            scope = []
            if tenant_id:
                scope.append(ScanHistory.tenant_id == tenant_id)

            total = await self.session.scalar(select(func.count(ScanHistory.id)).where(*scope))

            verified_scope = scope + [ScanHistory.user_verified.is_(True)]
            correct_case = case(
                (ScanHistory.user_override.is_(None), 1),
                (
                    (ScanHistory.status == ScanStatus.LIKELY_GENUINE)
                    & (ScanHistory.user_override == ReviewVerdict.GENUINE),
                    1
                ),
                (
                    ScanHistory.status.in_([ScanStatus.SUSPICIOUS, ScanStatus.HIGH_RISK])
                    & (ScanHistory.user_override == ReviewVerdict.FAKE),
                    1
                ),
                else_=0
            )
            verified_row = (await self.session.execute(
                select(func.count(ScanHistory.id), func.coalesce(func.sum(correct_case), 0))
                .where(*verified_scope)
            )).one()

            override_rows = (await self.session.execute(
                select(ScanHistory.user_override, func.count(ScanHistory.id))
                .where(*verified_scope, ScanHistory.user_override.is_not(None))
                .group_by(ScanHistory.user_override)
            )).all()

            return {
                "total": total or 0,
                "verified": verified_row[0] or 0,
                "correct": int(verified_row[1] or 0),
                "overrides": {override.value: count for override, count in override_rows},
            }

        except Exception as e:
            self.logger.error("Failed to count verifications", tenant_id=tenant_id, error=str(e))
            raise
