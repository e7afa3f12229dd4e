"""
Repository for scan jobs.
"""

from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.database import ScanJob
from ...models.enums import JobStatus, ScanType


class ScanJobRepository:
    """Persistence for scan job lifecycle records."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = structlog.get_logger(component="scan_job_repository")

    async def create_job(
        self,
        user_id: str,
        scan_type: ScanType,
        image_path: str,
        tenant_id: Optional[str] = None,
        product_id: Optional[str] = None,
        reference_id: Optional[str] = None
    ) -> ScanJob:
        """Create a PENDING scan job."""
        try:
            job = ScanJob(
                tenant_id=tenant_id,
                user_id=user_id,
                product_id=product_id,
                reference_id=reference_id,
                scan_type=scan_type,
                image_path=image_path,
                status=JobStatus.PENDING
            )
            self.session.add(job)
            await self.session.flush()

            self.logger.info(
                "Scan job created",
                job_id=job.id,
                tenant_id=tenant_id,
                scan_type=scan_type.value
            )
            return job

        except Exception as e:
            self.logger.error("Failed to create scan job", user_id=user_id, error=str(e))
            raise

    async def get_job(self, job_id: str) -> Optional[ScanJob]:
        """Get scan job by ID."""
        try:
            result = await self.session.execute(select(ScanJob).where(ScanJob.id == job_id))
            return result.scalar_one_or_none()

        except Exception as e:
            self.logger.error("Failed to get scan job", job_id=job_id, error=str(e))
            raise

    async def set_status(
        self,
        job: ScanJob,
        status: JobStatus,
        error_message: Optional[str] = None
    ) -> ScanJob:
        """Record a status change and its timestamp."""
        try:
            job.status = status
            now = datetime.utcnow()
            if status == JobStatus.PROCESSING:
                job.started_at = now
            elif status.is_terminal:
                job.completed_at = now
            if error_message is not None:
                job.error_message = error_message

            await self.session.flush()
            return job

        except Exception as e:
            self.logger.error(
                "Failed to update scan job status",
                job_id=job.id,
                status=status.value,
                error=str(e)
            )
            raise

    async def list_jobs_by_status(self, status: JobStatus, limit: int = 100) -> List[ScanJob]:
        """Jobs in a given state, oldest first."""
        try:
            result = await self.session.execute(
                select(ScanJob)
                .where(ScanJob.status == status)
                .order_by(ScanJob.created_at)
                .limit(limit)
            )
            return list(result.scalars().all())

        except Exception as e:
            self.logger.error("Failed to list scan jobs", status=status.value, error=str(e))
            raise
