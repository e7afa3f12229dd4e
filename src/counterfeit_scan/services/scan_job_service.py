"""
Asynchronous scan jobs.

A submitted scan becomes a PENDING job and is queued for a bounded pool of
worker tasks. Each worker moves the job through
``PENDING -> PROCESSING -> COMPLETED | FAILED``; there is no cancellation
and no retry. Jobs that do not fit in the bounded queue stay PENDING until
the recovery sweep queues them.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config.database import get_db_session
from ..config.settings import Settings, get_settings
from ..core.exceptions import InvalidJobTransitionError, JobNotFoundError, QuotaExceededError
from ..core.logging import configure_logging, job_log_context
from ..db.repositories.plan_repository import PlanRepository
from ..db.repositories.product_repository import ProductRepository
from ..db.repositories.reference_repository import ReferenceRepository
from ..db.repositories.scan_history_repository import ScanHistoryRepository
from ..db.repositories.scan_job_repository import ScanJobRepository
from ..models.database import ScanHistory, ScanJob
from ..models.enums import EvaluationMode, JobStatus, ScanStatus, ScanType, VisionOrigin
from ..models.evaluation import EvaluationResult
from ..models.product import ProductProfile
from .evaluation_engine import EvaluationEngine
from .quota_service import QuotaService
from .training_service import TrainingRecord
from .vision import VisionAnalysisProvider, create_vision_provider

logger = structlog.get_logger(__name__)

ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


class ScanResultView(BaseModel):
    """Persisted evaluation outcome of a completed job."""
    scan_id: str
    status: ScanStatus
    risk_score: int
    used_mode: EvaluationMode
    violations: List[Dict[str, Any]]
    flags: Dict[str, str]
    vision_origin: VisionOrigin
    reference_comparison: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_history(cls, scan: ScanHistory) -> "ScanResultView":
        return cls(
            scan_id=scan.id,
            status=scan.status,
            risk_score=scan.risk_score,
            used_mode=scan.used_mode,
            violations=scan.violations_json or [],
            flags=scan.flags_json or {},
            vision_origin=scan.vision_origin,
            reference_comparison=scan.reference_comparison,
            created_at=scan.created_at
        )


class JobStatusView(BaseModel):
    """Polling view of a scan job."""
    job_id: str
    status: JobStatus
    error_message: Optional[str] = None
    result: Optional[ScanResultView] = None


def ensure_transition(job: ScanJob, target: JobStatus) -> None:
    """Raise InvalidJobTransitionError unless ``job`` may move to ``target``."""
    if target not in ALLOWED_TRANSITIONS[job.status]:
        raise InvalidJobTransitionError(job.id, job.status.value, target.value)


class ScanJobService:
    """Job submission, the worker pool and job status queries."""

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        vision_provider: Optional[VisionAnalysisProvider] = None,
        engine: Optional[EvaluationEngine] = None,
        quota: Optional[QuotaService] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.session_maker = session_maker
        self.vision_provider = vision_provider or create_vision_provider(self.settings)
        self.engine = engine or EvaluationEngine()
        self.quota = quota or QuotaService(session_maker)

        self.queue: asyncio.Queue = asyncio.Queue(maxsize=self.settings.scan_queue_size)
        self.running_tasks: List[asyncio.Task] = []
        self._queued: Set[str] = set()

        self.logger = structlog.get_logger(component="scan_job_service")

    @property
    def is_running(self) -> bool:
        return bool(self.running_tasks)

    async def submit(
        self,
        user_id: str,
        image_path: str,
        scan_type: ScanType = ScanType.AUTO,
        tenant_id: Optional[str] = None,
        product_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        is_system_admin: bool = False
    ) -> str:
        """
        Submit a scan for asynchronous evaluation.

        Args:
            user_id: Submitting user
            image_path: Path of the uploaded image
            scan_type: Decides which quota counter is charged
            tenant_id: Tenant of the user, None for tenant-less scans
            product_id: Product the scan claims to be
            reference_id: Reference image to compare against
            is_system_admin: Bypasses the quota check

        Returns:
            ID of the PENDING job; returned without waiting for queue space

        Raises:
            QuotaExceededError: If the tenant cannot submit this scan; no job is created
        """
        decision = await self.quota.check_quota(tenant_id, scan_type, is_system_admin)
        if not decision.allowed:
            self.logger.info(
                "Scan rejected by quota",
                tenant_id=tenant_id,
                scan_type=scan_type.value,
                reason=decision.message
            )
            raise QuotaExceededError(decision.message, tenant_id=tenant_id, scan_type=scan_type.value)

        async with get_db_session(self.session_maker) as session:
            job = await ScanJobRepository(session).create_job(
                user_id=user_id,
                scan_type=scan_type,
                image_path=image_path,
                tenant_id=tenant_id,
                product_id=product_id,
                reference_id=reference_id
            )
            job_id = job.id

        await self._enqueue(job_id)
        return job_id

    async def _enqueue(self, job_id: str) -> bool:
        """Queue a job without waiting; a full queue leaves it PENDING for recovery."""
        if job_id in self._queued:
            return True
        try:
            self.queue.put_nowait(job_id)
        except asyncio.QueueFull:
            self.logger.warning("Scan queue full, job left pending", job_id=job_id)
            return False
        self._queued.add(job_id)
        return True

    async def recover_pending(self) -> int:
        """
        Queue PENDING jobs that are not queued yet, up to the free queue space.

        Returns:
            Number of jobs queued
        """
        free = self.queue.maxsize - self.queue.qsize()
        if free <= 0:
            return 0

        async with get_db_session(self.session_maker) as session:
            pending = await ScanJobRepository(session).list_jobs_by_status(
                JobStatus.PENDING, limit=free + len(self._queued)
            )
            job_ids = [job.id for job in pending if job.id not in self._queued]

        recovered = 0
        for job_id in job_ids[:free]:
            if not await self._enqueue(job_id):
                break
            recovered += 1

        if recovered:
            self.logger.info("Pending scan jobs recovered", count=recovered)
        return recovered

    async def start(self, recover_pending: bool = True) -> None:
        """
        Start the worker tasks.

        Args:
            recover_pending: Re-queue PENDING jobs now and sweep for them
                periodically, picking up jobs left by a previous process or
                by a full queue
        """
        if self.is_running:
            return

        configure_logging(self.settings)

        for worker_id in range(self.settings.scan_worker_count):
            self.running_tasks.append(asyncio.create_task(self._worker(worker_id)))
        self.logger.info("Scan workers started", workers=len(self.running_tasks))

        if recover_pending:
            await self.recover_pending()
            self.running_tasks.append(asyncio.create_task(self._recovery_loop()))

    async def _recovery_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.recovery_interval_seconds)
            try:
                await self.recover_pending()
            except Exception as e:
                self.logger.error("Pending job recovery failed", error=str(e))

    async def stop(self, drain: bool = True) -> None:
        """
        Stop the worker tasks.

        Args:
            drain: Wait for every queued job to finish first
        """
        if not self.is_running:
            return

        if drain:
            await self.queue.join()

        for task in self.running_tasks:
            task.cancel()
        await asyncio.gather(*self.running_tasks, return_exceptions=True)
        self.running_tasks = []
        self.logger.info("Scan workers stopped")

    async def _worker(self, worker_id: int) -> None:
        while True:
            job_id = await self.queue.get()
            try:
                await self.process_job(job_id)
            finally:
                self._queued.discard(job_id)
                self.queue.task_done()

    async def process_job(self, job_id: str) -> None:
        """
        Run one job to a terminal state.

        Any exception marks the job FAILED with the exception message.
        """
        with job_log_context(job_id):
            try:
                job = await self._claim(job_id)
                if job is None:
                    return
                with job_log_context(job_id, job.tenant_id):
                    await self._run(job)

            except Exception as e:
                self.logger.error(
                    "Scan job failed",
                    job_id=job_id,
                    error=str(e),
                    error_type=type(e).__name__
                )
                await self._fail(job_id, str(e) or type(e).__name__)

    async def _claim(self, job_id: str) -> Optional[ScanJob]:
        """Move a PENDING job to PROCESSING; None if another worker got it first."""
        async with get_db_session(self.session_maker) as session:
            repository = ScanJobRepository(session)
            job = await repository.get_job(job_id)
            if job is None:
                raise JobNotFoundError(f"Scan job {job_id} not found")
            if job.status != JobStatus.PENDING:
                self.logger.debug("Scan job already claimed", job_id=job_id, status=job.status.value)
                return None

            ensure_transition(job, JobStatus.PROCESSING)
            await repository.set_status(job, JobStatus.PROCESSING)

        self.logger.info("Scan job processing", job_id=job_id)
        return job

    async def _run(self, job: ScanJob) -> None:
        signature = await self.vision_provider.analyze(job.image_path)

        async with get_db_session(self.session_maker) as session:
            product = None
            if job.product_id:
                product = await ProductRepository(session).get_product(job.product_id)
            if product is None:
                if job.product_id:
                    self.logger.warning("Scan product not found", job_id=job.id, product_id=job.product_id)
                product = ProductProfile.unknown()

            records: List[TrainingRecord] = []
            if product.id:
                verified = await ScanHistoryRepository(session).get_verified_scans(job.tenant_id, product.id)
                records = [TrainingRecord.from_history(scan) for scan in verified]

            evaluation = await self.engine.evaluate(
                product,
                signature,
                reference_id=job.reference_id,
                references=ReferenceRepository(session),
                training_records=records
            )

        await self._complete(job.id, evaluation, signature.origin)

    async def _complete(self, job_id: str, evaluation: EvaluationResult, origin: VisionOrigin) -> None:
        """Persist the result, close the job and charge quota in one transaction."""
        async with get_db_session(self.session_maker) as session:
            repository = ScanJobRepository(session)
            job = await repository.get_job(job_id)
            if job is None:
                raise JobNotFoundError(f"Scan job {job_id} not found")

            ensure_transition(job, JobStatus.COMPLETED)
            await ScanHistoryRepository(session).save_result(
                job,
                evaluation,
                vision_origin=origin,
                reference_comparison=evaluation.debug_info.get("reference_comparison")
            )
            await repository.set_status(job, JobStatus.COMPLETED)

            if job.tenant_id:
                await PlanRepository(session).increment_usage(job.tenant_id, job.scan_type)

        self.logger.info(
            "Scan job completed",
            job_id=job_id,
            status=evaluation.status.value,
            risk_score=evaluation.risk_score
        )

    async def _fail(self, job_id: str, message: str) -> None:
        try:
            async with get_db_session(self.session_maker) as session:
                repository = ScanJobRepository(session)
                job = await repository.get_job(job_id)
                if job is None or job.status.is_terminal:
                    return
                ensure_transition(job, JobStatus.FAILED)
                await repository.set_status(job, JobStatus.FAILED, error_message=message)

        except Exception as e:
            self.logger.error("Failed to record scan job failure", job_id=job_id, error=str(e))

    async def get_job(self, job_id: str) -> JobStatusView:
        """
        Current status of a job, with its result once completed.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        async with get_db_session(self.session_maker) as session:
            job = await ScanJobRepository(session).get_job(job_id)
            if job is None:
                raise JobNotFoundError(f"Scan job {job_id} not found")

            result = None
            if job.status == JobStatus.COMPLETED:
                scan = await ScanHistoryRepository(session).get_by_job_id(job_id)
                result = ScanResultView.from_history(scan) if scan else None

            return JobStatusView(
                job_id=job.id,
                status=job.status,
                error_message=job.error_message,
                result=result
            )

    async def wait_for_job(self, job_id: str, timeout: Optional[float] = None) -> JobStatusView:
        """
        Poll until the job reaches a terminal state.

        Raises:
            JobNotFoundError: If the job does not exist
            asyncio.TimeoutError: If ``timeout`` seconds pass first
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        while True:
            view = await self.get_job(job_id)
            if view.status.is_terminal:
                return view
            if deadline is not None and loop.time() >= deadline:
                raise asyncio.TimeoutError(f"Scan job {job_id} still {view.status.value}")
            await asyncio.sleep(self.settings.poll_interval_seconds)

    async def list_history(self, tenant_id: Optional[str], limit: int = 50) -> List[ScanResultView]:
        """Recent results of a tenant, newest first."""
        async with get_db_session(self.session_maker) as session:
            scans = await ScanHistoryRepository(session).list_history(tenant_id, limit)
            return [ScanResultView.from_history(scan) for scan in scans]
