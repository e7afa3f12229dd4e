"""
Monthly scan quota gate.

Quota is checked when a scan is submitted and charged once the scan has
been evaluated and persisted. A quota of ``-1`` means unlimited.
"""

from datetime import date
from typing import Optional

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config.database import get_db_session
from ..core.exceptions import NoActivePlanError
from ..db.repositories.plan_repository import PlanRepository, month_period
from ..models.database import Plan
from ..models.enums import ScanType

logger = structlog.get_logger(__name__)

UNLIMITED = -1


class UsageSnapshot(BaseModel):
    """Counters and limits of a tenant for the current month."""
    plan_name: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    local_used: int = 0
    local_quota: int = UNLIMITED
    high_used: int = 0
    high_quota: int = UNLIMITED


class QuotaDecision(BaseModel):
    """Outcome of a quota check."""
    allowed: bool
    message: Optional[str] = None
    usage: Optional[UsageSnapshot] = None


def _exhausted(used: int, quota: int) -> bool:
    return quota != UNLIMITED and used >= quota


class QuotaService:
    """Plan-based scan quota checks and usage accounting."""

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        self.session_maker = session_maker

    async def check_quota(
        self,
        tenant_id: Optional[str],
        scan_type: ScanType,
        is_system_admin: bool = False
    ) -> QuotaDecision:
        """
        Decide whether a tenant may submit another scan of a type.

        Args:
            tenant_id: Tenant of the submitting user, None for tenant-less scans
            scan_type: AI_VISION scans use the high tier, LOCAL and AUTO the local tier
            is_system_admin: System administrators are never limited

        Returns:
            QuotaDecision with the current usage snapshot
        """
        if is_system_admin or not tenant_id:
            return QuotaDecision(allowed=True)

        try:
            usage = await self.get_usage(tenant_id)
        except NoActivePlanError as e:
            logger.warning("Quota check without active plan", tenant_id=tenant_id)
            return QuotaDecision(allowed=False, message=str(e))

        if scan_type == ScanType.AI_VISION:
            if _exhausted(usage.high_used, usage.high_quota):
                logger.info("AI Vision quota exhausted", tenant_id=tenant_id, used=usage.high_used)
                return QuotaDecision(allowed=False, message="AI Vision scan quota exceeded", usage=usage)
        elif _exhausted(usage.local_used, usage.local_quota):
            logger.info("Local quota exhausted", tenant_id=tenant_id, used=usage.local_used)
            return QuotaDecision(allowed=False, message="Local scan quota exceeded", usage=usage)

        return QuotaDecision(allowed=True, usage=usage)

    async def get_usage(self, tenant_id: str, day: Optional[date] = None) -> UsageSnapshot:
        """
        Current month's counters and the limits of the active plan.

        Raises:
            NoActivePlanError: If no plan covers today
        """
        month_start, _ = month_period(day)
        async with get_db_session(self.session_maker) as session:
            repository = PlanRepository(session)
            plan: Optional[Plan] = await repository.get_active_plan(tenant_id)
            if plan is None:
                raise NoActivePlanError("No active plan found for this tenant")

            usage = await repository.get_or_create_usage_period(tenant_id, month_start)
            return UsageSnapshot(
                plan_name=plan.name,
                period_start=usage.period_start,
                period_end=usage.period_end,
                local_used=usage.local_used,
                local_quota=plan.local_quota_per_month,
                high_used=usage.high_used,
                high_quota=plan.high_quota_per_month
            )

    async def increment_usage(self, tenant_id: str, scan_type: ScanType) -> None:
        """Charge one scan to the tenant's counter for this month."""
        async with get_db_session(self.session_maker) as session:
            await PlanRepository(session).increment_usage(tenant_id, scan_type)

        logger.debug("Usage charged", tenant_id=tenant_id, scan_type=scan_type.value)
