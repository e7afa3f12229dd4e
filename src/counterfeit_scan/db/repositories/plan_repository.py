"""
Repository for plans, tenant subscriptions and monthly usage counters.
"""

import calendar
from datetime import date, datetime
from typing import Optional, Tuple

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.database import Plan, PlanUsage, TenantPlan
from ...models.enums import ScanType


def month_period(day: Optional[date] = None) -> Tuple[date, date]:
    """First and last day of the calendar month containing ``day``."""
    day = day or datetime.utcnow().date()
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


def usage_column(scan_type: ScanType):
    """Usage counter a scan type is charged to."""
    return PlanUsage.high_used if scan_type == ScanType.AI_VISION else PlanUsage.local_used


class PlanRepository:
    """Plan lookups and race-safe usage accounting."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = structlog.get_logger(component="plan_repository")

    async def create_plan(
        self,
        name: str,
        local_quota_per_month: int,
        high_quota_per_month: int,
        price_per_month: float = 0,
        description: Optional[str] = None
    ) -> Plan:
        """Create a subscription plan (-1 quota means unlimited)."""
        try:
            plan = Plan(
                name=name,
                description=description,
                local_quota_per_month=local_quota_per_month,
                high_quota_per_month=high_quota_per_month,
                price_per_month=price_per_month
            )
            self.session.add(plan)
            await self.session.flush()

            self.logger.info("Plan created", plan_id=plan.id, name=name)
            return plan

        except Exception as e:
            self.logger.error("Failed to create plan", name=name, error=str(e))
            raise

    async def assign_plan(
        self,
        tenant_id: str,
        plan_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> TenantPlan:
        """Subscribe a tenant to a plan for a date range."""
        try:
            tenant_plan = TenantPlan(
                tenant_id=tenant_id,
                plan_id=plan_id,
                start_date=start_date or datetime.utcnow(),
                end_date=end_date
            )
            self.session.add(tenant_plan)
            await self.session.flush()

            self.logger.info("Plan assigned", tenant_id=tenant_id, plan_id=plan_id)
            return tenant_plan

        except Exception as e:
            self.logger.error("Failed to assign plan", tenant_id=tenant_id, plan_id=plan_id, error=str(e))
            raise

    async def get_active_plan(self, tenant_id: str, at: Optional[datetime] = None) -> Optional[Plan]:
        """Plan whose subscription range covers ``at`` (defaults to now)."""
        at = at or datetime.utcnow()
        try:
            result = await self.session.execute(
                select(TenantPlan)
                .where(
                    TenantPlan.tenant_id == tenant_id,
                    TenantPlan.start_date <= at,
                    or_(TenantPlan.end_date.is_(None), TenantPlan.end_date >= at)
                )
                .order_by(TenantPlan.start_date.desc())
                .limit(1)
            )
            tenant_plan = result.unique().scalar_one_or_none()
            return tenant_plan.plan if tenant_plan else None

        except Exception as e:
            self.logger.error("Failed to get active plan", tenant_id=tenant_id, error=str(e))
            raise

    async def get_usage_period(self, tenant_id: str, month_start: date) -> Optional[PlanUsage]:
        """Usage record of a tenant for the month starting at ``month_start``."""
        result = await self.session.execute(
            select(PlanUsage).where(
                PlanUsage.tenant_id == tenant_id,
                PlanUsage.period_start == month_start
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create_usage_period(self, tenant_id: str, month_start: date) -> PlanUsage:
        """
        Resolve the month's usage record, creating it on first use.

        Concurrent creators race on the unique (tenant, period) key; the
        loser re-reads the winner's row.
        """
        period_start, period_end = month_period(month_start)
        try:
            usage = await self.get_usage_period(tenant_id, period_start)
            if usage is not None:
                return usage

            try:
                async with self.session.begin_nested():
                    usage = PlanUsage(
                        tenant_id=tenant_id,
                        period_start=period_start,
                        period_end=period_end,
                        local_used=0,
                        high_used=0
                    )
                    self.session.add(usage)
                self.logger.debug("Usage period created", tenant_id=tenant_id, period_start=str(period_start))
                return usage
            except IntegrityError:
                self.logger.debug("Usage period created concurrently", tenant_id=tenant_id)
                usage = await self.get_usage_period(tenant_id, period_start)
                if usage is None:
                    raise
                return usage

        except Exception as e:
            self.logger.error("Failed to resolve usage period", tenant_id=tenant_id, error=str(e))
            raise

    async def increment_usage(
        self,
        tenant_id: str,
        scan_type: ScanType,
        day: Optional[date] = None
    ) -> None:
        """
        Add one scan to the tenant's counter for the month.

        The increment is a single ``UPDATE ... SET n = n + 1`` so concurrent
        workers never lose counts.
        """
        month_start, _ = month_period(day)
        column = usage_column(scan_type)
        try:
            await self.get_or_create_usage_period(tenant_id, month_start)
            await self.session.execute(
                update(PlanUsage)
                .where(
                    PlanUsage.tenant_id == tenant_id,
                    PlanUsage.period_start == month_start
                )
                .values({column.key: column + 1})
                .execution_options(synchronize_session=False)
            )
            self.logger.debug(
                "Usage incremented",
                tenant_id=tenant_id,
                scan_type=scan_type.value,
                counter=column.key
            )

        except Exception as e:
            self.logger.error(
                "Failed to increment usage",
                tenant_id=tenant_id,
                scan_type=scan_type.value,
                error=str(e)
            )
            raise
