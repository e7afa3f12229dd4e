"""
Tests for the monthly quota gate.
"""

from datetime import datetime, timedelta

import pytest

from counterfeit_scan.config.database import get_db_session
from counterfeit_scan.core.exceptions import NoActivePlanError
from counterfeit_scan.db.repositories import PlanRepository
from counterfeit_scan.models import ScanType
from counterfeit_scan.services.quota_service import QuotaService


@pytest.fixture
def plan_factory(session_maker):
    """Create a plan and subscribe a tenant to it."""

    async def _subscribe(tenant_id="tenant-1", local_quota=100, high_quota=10, name="Starter", **dates):
        async with get_db_session(session_maker) as session:
            repository = PlanRepository(session)
            plan = await repository.create_plan(name, local_quota, high_quota)
            await repository.assign_plan(tenant_id, plan.id, **dates)
            return plan.id

    return _subscribe


async def use(service, tenant_id, scan_type, times):
    for _ in range(times):
        await service.increment_usage(tenant_id, scan_type)


class TestQuotaService:
    """Test check_quota, increment_usage and get_usage."""

    @pytest.fixture
    def service(self, session_maker):
        return QuotaService(session_maker)

    @pytest.mark.asyncio
    async def test_system_admin_bypasses(self, service):
        decision = await service.check_quota("tenant-1", ScanType.AI_VISION, is_system_admin=True)

        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_tenantless_scan_bypasses(self, service):
        assert (await service.check_quota(None, ScanType.LOCAL)).allowed is True

    @pytest.mark.asyncio
    async def test_no_active_plan(self, service):
        decision = await service.check_quota("tenant-1", ScanType.LOCAL)

        assert decision.allowed is False
        assert decision.message == "No active plan found for this tenant"

    @pytest.mark.asyncio
    async def test_expired_plan_is_not_active(self, service, plan_factory):
        now = datetime.utcnow()
        await plan_factory(start_date=now - timedelta(days=60), end_date=now - timedelta(days=30))

        with pytest.raises(NoActivePlanError):
            await service.get_usage("tenant-1")

    @pytest.mark.asyncio
    async def test_within_quota(self, service, plan_factory):
        await plan_factory(local_quota=5, high_quota=2)

        decision = await service.check_quota("tenant-1", ScanType.LOCAL)

        assert decision.allowed is True
        assert decision.usage.local_used == 0
        assert decision.usage.local_quota == 5

    @pytest.mark.asyncio
    async def test_ai_vision_quota_exceeded(self, service, plan_factory):
        await plan_factory(local_quota=5, high_quota=2)
        await use(service, "tenant-1", ScanType.AI_VISION, 2)

        decision = await service.check_quota("tenant-1", ScanType.AI_VISION)

        assert decision.allowed is False
        assert decision.message == "AI Vision scan quota exceeded"
        assert (await service.check_quota("tenant-1", ScanType.LOCAL)).allowed is True

    @pytest.mark.asyncio
    async def test_auto_scans_use_local_quota(self, service, plan_factory):
        await plan_factory(local_quota=1, high_quota=10)
        await use(service, "tenant-1", ScanType.AUTO, 1)

        decision = await service.check_quota("tenant-1", ScanType.AUTO)

        assert decision.allowed is False
        assert decision.message == "Local scan quota exceeded"

    @pytest.mark.asyncio
    async def test_unlimited_quota(self, service, plan_factory):
        await plan_factory(local_quota=-1, high_quota=-1, name="Enterprise")
        await use(service, "tenant-1", ScanType.AI_VISION, 25)

        decision = await service.check_quota("tenant-1", ScanType.AI_VISION)

        assert decision.allowed is True
        assert decision.usage.high_used == 25

    @pytest.mark.asyncio
    async def test_usage_counts_per_type(self, service, plan_factory):
        await plan_factory()
        await use(service, "tenant-1", ScanType.LOCAL, 3)
        await use(service, "tenant-1", ScanType.AI_VISION, 1)

        usage = await service.get_usage("tenant-1")

        assert usage.plan_name == "Starter"
        assert usage.local_used == 3
        assert usage.high_used == 1
        assert usage.period_start.day == 1
