"""
Repositories wrapping an AsyncSession for each persisted aggregate.
"""

from .plan_repository import PlanRepository, month_period
from .product_repository import ProductRepository
from .reference_repository import ReferenceRepository
from .scan_history_repository import ScanHistoryRepository
from .scan_job_repository import ScanJobRepository

__all__ = [
    "PlanRepository",
    "ProductRepository",
    "ReferenceRepository",
    "ScanHistoryRepository",
    "ScanJobRepository",
    "month_period",
]
