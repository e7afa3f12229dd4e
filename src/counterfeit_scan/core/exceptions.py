"""
Exception hierarchy for the scan evaluation engine.
"""

from typing import Optional


class ScanEngineError(Exception):
    """Base class for all engine errors."""


class QuotaExceededError(ScanEngineError):
    """Raised at submission time when the tenant's monthly quota is used up."""

    def __init__(self, message: str, tenant_id: Optional[str] = None, scan_type: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.tenant_id = tenant_id
        self.scan_type = scan_type


class NoActivePlanError(ScanEngineError):
    """Tenant has no plan covering the current date."""


class ScanNotFoundError(ScanEngineError):
    """Scan history record does not exist."""


class JobNotFoundError(ScanEngineError):
    """Scan job does not exist."""


class InvalidJobTransitionError(ScanEngineError):
    """A scan job was asked to move to a state it cannot reach."""

    def __init__(self, job_id: str, current: str, target: str):
        super().__init__(f"Scan job {job_id} cannot move from {current} to {target}")
        self.job_id = job_id
        self.current = current
        self.target = target


class VisionProviderError(ScanEngineError):
    """The vision analysis provider failed or returned an unusable response."""
