"""
Pytest configuration and fixtures.
"""

from typing import AsyncGenerator, Iterable, Optional, Sequence, Tuple

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import NullPool

from counterfeit_scan.config.database import create_engine, create_session_maker, get_db_session, init_models
from counterfeit_scan.db.repositories import ScanHistoryRepository, ScanJobRepository
from counterfeit_scan.models import (
    DominantColor,
    EvaluationMode,
    EvaluationResult,
    LabelAnnotation,
    Likelihood,
    LogoAnnotation,
    ScanStatus,
    ScanType,
    TextDetection,
    VisionSignature,
)


def build_signature(
    labels: Iterable[Tuple[str, float]] = (),
    logos: Iterable[Tuple[str, float]] = (),
    text: str = "",
    text_confidence: float = 0.95,
    colors: Iterable[Tuple[str, float, float]] = (),
    spoof: Likelihood = Likelihood.VERY_UNLIKELY
) -> VisionSignature:
    """Vision signature from plain tuples."""
    return VisionSignature(
        labels=[LabelAnnotation(description=d, score=s) for d, s in labels],
        logos=[LogoAnnotation(description=d, score=s) for d, s in logos],
        text=TextDetection(text=text, confidence=text_confidence),
        dominant_colors=[
            DominantColor(color=c, score=score, pixel_fraction=fraction)
            for c, score, fraction in colors
        ],
        spoof=spoof
    )


@pytest.fixture
def make_signature():
    """Factory for vision signatures."""
    return build_signature


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    SQLite engine on a per-test database file with all tables created.

    Each session gets its own connection, so concurrent workers behave
    like they do against a server database.

    Yields:
        AsyncEngine: Test database engine
    """
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'scans.db'}", poolclass=NullPool)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory bound to the in-memory engine."""
    return create_session_maker(engine)


@pytest.fixture
def scan_factory(session_maker):
    """Factory persisting a completed job with a scan history record."""

    async def _create(
        status: ScanStatus = ScanStatus.LIKELY_GENUINE,
        risk_score: int = 20,
        tenant_id: Optional[str] = "tenant-1",
        product_id: Optional[str] = "product-1",
        violations: Sequence = ()
    ) -> str:
        async with get_db_session(session_maker) as session:
            job = await ScanJobRepository(session).create_job(
                user_id="user-1",
                scan_type=ScanType.LOCAL,
                image_path="/uploads/scan.jpg",
                tenant_id=tenant_id,
                product_id=product_id
            )
            evaluation = EvaluationResult(
                status=status,
                risk_score=risk_score,
                violations=list(violations),
                used_mode=EvaluationMode.MASTER_PLUS_CLOUD
            )
            scan = await ScanHistoryRepository(session).save_result(job, evaluation)
            return scan.id

    return _create
