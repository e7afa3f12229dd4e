"""
Repository for genuine product reference images and their fingerprints.
"""

from typing import List, Optional

import structlog
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.database import ProductReference
from ...models.product import ReferenceFingerprint

_IDENTITY_FIELDS = {"reference_id", "product_id"}


def to_fingerprint(reference: ProductReference) -> ReferenceFingerprint:
    """Fingerprint of a reference row; empty when none was stored."""
    stored = dict(reference.fingerprint or {})
    for key in _IDENTITY_FIELDS:
        stored.pop(key, None)
    return ReferenceFingerprint(reference_id=reference.id, product_id=reference.product_id, **stored)


class ReferenceRepository:
    """Read access to reference fingerprints, plus creation for upstream tools."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = structlog.get_logger(component="reference_repository")

    async def create_reference(
        self,
        product_id: str,
        reference_image_path: str,
        fingerprint: Optional[ReferenceFingerprint] = None,
        uploaded_by: Optional[str] = None,
        notes: Optional[str] = None,
        is_active: bool = True
    ) -> ProductReference:
        """Store a reference image with its fingerprint."""
        try:
            reference = ProductReference(
                product_id=product_id,
                reference_image_path=reference_image_path,
                fingerprint=(
                    fingerprint.model_dump(mode="json", exclude=_IDENTITY_FIELDS)
                    if fingerprint is not None else None
                ),
                uploaded_by=uploaded_by,
                notes=notes,
                is_active=is_active
            )
            self.session.add(reference)
            await self.session.flush()

            self.logger.info("Reference created", reference_id=reference.id, product_id=product_id)
            return reference

        except Exception as e:
            self.logger.error("Failed to create reference", product_id=product_id, error=str(e))
            raise

    async def get_fingerprint(self, reference_id: str) -> Optional[ReferenceFingerprint]:
        """
        Get a reference's fingerprint.

        Returns:
            None when the reference does not exist, an empty fingerprint
            when it exists without fingerprint data
        """
        try:
            result = await self.session.execute(
                select(ProductReference).where(ProductReference.id == reference_id)
            )
            reference = result.scalar_one_or_none()
            return to_fingerprint(reference) if reference else None

        except Exception as e:
            self.logger.error("Failed to get fingerprint", reference_id=reference_id, error=str(e))
            raise

    async def list_active_fingerprints(self, product_id: str) -> List[ReferenceFingerprint]:
        """Fingerprints of a product's active references that carry data."""
        try:
            result = await self.session.execute(
                select(ProductReference)
                .where(
                    ProductReference.product_id == product_id,
                    ProductReference.is_active.is_(True)
                )
                .order_by(desc(ProductReference.created_at))
            )
            fingerprints = [to_fingerprint(reference) for reference in result.scalars().all()]
            return [fingerprint for fingerprint in fingerprints if not fingerprint.is_empty]

        except Exception as e:
            self.logger.error("Failed to list fingerprints", product_id=product_id, error=str(e))
            raise
