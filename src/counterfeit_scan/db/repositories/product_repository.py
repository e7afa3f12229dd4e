"""
Repository for product master records.
"""

from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.database import Product
from ...models.product import ProductProfile


def to_profile(product: Product) -> ProductProfile:
    """Convert a product row into the engine's read-only profile."""
    return ProductProfile.from_metadata(
        product.metadata_json,
        id=product.id,
        tenant_id=product.tenant_id,
        brand=product.brand,
        sku=product.sku,
        category=product.category,
        product_name=product.product_name
    )


class ProductRepository:
    """Repository for product lookups."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = structlog.get_logger(component="product_repository")

    async def create_product(self, product_data: Dict[str, Any]) -> Product:
        """
        Create a product record.

        Args:
            product_data: Column values; ``metadata_json`` may carry
                ``rules`` and ``weights``

        Returns:
            Created Product instance
        """
        try:
            product = Product(**product_data)
            self.session.add(product)
            await self.session.flush()

            self.logger.info(
                "Product created",
                product_id=product.id,
                tenant_id=product.tenant_id,
                sku=product.sku
            )
            return product

        except Exception as e:
            self.logger.error("Failed to create product", sku=product_data.get("sku"), error=str(e))
            raise

    async def get_product_record(self, product_id: str) -> Optional[Product]:
        """Get the product row by ID."""
        try:
            result = await self.session.execute(select(Product).where(Product.id == product_id))
            return result.scalar_one_or_none()

        except Exception as e:
            self.logger.error("Failed to get product", product_id=product_id, error=str(e))
            raise

    async def get_product(self, product_id: str) -> Optional[ProductProfile]:
        """Get the product profile used by the evaluation engine."""
        product = await self.get_product_record(product_id)
        return to_profile(product) if product else None

    async def list_products(self, tenant_id: Optional[str] = None) -> List[Product]:
        """Tenant products plus global products, ordered by name."""
        try:
            query = select(Product)
            if tenant_id:
                query = query.where(or_(Product.tenant_id == tenant_id, Product.is_global.is_(True)))
            query = query.order_by(Product.product_name)

            result = await self.session.execute(query)
            return list(result.scalars().all())

        except Exception as e:
            self.logger.error("Failed to list products", tenant_id=tenant_id, error=str(e))
            raise
