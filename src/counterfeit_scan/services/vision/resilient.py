"""
Provider wrapper that substitutes a fallback signature on failure.
"""

from ...models.vision import VisionSignature, fallback_signature
from .base import VisionAnalysisProvider


class ResilientVisionProvider(VisionAnalysisProvider):
    """Never raises; a failed analysis yields a FALLBACK-tagged signature."""

    def __init__(self, provider: VisionAnalysisProvider):
        super().__init__(f"resilient:{provider.provider_name}")
        self.provider = provider

    async def analyze(self, image_path: str) -> VisionSignature:
        try:
            signature = await self.provider.analyze(image_path)
        except Exception as e:
            self.logger.warning(
                "Vision provider failed, using fallback signature",
                image_path=image_path,
                error=str(e),
                error_type=type(e).__name__
            )
            return fallback_signature()

        # Inner origin is kept; a wrapped fallback stays FALLBACK
        return signature
