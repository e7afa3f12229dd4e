"""
Vision analysis provider interface.

Providers turn an image into a VisionSignature. They may raise
VisionProviderError; callers that must never fail wrap them in
ResilientVisionProvider.
"""

from abc import ABC, abstractmethod

import structlog

from ...models.vision import VisionSignature


class VisionAnalysisProvider(ABC):
    """Abstract base class for vision analysis providers."""

    def __init__(self, provider_name: str):
        self.provider_name = provider_name
        self.logger = structlog.get_logger(__name__, provider=provider_name)

    @abstractmethod
    async def analyze(self, image_path: str) -> VisionSignature:
        """
        Analyze an image.

        Args:
            image_path: Local path of the image to analyze

        Returns:
            VisionSignature with labels, logos, text, colors and spoof likelihood

        Raises:
            VisionProviderError: If the provider is unavailable or fails
        """
        pass
