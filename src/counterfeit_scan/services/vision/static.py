"""
Provider returning a fixed signature, for local runs and tests.
"""

from typing import Optional

from ...models.vision import VisionSignature
from .base import VisionAnalysisProvider


class StaticVisionProvider(VisionAnalysisProvider):
    """Returns the same signature for every image."""

    def __init__(self, signature: Optional[VisionSignature] = None):
        super().__init__("static")
        self.signature = signature or VisionSignature()
        self.analyzed_paths = []

    async def analyze(self, image_path: str) -> VisionSignature:
        self.analyzed_paths.append(image_path)
        return self.signature
