"""
Vision analysis providers.
"""

from typing import Optional

from ...config.settings import Settings, get_settings
from .base import VisionAnalysisProvider
from .google import GoogleVisionProvider
from .resilient import ResilientVisionProvider
from .static import StaticVisionProvider


def create_vision_provider(settings: Optional[Settings] = None) -> VisionAnalysisProvider:
    """
    Google Vision wrapped so failures yield a fallback signature.

    Without an API key every analysis falls back, which marks scans as
    evaluated without provider data.
    """
    settings = settings or get_settings()
    return ResilientVisionProvider(GoogleVisionProvider(
        api_key=settings.google_vision_api_key,
        endpoint=settings.google_vision_endpoint,
        timeout=settings.vision_timeout_seconds
    ))


__all__ = [
    "VisionAnalysisProvider",
    "GoogleVisionProvider",
    "ResilientVisionProvider",
    "StaticVisionProvider",
    "create_vision_provider",
]
