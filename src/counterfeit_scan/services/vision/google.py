"""
Google Cloud Vision provider using the REST ``images:annotate`` endpoint.
"""

import base64
from typing import Any, Dict, Optional

import aiofiles
import httpx

from ...config.settings import get_settings
from ...core.exceptions import VisionProviderError
from ...models.enums import Likelihood, VisionOrigin
from ...models.vision import (
    DominantColor,
    LabelAnnotation,
    LogoAnnotation,
    TextDetection,
    VisionSignature,
    rgb_to_hex,
)
from .base import VisionAnalysisProvider

FEATURES = [
    {"type": "LABEL_DETECTION", "maxResults": 10},
    {"type": "LOGO_DETECTION", "maxResults": 5},
    {"type": "TEXT_DETECTION"},
    {"type": "SAFE_SEARCH_DETECTION"},
    {"type": "IMAGE_PROPERTIES"},
]


def _clamp_unit(value: Any) -> float:
    return max(0.0, min(1.0, float(value or 0.0)))


def _hex_color(color: Dict[str, Any]) -> str:
    # Channels equal to zero are omitted from the JSON response
    return rgb_to_hex(tuple(int(round(color.get(channel) or 0)) for channel in ("red", "green", "blue")))


def parse_annotate_response(response: Dict[str, Any]) -> VisionSignature:
    """Map one ``AnnotateImageResponse`` to a VisionSignature."""
    if response.get("error"):
        raise VisionProviderError(response["error"].get("message", "Vision annotation failed"))

    full_text = response.get("fullTextAnnotation") or {}
    pages = full_text.get("pages") or []
    colors = ((response.get("imagePropertiesAnnotation") or {}).get("dominantColors") or {}).get("colors") or []
    spoof = (response.get("safeSearchAnnotation") or {}).get("spoof", Likelihood.UNKNOWN.value)

    return VisionSignature(
        labels=[
            LabelAnnotation(description=label.get("description", ""), score=_clamp_unit(label.get("score")))
            for label in response.get("labelAnnotations") or []
        ],
        logos=[
            LogoAnnotation(description=logo.get("description", ""), score=_clamp_unit(logo.get("score")))
            for logo in response.get("logoAnnotations") or []
        ],
        text=TextDetection(
            text=full_text.get("text", ""),
            confidence=_clamp_unit(pages[0].get("confidence")) if pages else 0.0
        ),
        dominant_colors=[
            DominantColor(
                color=_hex_color(color.get("color") or {}),
                score=float(color.get("score") or 0.0),
                pixel_fraction=float(color.get("pixelFraction") or 0.0)
            )
            for color in colors
        ],
        spoof=Likelihood(spoof) if spoof in Likelihood.__members__ else Likelihood.UNKNOWN,
        origin=VisionOrigin.PROVIDER
    )


class GoogleVisionProvider(VisionAnalysisProvider):
    """Cloud Vision REST client authenticated with an API key."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__("google_vision")
        settings = get_settings()
        self.api_key = api_key or settings.google_vision_api_key
        self.endpoint = endpoint or settings.google_vision_endpoint
        self.timeout = timeout or settings.vision_timeout_seconds
        self._client = client

    async def _read_image(self, image_path: str) -> str:
        try:
            async with aiofiles.open(image_path, "rb") as f:
                content = await f.read()
        except OSError as e:
            raise VisionProviderError(f"Cannot read image {image_path}: {e}") from e
        return base64.b64encode(content).decode("ascii")

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        params = {"key": self.api_key}
        if self._client is not None:
            return await self._client.post(self.endpoint, params=params, json=payload, timeout=self.timeout)
        async with httpx.AsyncClient() as client:
            return await client.post(self.endpoint, params=params, json=payload, timeout=self.timeout)

    async def analyze(self, image_path: str) -> VisionSignature:
        """Annotate an image with label, logo, text, safe-search and color features."""
        if not self.api_key:
            raise VisionProviderError("Google Vision API key is not configured")

        payload = {
            "requests": [{
                "image": {"content": await self._read_image(image_path)},
                "features": FEATURES,
            }]
        }

        try:
            response = await self._post(payload)
        except httpx.TimeoutException as e:
            self.logger.error("Vision request timeout", image_path=image_path)
            raise VisionProviderError("Vision request timed out") from e
        except httpx.HTTPError as e:
            self.logger.error("Vision request failed", image_path=image_path, error=str(e))
            raise VisionProviderError(f"Vision request failed: {e}") from e

        if response.status_code != 200:
            self.logger.error("Vision request rejected", status=response.status_code)
            raise VisionProviderError(f"HTTP {response.status_code}")

        responses = response.json().get("responses") or []
        if not responses:
            raise VisionProviderError("Empty vision response")

        signature = parse_annotate_response(responses[0])
        self.logger.info(
            "Image analyzed",
            image_path=image_path,
            labels=len(signature.labels),
            logos=len(signature.logos)
        )
        return signature
