"""
Vision signature models produced by the vision analysis provider.
"""

import re
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .enums import Likelihood, VisionOrigin

_HEX_COLOR = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)

RGB = Tuple[int, int, int]


def to_rgb(value: Any) -> Optional[RGB]:
    """
    Normalize a color given as hex string or RGB mapping.

    Accepts ``"#1a5f3c"``, ``{"r":..,"g":..,"b":..}``,
    ``{"red":..,"green":..,"blue":..}`` and the provider's nested
    ``{"color": {...}}`` form. Returns None when the value is not a color.
    """
    if isinstance(value, str):
        match = _HEX_COLOR.match(value.strip())
        if not match:
            return None
        return tuple(int(part, 16) for part in match.groups())

    if isinstance(value, dict):
        if "r" in value:
            return (int(value.get("r") or 0), int(value.get("g") or 0), int(value.get("b") or 0))
        if "red" in value:
            return (
                int(round(value.get("red") or 0)),
                int(round(value.get("green") or 0)),
                int(round(value.get("blue") or 0)),
            )
        if "color" in value:
            return to_rgb(value["color"])

    return None


def rgb_to_hex(rgb: Optional[RGB]) -> str:
    """Render an RGB triple as ``#rrggbb``."""
    if not rgb:
        return "#000000"
    return "#" + "".join(f"{max(0, min(255, c)):02x}" for c in rgb)


class LabelAnnotation(BaseModel):
    """Object/scene label with detection confidence."""
    model_config = ConfigDict(frozen=True)

    description: str
    score: float = Field(0.0, ge=0.0, le=1.0)


class LogoAnnotation(BaseModel):
    """Detected brand logo."""
    model_config = ConfigDict(frozen=True)

    description: str
    score: float = Field(0.0, ge=0.0, le=1.0)


class TextDetection(BaseModel):
    """Full OCR text and page confidence."""
    model_config = ConfigDict(frozen=True)

    text: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)


class DominantColor(BaseModel):
    """Dominant color of an image with its pixel share."""
    model_config = ConfigDict(frozen=True)

    color: Union[str, Dict[str, Any]]
    score: float = 0.0
    pixel_fraction: float = 0.0

    @property
    def rgb(self) -> Optional[RGB]:
        return to_rgb(self.color)


class VisionSignature(BaseModel):
    """Structured output of one image analysis."""
    model_config = ConfigDict(frozen=True)

    labels: List[LabelAnnotation] = Field(default_factory=list)
    logos: List[LogoAnnotation] = Field(default_factory=list)
    text: TextDetection = Field(default_factory=TextDetection)
    dominant_colors: List[DominantColor] = Field(default_factory=list)
    spoof: Likelihood = Likelihood.UNKNOWN
    origin: VisionOrigin = VisionOrigin.PROVIDER

    @property
    def is_fallback(self) -> bool:
        return self.origin == VisionOrigin.FALLBACK

    def has_dark_colors(self, luminance_threshold: float = 60.0, min_fraction: float = 0.2) -> bool:
        """True when a dark color covers a meaningful share of the image."""
        for color in self.dominant_colors:
            rgb = color.rgb
            if rgb is None:
                continue
            luminance = 0.2126 * rgb[0] + 0.7152 * rgb[1] + 0.0722 * rgb[2]
            if luminance < luminance_threshold and color.pixel_fraction >= min_fraction:
                return True
        return False


def fallback_signature() -> VisionSignature:
    """Reduced-reliability signature used when the provider is unavailable."""
    return VisionSignature(origin=VisionOrigin.FALLBACK)
