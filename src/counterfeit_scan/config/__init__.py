"""
Configuration package: settings, database wiring and detection profiles.
"""

from .settings import Settings, get_settings
from .detection_profiles import (
    DetectionProfileResolver,
    DetectionProfiles,
    DetectionVocabulary,
    LogoThreshold,
)

__all__ = [
    "Settings",
    "get_settings",
    "DetectionProfileResolver",
    "DetectionProfiles",
    "DetectionVocabulary",
    "LogoThreshold",
]
