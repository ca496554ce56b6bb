"""Core module - frame and region models, region lookup, field validation and state assembly.

The pipeline orchestrator lives in core.orchestrator and is imported from there.
"""

from .models import Frame, Region, RegionProfile, RecognitionResult, RecognitionStatus, RecognizerType
from .region_locator import RegionLocator, load_profile, load_profiles, crop_absolute
from .validators import TextValidator, get_text_validator, split_stage
from .game_state_builder import GameStateBuilder

__all__ = [
    "Frame",
    "Region",
    "RegionProfile",
    "RecognitionResult",
    "RecognitionStatus",
    "RecognizerType",
    "RegionLocator",
    "load_profile",
    "load_profiles",
    "crop_absolute",
    "TextValidator",
    "get_text_validator",
    "split_stage",
    "GameStateBuilder",
]
