# Configuration: environment-driven settings and packaged asset locations
from .settings import (
    Settings,
    ScoringWeights,
    CONFIG_DIR,
    DEFAULT_PROFILES_DIR,
    DEFAULT_TEMPLATES_DIR,
    DEFAULT_CATALOG_PATH,
    DEFAULT_COMPOSITIONS_PATH,
)

__all__ = [
    "Settings",
    "ScoringWeights",
    "CONFIG_DIR",
    "DEFAULT_PROFILES_DIR",
    "DEFAULT_TEMPLATES_DIR",
    "DEFAULT_CATALOG_PATH",
    "DEFAULT_COMPOSITIONS_PATH",
]
