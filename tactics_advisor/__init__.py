"""Tactics advisor - game-state extraction from screen captures and composition recommendations."""

__version__ = "0.1.0"

from .core.orchestrator import ScreenReadingOrchestrator, PipelineResult, StateChange
from .config import Settings, ScoringWeights
from .models import GameEvent, GameState, CompositionEntry, Recommendation
from .recommendation import CompositionStore, RecommendationEngine

__all__ = [
    "ScreenReadingOrchestrator",
    "PipelineResult",
    "StateChange",
    "Settings",
    "ScoringWeights",
    "GameEvent",
    "GameState",
    "CompositionEntry",
    "Recommendation",
    "CompositionStore",
    "RecommendationEngine",
]
