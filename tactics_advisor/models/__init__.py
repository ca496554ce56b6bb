"""Data models module - Pydantic models for game state, compositions and recommendations."""

from .schema import (
    GameEvent,
    GameState,
    UnitSlot,
    CompositionEntry,
    UnitRequirement,
    TraitRequirement,
    CompVariant,
    Recommendation,
    Breakdown,
    UnitMatch,
    TraitMatch,
    SCALAR_FIELDS,
    UNIT_FIELDS,
)

__all__ = [
    "GameEvent",
    "GameState",
    "UnitSlot",
    "CompositionEntry",
    "UnitRequirement",
    "TraitRequirement",
    "CompVariant",
    "Recommendation",
    "Breakdown",
    "UnitMatch",
    "TraitMatch",
    "SCALAR_FIELDS",
    "UNIT_FIELDS",
]
