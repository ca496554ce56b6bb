"""Recommendation module - composition store, unit/trait catalog and ranking engine."""

from .catalog import Catalog, UnitInfo, TraitInfo
from .composition_store import CompositionStore, StoreSnapshot
from .engine import RecommendationEngine

__all__ = ["Catalog", "UnitInfo", "TraitInfo", "CompositionStore", "StoreSnapshot", "RecommendationEngine"]
