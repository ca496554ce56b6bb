"""Static unit and trait reference data for the configured game set."""

import json
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class UnitInfo(BaseModel):
    """A unit (champion) with its cost and traits."""

    id: str = Field(min_length=1)
    name: str = Field(default="")
    cost: int = Field(default=1, ge=1, le=5, description="Shop cost tier")
    traits: Tuple[str, ...] = Field(default=())


class TraitInfo(BaseModel):
    """A trait and the distinct-unit counts at which it activates."""

    name: str = Field(min_length=1)
    breakpoints: Tuple[int, ...] = Field(default=(1,), description="Ascending activation counts")

    @property
    def first_breakpoint(self) -> int:
        return min(self.breakpoints) if self.breakpoints else 1


class Catalog:
    """Lookup of unit traits and trait breakpoints."""

    def __init__(self, units: Iterable[UnitInfo] = (), traits: Iterable[TraitInfo] = (), set_id: str = ""):
        self.set_id = set_id
        self.units: Dict[str, UnitInfo] = {u.id: u for u in units}
        self.traits: Dict[str, TraitInfo] = {t.name: t for t in traits}

    @classmethod
    def from_file(cls, path: str) -> "Catalog":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        catalog = cls(
            units=[UnitInfo(**u) for u in data.get("units", [])],
            traits=[TraitInfo(**t) for t in data.get("traits", [])],
            set_id=str(data.get("set", "")),
        )
        logger.info(f"Loaded catalog set={catalog.set_id}: {len(catalog.units)} units, {len(catalog.traits)} traits")
        return catalog

    def traits_of(self, unit_id: str) -> Tuple[str, ...]:
        info = self.units.get(unit_id)
        return info.traits if info else ()

    def trait_counts(self, unit_ids: Iterable[str]) -> Dict[str, int]:
        """Distinct units per trait; duplicate copies of a unit count once."""
        counts: Dict[str, int] = {}
        for unit_id in sorted(set(unit_ids)):
            for trait in self.traits_of(unit_id):
                counts[trait] = counts.get(trait, 0) + 1
        return counts

    def active_traits(self, counts: Dict[str, int]) -> List[str]:
        """Traits whose count reaches their first breakpoint (traits missing from the catalog need 1)."""
        active = []
        for trait, count in counts.items():
            info = self.traits.get(trait)
            needed = info.first_breakpoint if info else 1
            if count >= needed:
                active.append(trait)
        return sorted(active)

    def unit(self, unit_id: str) -> Optional[UnitInfo]:
        return self.units.get(unit_id)

    def __len__(self) -> int:
        return len(self.units)
