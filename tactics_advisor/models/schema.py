"""Pydantic models for the observed game state, reference compositions and recommendations."""

from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

SCALAR_FIELDS = ("stage", "round", "health", "gold", "level", "streak")
UNIT_FIELDS = ("board", "bench")


class GameEvent(Enum):  # Derived by comparing consecutive states
    ROUND_START = "round_start"
    LEVEL_UP = "level_up"
    PLAYER_DAMAGE = "player_damage"
    GOLD_CHANGE = "gold_change"


class UnitSlot(BaseModel):
    """A board or bench slot; unit_id None means the slot is occupied but unrecognized."""

    model_config = ConfigDict(frozen=True)

    location: Literal["board", "bench"] = Field(description="Where the slot is")
    slot: int = Field(ge=0, description="Slot index within the location")
    unit_id: Optional[str] = Field(default=None, description="Recognized unit id, None when unknown")
    star_level: Optional[int] = Field(default=None, ge=1, le=4, description="Star level, None when unknown")
    items: Tuple[str, ...] = Field(default=(), description="Recognized item ids")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Unit recognition confidence")

    @property
    def known(self) -> bool:
        return self.unit_id is not None

    @property
    def key(self) -> str:
        return f"{self.location}[{self.slot}]"


class GameState(BaseModel):
    """Versioned snapshot of everything read from one capture cycle. None means unknown."""

    model_config = ConfigDict(frozen=True)

    version: int = Field(default=0, ge=0, description="Monotonic assembly sequence number")
    timestamp: float = Field(default=0.0, description="Capture time of the frame this state came from")
    stage: Optional[int] = Field(default=None, ge=1, le=9, description="Stage number (the 3 in 3-2)")
    round: Optional[int] = Field(default=None, ge=1, le=9, description="Round within the stage (the 2 in 3-2)")
    health: Optional[int] = Field(default=None, ge=0, le=100)
    gold: Optional[int] = Field(default=None, ge=0)
    level: Optional[int] = Field(default=None, ge=1, le=10)
    streak: Optional[int] = Field(default=None, description="Win streak (positive) or loss streak (negative)")
    board: Optional[Tuple[UnitSlot, ...]] = Field(default=None, description="Board units, None when unobserved")
    bench: Optional[Tuple[UnitSlot, ...]] = Field(default=None, description="Bench units, None when unobserved")
    traits: Optional[Dict[str, int]] = Field(default=None, description="Trait -> distinct board unit count")
    confidence: Dict[str, float] = Field(default_factory=dict, description="Per-field confidence in [0, 1]")
    observed_at: Dict[str, float] = Field(default_factory=dict, description="When each field was last observed")
    carried: Tuple[str, ...] = Field(default=(), description="Fields carried forward from the previous state")

    @field_validator("confidence")
    @classmethod
    def _confidence_in_range(cls, value: Dict[str, float]) -> Dict[str, float]:
        for name, conf in value.items():
            if not 0.0 <= conf <= 1.0:
                raise ValueError(f"confidence for {name} out of range: {conf}")
        return value

    @classmethod
    def create_empty(cls, timestamp: float = 0.0) -> "GameState":
        """State with every field unknown."""
        return cls(timestamp=timestamp, confidence={name: 0.0 for name in SCALAR_FIELDS + UNIT_FIELDS})

    @property
    def stage_label(self) -> Optional[str]:
        if self.stage is None or self.round is None:
            return None
        return f"{self.stage}-{self.round}"

    @property
    def units(self) -> Tuple[UnitSlot, ...]:
        return (self.board or ()) + (self.bench or ())

    @property
    def units_known(self) -> bool:
        return self.board is not None or self.bench is not None

    @property
    def unknown_slot_count(self) -> int:
        return sum(1 for u in self.units if not u.known)

    @property
    def unknown_board_slot_count(self) -> int:
        return sum(1 for u in (self.board or ()) if not u.known)

    def held_unit_ids(self) -> Dict[str, Optional[int]]:
        """Known unit id -> best star level held, None when any copy's star level is unknown."""
        held: Dict[str, Optional[int]] = {}
        for unit in self.units:
            if unit.unit_id is None:
                continue
            if unit.star_level is None or (unit.unit_id in held and held[unit.unit_id] is None):
                held[unit.unit_id] = None
            else:
                held[unit.unit_id] = max(held.get(unit.unit_id) or 0, unit.star_level)
        return held

    def board_unit_ids(self) -> List[str]:
        return [u.unit_id for u in (self.board or ()) if u.unit_id is not None]

    def active_traits(self, catalog) -> List[str]:
        """Traits at or past their first breakpoint; empty when the board is unknown."""
        if self.traits is None or catalog is None:
            return []
        return catalog.active_traits(self.traits)

    def unknown_fields(self) -> List[str]:
        """Names of scalar fields, unit sets and individual unit slots that carry no evidence."""
        unknown = [name for name in SCALAR_FIELDS if getattr(self, name) is None]
        for name in UNIT_FIELDS:
            slots = getattr(self, name)
            if slots is None:
                unknown.append(name)
                continue
            unknown.extend(u.key for u in slots if not u.known)
        return unknown

    def changed_fields(self, other: Optional["GameState"]) -> List[str]:
        """Fields whose value differs from another state (all fields when other is None)."""
        names = SCALAR_FIELDS + UNIT_FIELDS + ("traits",)
        if other is None:
            return list(names)
        return [name for name in names if getattr(self, name) != getattr(other, name)]

    def events_since(self, other: Optional["GameState"]) -> List[GameEvent]:
        """Game events between another state and this one.

        A field only produces an event when it is known in both states, so a value that comes back
        after being unreadable is not reported as a change.
        """
        if other is None:
            return []

        changed = set(self.changed_fields(other))

        def both_known(*names) -> bool:
            return all(getattr(self, n) is not None and getattr(other, n) is not None for n in names)

        events = []
        if changed & {"stage", "round"} and both_known("stage", "round"):
            events.append(GameEvent.ROUND_START)
        if "level" in changed and both_known("level") and self.level > other.level:
            events.append(GameEvent.LEVEL_UP)
        if "health" in changed and both_known("health") and self.health < other.health:
            events.append(GameEvent.PLAYER_DAMAGE)
        if "gold" in changed and both_known("gold"):
            events.append(GameEvent.GOLD_CHANGE)
        return events


class UnitRequirement(BaseModel):
    """A unit a composition wants, with its star target and ideal items."""

    model_config = ConfigDict(frozen=True)

    unit_id: str = Field(min_length=1)
    star_target: int = Field(default=2, ge=1, le=4)
    items: Tuple[str, ...] = Field(default=())
    core: bool = Field(default=True, description="Core units weigh more in matching")


class TraitRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    trait: str = Field(min_length=1)
    threshold: int = Field(ge=1, description="Distinct units needed to activate the wanted breakpoint")


class CompVariant(BaseModel):
    """Alternate version of a composition: each key unit is swapped for its value."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    substitutions: Dict[str, str] = Field(default_factory=dict, description="Replaced unit id -> alternate unit id")


class CompositionEntry(BaseModel):
    """Reference composition with historical statistics."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    units: Tuple[UnitRequirement, ...] = Field(min_length=1)
    traits: Tuple[TraitRequirement, ...] = Field(default=())
    play_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    avg_placement: float = Field(default=4.5, ge=1.0, le=8.0)
    win_rate: float = Field(default=0.0, ge=0.0, le=100.0, description="Fraction (0-1) or percentage (0-100)")
    variants: Tuple[CompVariant, ...] = Field(default=())

    @property
    def win_fraction(self) -> float:
        return self.win_rate / 100.0 if self.win_rate > 1.0 else self.win_rate

    @property
    def trait_names(self) -> Tuple[str, ...]:
        return tuple(t.trait for t in self.traits)

    def units_for_variant(self, variant: Optional[CompVariant]) -> Tuple[UnitRequirement, ...]:
        if variant is None:
            return self.units
        return tuple(
            req.model_copy(update={"unit_id": variant.substitutions[req.unit_id]})
            if req.unit_id in variant.substitutions
            else req
            for req in self.units
        )


class UnitMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    unit_id: str
    star_target: int
    held_star: Optional[int] = None
    core: bool = True


class TraitMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    trait: str
    threshold: int
    count: int = 0


class Breakdown(BaseModel):
    """Per-requirement explanation of a recommendation score."""

    model_config = ConfigDict(frozen=True)

    held_units: Tuple[UnitMatch, ...] = ()
    partial_units: Tuple[UnitMatch, ...] = ()  # Held below the star target
    missing_units: Tuple[UnitMatch, ...] = ()
    unverified_units: Tuple[UnitMatch, ...] = ()  # Possibly in an unrecognized slot
    active_traits: Tuple[TraitMatch, ...] = ()
    partial_traits: Tuple[TraitMatch, ...] = ()
    missing_traits: Tuple[TraitMatch, ...] = ()
    unverified_traits: Tuple[TraitMatch, ...] = ()  # Deficit coverable by unrecognized board slots
    conflicting_units: Tuple[str, ...] = ()
    unit_score: Optional[float] = None  # None when excluded for lack of evidence
    trait_score: Optional[float] = None
    prior_score: float = 0.0
    penalty: float = 0.0


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    composition: CompositionEntry
    score: float = Field(ge=0.0, le=1.0)
    rank: int = Field(default=0, ge=0)
    variant: Optional[str] = None
    breakdown: Breakdown = Field(default_factory=Breakdown)
