"""Game state assembly from per-region recognition results."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..models import GameState, UnitSlot, SCALAR_FIELDS, UNIT_FIELDS
from .models import RecognitionResult, RecognitionStatus
from .validators import split_stage

logger = logging.getLogger(__name__)

DEFAULT_STALENESS_LIMIT = 10.0
ITEMS_PER_UNIT = 3

# Text fields read directly from a region; "stage" also yields "round"
TEXT_FIELDS = ("stage", "health", "gold", "level", "streak")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _star_value(value) -> Optional[int]:
    text = str(value).strip()
    if text.isdigit() and 1 <= int(text) <= 4:
        return int(text)
    return None


class GameStateBuilder:
    """Merges one cycle of recognition results with the previous GameState.

    Fields without usable evidence this cycle keep their last known value and confidence until the
    value is older than the staleness limit. The previous state is never modified.
    """

    def __init__(self, staleness_limit: float = DEFAULT_STALENESS_LIMIT, catalog=None):
        self.staleness_limit = staleness_limit
        self.catalog = catalog
        logger.debug(f"GameStateBuilder initialized (staleness_limit={staleness_limit}s)")

    def build(
        self, results: Iterable[RecognitionResult], previous: Optional[GameState], timestamp: float
    ) -> GameState:
        """Build the next GameState from this cycle's results."""
        results = list(results)
        previous = previous or GameState.create_empty()

        values: Dict[str, object] = {}
        confidence: Dict[str, float] = {}
        observed_at: Dict[str, float] = {}
        carried: List[str] = []

        observed = self._observed_scalars(results)
        for name in SCALAR_FIELDS:
            if name in observed:
                value, conf = observed[name]
                values[name] = value
                confidence[name] = _clamp(conf)
                observed_at[name] = timestamp
            else:
                self._carry(name, previous, timestamp, values, confidence, observed_at, carried)

        for location in UNIT_FIELDS:
            slots = self._observed_units(location, results)
            if slots is not None:
                units, conf = slots
                values[location] = units
                confidence[location] = _clamp(conf)
                observed_at[location] = timestamp
            else:
                self._carry(location, previous, timestamp, values, confidence, observed_at, carried)

        board = values.get("board")
        traits = None
        if board is not None and self.catalog is not None:
            traits = self.catalog.trait_counts(u.unit_id for u in board if u.unit_id is not None)

        state = GameState(
            version=previous.version + 1,
            timestamp=timestamp,
            traits=traits,
            confidence=confidence,
            observed_at=observed_at,
            carried=tuple(carried),
            **values,
        )

        logger.debug(
            f"Built game state v{state.version}: stage={state.stage_label} hp={state.health} gold={state.gold} "
            f"level={state.level} board={len(state.board or ())} bench={len(state.bench or ())} carried={list(carried)}"
        )
        return state

    def _carry(self, name, previous, timestamp, values, confidence, observed_at, carried) -> None:
        value = getattr(previous, name)
        last_seen = previous.observed_at.get(name)

        if value is None or last_seen is None:
            values[name] = None
            confidence[name] = 0.0
            return

        if timestamp - last_seen > self.staleness_limit:
            logger.debug(f"{name} expired: last observed {timestamp - last_seen:.1f}s ago")
            values[name] = None
            confidence[name] = 0.0
            return

        values[name] = value
        confidence[name] = _clamp(previous.confidence.get(name, 0.0))
        observed_at[name] = last_seen
        carried.append(name)

    def _observed_scalars(self, results: List[RecognitionResult]) -> Dict[str, Tuple[object, float]]:
        observed: Dict[str, Tuple[object, float]] = {}
        for result in results:
            if result.slot is not None or result.label not in TEXT_FIELDS or not result.known:
                continue

            if result.label == "stage":
                stage, round_ = split_stage(result.value)
                if stage is None:
                    continue
                observed["stage"] = (stage, result.confidence)
                observed["round"] = (round_, result.confidence)
            else:
                observed[result.label] = (result.value, result.confidence)
        return observed

    def _observed_units(
        self, location: str, results: List[RecognitionResult]
    ) -> Optional[Tuple[Tuple[UnitSlot, ...], float]]:
        """Slots read for one location, or None when its unit region produced no evidence at all."""
        unit_results = self._slot_results(f"{location}_units", results)
        if not unit_results:
            return None

        stars = self._slot_results(f"{location}_stars", results)
        items = self._slot_results(f"{location}_items", results)

        units = []
        for index in sorted(unit_results):
            result = unit_results[index]
            if result.status is RecognitionStatus.EMPTY:
                continue

            if not result.known:
                units.append(UnitSlot(location=location, slot=index, confidence=_clamp(result.confidence)))
                continue

            star_result = stars.get(index)
            star = _star_value(star_result.value) if star_result is not None and star_result.known else None

            unit_items = []
            for item_slot in range(index * ITEMS_PER_UNIT, (index + 1) * ITEMS_PER_UNIT):
                item = items.get(item_slot)
                if item is not None and item.known:
                    unit_items.append(str(item.value))

            units.append(
                UnitSlot(
                    location=location,
                    slot=index,
                    unit_id=str(result.value),
                    star_level=star,
                    items=tuple(unit_items),
                    confidence=_clamp(result.confidence),
                )
            )

        confidences = [_clamp(r.confidence) for r in unit_results.values()]
        return tuple(units), sum(confidences) / len(confidences)

    def _slot_results(self, region_name: str, results: List[RecognitionResult]) -> Dict[int, RecognitionResult]:
        # Whole-region timeouts carry no slot index and count as no evidence
        return {
            r.slot: r
            for r in results
            if r.region == region_name and r.slot is not None and r.status is not RecognitionStatus.TIMEOUT
        }
