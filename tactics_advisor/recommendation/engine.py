"""Scores reference compositions against the observed game state and ranks them."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..config import ScoringWeights
from ..errors import CompositionStoreEmpty
from ..models import (
    Breakdown,
    CompositionEntry,
    CompVariant,
    GameState,
    Recommendation,
    TraitMatch,
    UnitMatch,
)
from .catalog import Catalog
from .composition_store import CompositionStore

logger = logging.getLogger(__name__)

WORST_PLACEMENT = 8.0


@dataclass
class ScoredEntry:
    entry: CompositionEntry
    score: float
    variant: Optional[str]
    breakdown: Breakdown


class RecommendationEngine:
    """Pull-based ranking: given the latest GameState, return the best matching compositions.

    Fields the state reports as unknown are left out of both numerator and denominator of their
    sub-score, so sparse early-game reads do not drag every composition down.
    """

    def __init__(
        self, store: CompositionStore, weights: Optional[ScoringWeights] = None, catalog: Optional[Catalog] = None
    ):
        self.store = store
        self.weights = weights or ScoringWeights()
        self.catalog = catalog

    def recommend(self, state: Optional[GameState]) -> List[Recommendation]:
        try:
            snapshot = self.store.require_snapshot()
        except CompositionStoreEmpty as e:
            logger.info(f"No recommendations: {e}")
            return []

        state = state or GameState.create_empty()
        scored = [self.score_entry(state, entry) for entry in snapshot.entries]

        # sorted() is stable, so equal scores keep store insertion order
        ranked = sorted(scored, key=lambda s: -s.score)
        relevant = [s for s in ranked if s.score >= self.weights.min_score][: max(0, self.weights.max_results)]

        recommendations = [
            Recommendation(
                composition=s.entry, score=s.score, rank=rank, variant=s.variant, breakdown=s.breakdown
            )
            for rank, s in enumerate(relevant, start=1)
        ]
        logger.debug(
            f"Ranked {len(scored)} compositions, returning {len(recommendations)} "
            f"(floor={self.weights.min_score}, cap={self.weights.max_results})"
        )
        return recommendations

    def score_entry(self, state: GameState, entry: CompositionEntry) -> ScoredEntry:
        """Score the base composition and every variant; keep the best (base wins ties)."""
        best: Optional[ScoredEntry] = None
        candidates: Tuple[Optional[CompVariant], ...] = (None,) + tuple(entry.variants)

        for variant in candidates:
            score, breakdown = self.evaluate(state, entry, variant)
            if best is None or score > best.score:
                best = ScoredEntry(entry=entry, score=score, variant=variant.name if variant else None, breakdown=breakdown)

        return best

    def evaluate(
        self, state: GameState, entry: CompositionEntry, variant: Optional[CompVariant] = None
    ) -> Tuple[float, Breakdown]:
        w = self.weights
        unit_part = self._unit_score(state, entry, variant)
        trait_part = self._trait_score(state, entry)
        prior = self._prior(entry)
        conflicting, penalty = self._conflict_penalty(state, entry, variant)

        numerator = w.prior_weight * prior
        denominator = w.prior_weight
        if unit_part["score"] is not None:
            numerator += w.unit_weight * unit_part["score"]
            denominator += w.unit_weight
        if trait_part["score"] is not None:
            numerator += w.trait_weight * trait_part["score"]
            denominator += w.trait_weight

        blended = numerator / denominator if denominator > 0 else 0.0
        score = max(0.0, min(1.0, blended - penalty))

        breakdown = Breakdown(
            held_units=tuple(unit_part["held"]),
            partial_units=tuple(unit_part["partial"]),
            missing_units=tuple(unit_part["missing"]),
            unverified_units=tuple(unit_part["unverified"]),
            active_traits=tuple(trait_part["active"]),
            partial_traits=tuple(trait_part["partial"]),
            missing_traits=tuple(trait_part["missing"]),
            unverified_traits=tuple(trait_part["unverified"]),
            conflicting_units=tuple(conflicting),
            unit_score=unit_part["score"],
            trait_score=trait_part["score"],
            prior_score=prior,
            penalty=penalty,
        )
        return score, breakdown

    def _unit_score(self, state: GameState, entry: CompositionEntry, variant: Optional[CompVariant]) -> dict:
        w = self.weights
        requirements = entry.units_for_variant(variant)
        part = {"score": None, "held": [], "partial": [], "missing": [], "unverified": []}

        if not state.units_known:
            part["unverified"] = [UnitMatch(unit_id=r.unit_id, star_target=r.star_target, core=r.core) for r in requirements]
            return part

        held = state.held_unit_ids()
        numerator = 0.0
        denominator = 0.0
        missing = []

        for req in requirements:
            weight = w.core_weight if req.core else w.flex_weight
            star = held.get(req.unit_id)
            match = UnitMatch(unit_id=req.unit_id, star_target=req.star_target, held_star=star, core=req.core)
            if req.unit_id not in held:
                missing.append((match, weight))
                continue
            denominator += weight
            # Unread star level is no evidence of a shortfall
            if star is None or star >= req.star_target:
                numerator += weight
                part["held"].append(match)
            else:
                numerator += weight * star / req.star_target
                part["partial"].append(match)

        # Each unrecognized slot may hide one of the missing units: no evidence either way
        unverified_count = min(state.unknown_slot_count, len(missing))
        part["unverified"] = [m for m, _ in missing[:unverified_count]]
        for match, weight in missing[unverified_count:]:
            part["missing"].append(match)
            denominator += weight

        if denominator > 0:
            part["score"] = numerator / denominator
        return part

    def _trait_score(self, state: GameState, entry: CompositionEntry) -> dict:
        part = {"score": None, "active": [], "partial": [], "missing": [], "unverified": []}
        if state.traits is None or not entry.traits:
            return part

        # Unrecognized board units may carry any trait, so a deficit they could fill is no evidence
        unknown_slots = state.unknown_board_slot_count
        credit = 0.0
        counted = 0
        for req in entry.traits:
            count = state.traits.get(req.trait, 0)
            match = TraitMatch(trait=req.trait, threshold=req.threshold, count=count)
            if count >= req.threshold:
                credit += 1.0
                part["active"].append(match)
            elif req.threshold - count <= unknown_slots:
                part["unverified"].append(match)
                continue
            elif count > 0:
                credit += count / req.threshold
                part["partial"].append(match)
            else:
                part["missing"].append(match)
            counted += 1

        if counted:
            part["score"] = credit / counted
        return part

    def _prior(self, entry: CompositionEntry) -> float:
        win = max(0.0, min(1.0, entry.win_fraction))
        placement = max(0.0, min(1.0, (WORST_PLACEMENT - entry.avg_placement) / (WORST_PLACEMENT - 1.0)))
        return 0.5 * win + 0.5 * placement

    def _conflict_penalty(
        self, state: GameState, entry: CompositionEntry, variant: Optional[CompVariant]
    ) -> Tuple[List[str], float]:
        if self.weights.conflict_penalty <= 0 or self.catalog is None or state.board is None:
            return [], 0.0

        identity = set(entry.trait_names)
        wanted = {r.unit_id for r in entry.units_for_variant(variant)}
        considered = 0
        conflicting = []

        for unit_id in sorted(set(state.board_unit_ids())):
            unit_traits = self.catalog.traits_of(unit_id)
            if not unit_traits:
                continue
            considered += 1
            if unit_id not in wanted and not identity.intersection(unit_traits):
                conflicting.append(unit_id)

        if considered == 0:
            return [], 0.0
        return conflicting, self.weights.conflict_penalty * len(conflicting) / considered
