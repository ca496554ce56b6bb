"""Tests for composition scoring, ranking and score breakdowns."""

import pytest

from tactics_advisor.config import ScoringWeights
from tactics_advisor.models import (
    CompositionEntry,
    CompVariant,
    GameState,
    TraitRequirement,
    UnitRequirement,
    UnitSlot,
)
from tactics_advisor.recommendation import Catalog, CompositionStore, RecommendationEngine, UnitInfo


def board_state(units, traits=None, unknown_slots=0, bench=()):
    """State with the given (unit_id, star) board and optional unknown board slots."""
    board = [
        UnitSlot(location="board", slot=i, unit_id=unit_id, star_level=star, confidence=0.9)
        for i, (unit_id, star) in enumerate(units)
    ]
    for j in range(unknown_slots):
        board.append(UnitSlot(location="board", slot=len(units) + j, confidence=0.3))
    bench_slots = tuple(
        UnitSlot(location="bench", slot=i, unit_id=unit_id, star_level=star, confidence=0.9)
        for i, (unit_id, star) in enumerate(bench)
    )
    return GameState(version=1, timestamp=1.0, board=tuple(board), bench=bench_slots, traits=traits)


def comp(comp_id, units, traits=(), win_rate=0.0, avg_placement=8.0, variants=()):
    return CompositionEntry(
        id=comp_id,
        name=comp_id,
        units=[UnitRequirement(unit_id=u, star_target=2) if isinstance(u, str) else u for u in units],
        traits=[TraitRequirement(trait=t, threshold=n) for t, n in traits],
        win_rate=win_rate,
        avg_placement=avg_placement,
        variants=variants,
    )


def engine_with(*entries, weights=None, catalog=None):
    store = CompositionStore()
    store.replace(entries)
    return RecommendationEngine(store, weights or ScoringWeights(min_score=0.0), catalog)


class TestBreakdown:
    def test_one_missing_unit_and_one_missing_trait(self):
        entry = comp("arcane", ["A", "B", "C"], traits=[("T1", 2), ("T2", 2)])
        state = board_state([("A", 2), ("B", 2)], traits={"T1": 2})

        [rec] = engine_with(entry).recommend(state)
        b = rec.breakdown

        assert [u.unit_id for u in b.held_units] == ["A", "B"]
        assert [u.unit_id for u in b.missing_units] == ["C"]
        assert b.partial_units == ()
        assert b.unverified_units == ()
        assert [t.trait for t in b.active_traits] == ["T1"]
        assert [t.trait for t in b.missing_traits] == ["T2"]
        assert b.unit_score == pytest.approx(2 / 3)
        assert b.trait_score == pytest.approx(0.5)
        assert b.prior_score == pytest.approx(0.0)
        assert rec.score == pytest.approx(0.5 * 2 / 3 + 0.3 * 0.5)
        assert rec.rank == 1

    def test_below_star_target_gets_partial_credit(self):
        entry = comp("reroll", [UnitRequirement(unit_id="A", star_target=3)])
        [rec] = engine_with(entry).recommend(board_state([("A", 2)], traits={}))

        assert [u.unit_id for u in rec.breakdown.partial_units] == ["A"]
        assert rec.breakdown.partial_units[0].held_star == 2
        assert rec.breakdown.unit_score == pytest.approx(2 / 3)

    def test_partial_trait_credit(self):
        entry = comp("t", ["A"], traits=[("T1", 4)])
        [rec] = engine_with(entry).recommend(board_state([("A", 2)], traits={"T1": 3}))
        assert [t.trait for t in rec.breakdown.partial_traits] == ["T1"]
        assert rec.breakdown.trait_score == pytest.approx(0.75)

    def test_core_units_weigh_more(self):
        entry = comp("w", [UnitRequirement(unit_id="A", star_target=1), UnitRequirement(unit_id="B", core=False)])
        [rec] = engine_with(entry).recommend(board_state([("A", 1)], traits={}))
        assert rec.breakdown.unit_score == pytest.approx(2.0 / 3.0)

    def test_bench_units_count_as_held(self):
        entry = comp("b", ["A", "B"])
        [rec] = engine_with(entry).recommend(board_state([("A", 2)], traits={}, bench=[("B", 2)]))
        assert rec.breakdown.unit_score == pytest.approx(1.0)


class TestUnknownHandling:
    def test_unknown_slots_mark_missing_units_unverified(self):
        entry = comp("u", ["A", "B", "C"])
        [rec] = engine_with(entry).recommend(board_state([("A", 2)], traits={}, unknown_slots=1))
        b = rec.breakdown

        assert [u.unit_id for u in b.unverified_units] == ["B"]
        assert [u.unit_id for u in b.missing_units] == ["C"]
        assert b.unit_score == pytest.approx(0.5)

    def test_unread_star_level_is_not_a_shortfall(self):
        entry = comp("s", ["A"])
        [rec] = engine_with(entry).recommend(board_state([("A", None)], traits={}))
        b = rec.breakdown

        assert b.unit_score == pytest.approx(1.0)
        assert b.partial_units == ()
        assert [(u.unit_id, u.held_star) for u in b.held_units] == [("A", None)]

    def test_unread_star_on_any_copy_withholds_star_evidence(self):
        state = board_state([("A", 1)], traits={}, bench=[("A", None)])
        assert state.held_unit_ids() == {"A": None}
        assert board_state([("A", 1), ("A", 2)]).held_unit_ids() == {"A": 2}

    def test_unknown_slots_mark_coverable_traits_unverified(self):
        entry = comp("t", ["A"], traits=[("T", 2), ("U", 3)])
        [rec] = engine_with(entry).recommend(board_state([("A", 2)], traits={"T": 1, "U": 1}, unknown_slots=1))
        b = rec.breakdown

        assert [t.trait for t in b.unverified_traits] == ["T"]
        assert [t.trait for t in b.partial_traits] == ["U"]
        assert b.trait_score == pytest.approx(1 / 3)

    def test_all_traits_unverified_excludes_trait_score(self):
        entry = comp("t", ["A"], traits=[("T", 2)])
        [rec] = engine_with(entry).recommend(board_state([("A", 2)], traits={"T": 1}, unknown_slots=1))

        assert rec.breakdown.trait_score is None
        assert rec.breakdown.partial_traits == ()
        assert [t.trait for t in rec.breakdown.unverified_traits] == ["T"]

    def test_unknown_bench_slot_does_not_cover_traits(self):
        entry = comp("t", ["A"], traits=[("T", 2)])
        state = board_state([("A", 2)], traits={"T": 1})
        state = state.model_copy(update={"bench": (UnitSlot(location="bench", slot=0, confidence=0.2),)})

        [rec] = engine_with(entry).recommend(state)
        assert [t.trait for t in rec.breakdown.partial_traits] == ["T"]
        assert rec.breakdown.trait_score == pytest.approx(0.5)

    def test_unknown_board_excludes_unit_and_trait_scores(self):
        entry = comp("p", ["A", "B"], traits=[("T1", 2)], win_rate=50.0, avg_placement=1.0)
        [rec] = engine_with(entry).recommend(GameState.create_empty())
        b = rec.breakdown

        assert b.unit_score is None
        assert b.trait_score is None
        assert [u.unit_id for u in b.unverified_units] == ["A", "B"]
        assert rec.score == pytest.approx(0.75)

    def test_none_state_treated_as_unknown(self):
        entry = comp("p", ["A"], win_rate=0.4, avg_placement=4.5)
        [rec] = engine_with(entry).recommend(None)
        assert rec.score == pytest.approx(0.5 * 0.4 + 0.5 * 0.5)


class TestRanking:
    def test_sorted_by_score(self):
        weak = comp("weak", ["X", "Y"])
        strong = comp("strong", ["A", "B"])
        recs = engine_with(weak, strong).recommend(board_state([("A", 2), ("B", 2)], traits={}))
        assert [r.composition.id for r in recs] == ["strong", "weak"]
        assert [r.rank for r in recs] == [1, 2]

    def test_ties_keep_store_order(self):
        entries = [comp(name, ["A"], win_rate=20.0, avg_placement=4.0) for name in ("zeta", "alpha", "mid")]
        recs = engine_with(*entries).recommend(board_state([("A", 2)], traits={}))
        assert [r.composition.id for r in recs] == ["zeta", "alpha", "mid"]
        assert len({r.score for r in recs}) == 1

    def test_relevance_floor(self):
        good = comp("good", ["A"], win_rate=50.0, avg_placement=1.0)
        bad = comp("bad", ["A"], win_rate=0.0, avg_placement=8.0)
        recs = engine_with(good, bad, weights=ScoringWeights(min_score=0.15)).recommend(GameState.create_empty())
        assert [r.composition.id for r in recs] == ["good"]

    def test_result_cap(self):
        entries = [comp(f"c{i}", ["A"], win_rate=30.0, avg_placement=3.0) for i in range(6)]
        recs = engine_with(*entries, weights=ScoringWeights(max_results=3, min_score=0.0)).recommend(None)
        assert len(recs) == 3
        assert [r.rank for r in recs] == [1, 2, 3]

    def test_empty_store_returns_nothing(self):
        engine = RecommendationEngine(CompositionStore())
        assert engine.recommend(board_state([("A", 2)])) == []

    def test_scores_within_unit_interval(self):
        entries = [
            comp("a", ["A", "B"], traits=[("T1", 1)], win_rate=100.0, avg_placement=1.0),
            comp("b", ["C"], win_rate=0.0, avg_placement=8.0),
        ]
        weights = ScoringWeights(min_score=0.0, conflict_penalty=5.0)
        catalog = Catalog(units=[UnitInfo(id="A", traits=("T1",)), UnitInfo(id="Z", traits=("T9",))])
        state = board_state([("A", 3), ("B", 3), ("Z", 1)], traits={"T1": 1, "T9": 1})
        for rec in engine_with(*entries, weights=weights, catalog=catalog).recommend(state):
            assert 0.0 <= rec.score <= 1.0


class TestVariantsAndConflicts:
    def test_best_variant_is_reported(self):
        entry = comp("v", ["A", "B"], variants=[CompVariant(name="D swap", substitutions={"B": "D"})])
        [rec] = engine_with(entry).recommend(board_state([("A", 2), ("D", 2)], traits={}))

        assert rec.variant == "D swap"
        assert rec.breakdown.unit_score == pytest.approx(1.0)
        assert [u.unit_id for u in rec.breakdown.held_units] == ["A", "D"]

    def test_base_wins_when_variant_is_no_better(self):
        entry = comp("v", ["A", "B"], variants=[CompVariant(name="D swap", substitutions={"B": "D"})])
        [rec] = engine_with(entry).recommend(board_state([("A", 2), ("B", 2)], traits={}))
        assert rec.variant is None

    def test_conflicting_units_penalized(self):
        catalog = Catalog(
            units=[
                UnitInfo(id="A", traits=("T1",)),
                UnitInfo(id="B", traits=("T1",)),
                UnitInfo(id="Z", traits=("T9",)),
            ]
        )
        entry = comp("c", [UnitRequirement(unit_id="A", star_target=1), UnitRequirement(unit_id="B", star_target=1)], traits=[("T1", 2)])
        state = board_state([("A", 1), ("B", 1), ("Z", 1)], traits={"T1": 2, "T9": 1})

        [rec] = engine_with(entry, catalog=catalog).recommend(state)

        assert rec.breakdown.conflicting_units == ("Z",)
        assert rec.breakdown.penalty == pytest.approx(0.1 / 3)
        assert rec.score == pytest.approx(0.8 - 0.1 / 3)

    def test_no_penalty_without_catalog(self):
        entry = comp("c", ["A"])
        [rec] = engine_with(entry).recommend(board_state([("A", 2), ("Z", 1)], traits={}))
        assert rec.breakdown.penalty == 0.0
        assert rec.breakdown.conflicting_units == ()

    def test_win_rate_accepts_fraction_or_percentage(self):
        assert comp("f", ["A"], win_rate=0.25).win_fraction == pytest.approx(0.25)
        assert comp("p", ["A"], win_rate=25.0).win_fraction == pytest.approx(0.25)
