"""Main screen reading pipeline: locate regions, recognize them concurrently, assemble and publish state."""

import os
import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from ..config import Settings
from ..errors import AdvisorError, Cancelled, EngineUnavailable, UnsupportedResolution
from ..models import GameEvent, GameState
from ..ocr import OCREngineHandle, TextExtractor, get_engine_handle
from ..recommendation import Catalog
from ..template_matching import TemplateLibrary, TemplateMatcher, load_libraries
from ..utils import DebugUtils
from .game_state_builder import GameStateBuilder
from .models import Frame, Region, RecognitionResult, RecognitionStatus, RecognizerType
from .region_locator import RegionLocator

logger = logging.getLogger(__name__)


@dataclass
class StateChange:
    """Delivered to subscribers after each published GameState."""

    previous: Optional[GameState]
    current: GameState
    changed_fields: List[str]
    events: List[GameEvent] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""

    game_state: Optional[GameState]  # Current state after the run (the previous one when the run failed)
    success: bool = False
    error: Optional[AdvisorError] = None
    results: List[RecognitionResult] = field(default_factory=list)
    timings: Dict[str, float] = field(default_factory=dict)  # Milliseconds per stage
    generation: int = 0

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, Cancelled)

    def success_rate(self) -> float:
        if not self.results:
            return 0.0
        return sum(1 for r in self.results if r.known) / len(self.results)


Listener = Callable[[StateChange], None]


class ScreenReadingOrchestrator:
    """Runs the extraction pipeline for one game session and owns the current GameState.

    Runs never overlap. A run superseded by a newer submission before it finishes is abandoned
    and its results are not merged.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        locator: Optional[RegionLocator] = None,
        libraries: Optional[Dict[str, TemplateLibrary]] = None,
        engine: Optional[OCREngineHandle] = None,
        catalog: Optional[Catalog] = None,
        matcher: Optional[TemplateMatcher] = None,
        text_extractor: Optional[TextExtractor] = None,
    ):
        self.settings = settings or Settings.from_env()
        s = self.settings

        self.locator = locator or RegionLocator.from_directory(str(s.profiles_dir), s.aspect_tolerance)
        self.libraries = libraries if libraries is not None else load_libraries(str(s.templates_dir), self._library_names())
        self.catalog = catalog if catalog is not None else self._load_catalog(s)
        self.engine = engine or get_engine_handle()

        self.matcher = matcher or TemplateMatcher(s.template_threshold, s.tie_epsilon, s.empty_std_threshold)
        self.text_extractor = text_extractor or TextExtractor(self.engine, threshold=s.ocr_threshold)
        self.builder = GameStateBuilder(s.staleness_limit_s, self.catalog)
        self.debug_utils = DebugUtils(s.debug_dir)

        self._executor = ThreadPoolExecutor(max_workers=max(1, s.max_workers), thread_name_prefix="recognizer")
        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._generation = 0
        self._closed = False

        self._state: Optional[GameState] = None
        self._history = deque(maxlen=max(1, s.history_size))
        self._listeners: List[Listener] = []

        logger.info(
            f"Screen reading system ready: {len(self.locator.profiles)} profiles, "
            f"{sum(len(lib) for lib in self.libraries.values())} templates, budget={s.extraction_budget_s:.2f}s"
        )

    def _library_names(self) -> List[str]:
        names = set()
        for profile in self.locator.profiles.values():
            names.update(r.library for r in profile.by_recognizer(RecognizerType.TEMPLATE).values())
        return sorted(n for n in names if n)

    @staticmethod
    def _load_catalog(settings: Settings) -> Optional[Catalog]:
        if not os.path.exists(settings.catalog_path):
            logger.warning(f"No catalog at {settings.catalog_path}; traits will be unknown")
            return None
        return Catalog.from_file(str(settings.catalog_path))

    @property
    def current_state(self) -> Optional[GameState]:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def history(self) -> List[GameState]:
        with self._state_lock:
            return list(self._history)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state-change listener; returns a callable that unsubscribes it."""
        with self._state_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._state_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def reset(self) -> None:
        """Start a new game session: forget the current state and history.

        A run still in flight is superseded and its results are discarded. Subscribers stay registered.
        """
        with self._state_lock:
            self._generation += 1
            self._state = None
            self._history.clear()
        logger.info("Game state reset for a new session")

    def process_frame(self, frame: Frame) -> PipelineResult:
        """Run the pipeline on one captured frame."""
        with self._state_lock:
            self._generation += 1
            generation = self._generation

        with self._run_lock:
            if self._generation != generation:
                return self._cancelled(generation, "superseded before start")
            if self._closed:
                return PipelineResult(
                    game_state=self._state, error=EngineUnavailable("Pipeline has been shut down"), generation=generation
                )

            start = time.perf_counter()
            timings: Dict[str, float] = {}

            try:
                profile = self.locator.locate(frame.resolution)
            except UnsupportedResolution as e:
                logger.warning(f"Skipping frame: {e}")
                return PipelineResult(game_state=self._state, error=e, generation=generation)

            crops = self.locator.crop_all(frame, profile)
            timings["locate_ms"] = (time.perf_counter() - start) * 1000

            recognize_start = time.perf_counter()
            results, error = self._recognize_all(profile.regions, crops)
            timings["recognize_ms"] = (time.perf_counter() - recognize_start) * 1000

            if error is not None:
                logger.error(f"Pipeline run aborted: {error}")
                return PipelineResult(game_state=self._state, error=error, results=results, timings=timings, generation=generation)

            if self._generation != generation:
                return self._cancelled(generation, "superseded during recognition", results, timings)

            assemble_start = time.perf_counter()
            state = self.builder.build(results, self._state, frame.timestamp)
            self._publish(state)
            timings["assemble_ms"] = (time.perf_counter() - assemble_start) * 1000
            timings["total_ms"] = (time.perf_counter() - start) * 1000

            recognized = sum(1 for r in results if r.known)
            logger.info(
                f"Frame v{state.version}: {recognized}/{len(results)} fields recognized in {timings['total_ms']:.0f}ms"
            )
            return PipelineResult(
                game_state=state, success=True, results=results, timings=timings, generation=generation
            )

    def _recognize_all(self, regions: Dict[str, Region], crops: Dict[str, np.ndarray]):
        """Recognize every region concurrently within the extraction budget."""
        futures = {self._executor.submit(self._recognize_region, crops[name], region): region for name, region in regions.items()}
        done, not_done = wait(futures, timeout=self.settings.extraction_budget_s)

        results: List[RecognitionResult] = []
        error: Optional[AdvisorError] = None

        for future, region in futures.items():
            if future in not_done:
                future.cancel()
                logger.warning(f"Region '{region.name}' exceeded the {self.settings.extraction_budget_s:.2f}s budget")
                results.append(RecognitionResult.unknown(region.target, region.name, RecognitionStatus.TIMEOUT))
                continue

            try:
                results.extend(future.result())
            except EngineUnavailable as e:
                error = e
            except Exception as e:
                logger.error(f"Failed to process region {region.name}: {e}")
                results.append(RecognitionResult.unknown(region.target, region.name, RecognitionStatus.ERROR))

        return results, error

    def _recognize_region(self, crop: np.ndarray, region: Region) -> List[RecognitionResult]:
        self.debug_utils.save_debug_image(crop, "region.png", region.name)

        if region.recognizer is RecognizerType.TEMPLATE:
            library = self.libraries.get(region.library)
            if library is None:
                library = TemplateLibrary(region.library)
            return self.matcher.match_slots(crop, region, library)

        return [self.text_extractor.extract(crop, region)]

    def _publish(self, state: GameState) -> None:
        with self._state_lock:
            previous = self._state
            self._state = state
            self._history.append(state)
            listeners = list(self._listeners)

        change = StateChange(
            previous=previous,
            current=state,
            changed_fields=state.changed_fields(previous),
            events=state.events_since(previous),
        )
        if change.events:
            logger.debug(f"State v{state.version} events: {[e.value for e in change.events]}")
        for listener in listeners:
            try:
                listener(change)
            except Exception as e:
                logger.error(f"State listener failed: {e}")

    def _cancelled(self, generation: int, reason: str, results=None, timings=None) -> PipelineResult:
        logger.info(f"Run {generation} cancelled: {reason}")
        return PipelineResult(
            game_state=self._state,
            error=Cancelled(f"Run {generation} {reason}"),
            results=results or [],
            timings=timings or {},
            generation=generation,
        )

    def shutdown(self) -> None:
        """Release the OCR engine and stop the worker pool. Safe to call more than once."""
        with self._run_lock:
            if self._closed:
                return
            self._closed = True

        self._executor.shutdown(wait=False)
        self.engine.release()
        logger.info("Screen reading system shut down")

    def __enter__(self) -> "ScreenReadingOrchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def print_summary(self, result: PipelineResult, recommendations=None) -> None:
        """Print concise summary to console."""
        print("\n" + "=" * 50)
        print("GAME STATE")
        print("=" * 50)

        state = result.game_state
        if result.error is not None:
            print(f"[FAILED] {type(result.error).__name__}: {result.error}")
        if state is None:
            print("[FAILED] No game state extracted")
            return

        def show(value):
            return "?" if value is None else value

        print(
            f"v{state.version} | Stage: {show(state.stage_label)} | HP: {show(state.health)} | "
            f"Gold: {show(state.gold)} | Level: {show(state.level)} | Streak: {show(state.streak)}"
        )

        for location in ("board", "bench"):
            slots = getattr(state, location)
            if slots is None:
                print(f"\n{location.upper()}: unknown")
                continue
            print(f"\n{location.upper()} ({len(slots)}):")
            for unit in slots:
                star = f" {unit.star_level}*" if unit.star_level else ""
                items = f" [{', '.join(unit.items)}]" if unit.items else ""
                print(f"  {unit.key}: {unit.unit_id or '?'}{star}{items} ({unit.confidence:.2f})")

        if state.traits:
            traits = ", ".join(f"{name} {count}" for name, count in sorted(state.traits.items()))
            print(f"\nTRAITS: {traits}")
            active = state.active_traits(self.catalog)
            if active:
                print(f"ACTIVE: {', '.join(active)}")
        if state.carried:
            print(f"CARRIED: {', '.join(state.carried)}")

        if recommendations is not None:
            print(f"\nRECOMMENDATIONS ({len(recommendations)}):")
            for rec in recommendations:
                variant = f" ({rec.variant})" if rec.variant else ""
                b = rec.breakdown
                print(f"  {rec.rank}. {rec.composition.name}{variant}: {rec.score:.2f}")
                if b.missing_units:
                    print(f"     missing: {', '.join(u.unit_id for u in b.missing_units)}")
                if b.partial_units:
                    print(f"     upgrade: {', '.join(f'{u.unit_id} {u.held_star}/{u.star_target}*' for u in b.partial_units)}")
                if b.unverified_units:
                    print(f"     unverified: {', '.join(u.unit_id for u in b.unverified_units)}")
                needed = b.partial_traits + b.missing_traits
                if needed:
                    print(f"     traits needed: {', '.join(f'{t.trait} {t.count}/{t.threshold}' for t in needed)}")
                if b.unverified_traits:
                    print(f"     traits unverified: {', '.join(t.trait for t in b.unverified_traits)}")

        if result.results:
            known = sum(1 for r in result.results if r.known)
            print(f"\n[SUCCESS] Fields: {known}/{len(result.results)} recognized")
