"""Pytest fixtures: synthetic frames, template libraries on disk and a scripted OCR backend."""
import json
import threading
import time
from pathlib import Path

import cv2
import numpy as np
import pytest

from tactics_advisor.config import Settings
from tactics_advisor.core.models import Frame
from tactics_advisor.core.orchestrator import ScreenReadingOrchestrator
from tactics_advisor.core.region_locator import load_profile
from tactics_advisor.ocr import OCREngineHandle

FRAME_SIZE = (640, 360)  # width, height
BACKGROUND = 128

UNIT_IDS = ["annie", "braum", "caitlyn", "darius", "ezreal"]
STAR_LABELS = ["1", "2", "3"]
ITEM_IDS = ["bow", "rod", "sword"]

# Text regions get distinct widths so the scripted OCR can tell them apart after the 2x upscale
TEST_PROFILE = {
    "name": "test-360p",
    "resolution": list(FRAME_SIZE),
    "regions": {
        "stage": {"rect": [10, 10, 60, 20], "recognizer": "text", "field": "stage", "grammar": "stage"},
        "gold": {"rect": [100, 10, 44, 20], "recognizer": "text", "field": "gold", "grammar": "integer"},
        "level": {"rect": [160, 10, 36, 20], "recognizer": "text", "field": "level", "grammar": "integer"},
        "health": {"rect": [210, 10, 48, 20], "recognizer": "text", "field": "health", "grammar": "integer"},
        "streak": {"rect": [270, 10, 52, 20], "recognizer": "text", "field": "streak", "grammar": "signed_integer"},
        "board_stars": {"rect": [20, 60, 350, 20], "recognizer": "template", "library": "stars", "slots": 7},
        "board_units": {"rect": [20, 80, 350, 60], "recognizer": "template", "library": "units", "slots": 7},
        "board_items": {"rect": [20, 140, 350, 20], "recognizer": "template", "library": "items", "slots": 21},
        "bench_units": {"rect": [20, 200, 450, 60], "recognizer": "template", "library": "units", "slots": 9},
    },
}

DEFAULT_TEXTS = {
    "stage": ("3-2", 95.0),
    "gold": ("50", 92.0),
    "level": ("7", 90.0),
    "health": ("64", 93.0),
    "streak": ("-3", 88.0),
}

TEST_CATALOG = {
    "set": "test",
    "traits": [
        {"name": "Arcanist", "breakpoints": [2, 4]},
        {"name": "Guardian", "breakpoints": [2]},
        {"name": "Sniper", "breakpoints": [2]},
    ],
    "units": [
        {"id": "annie", "cost": 1, "traits": ["Arcanist"]},
        {"id": "braum", "cost": 1, "traits": ["Guardian"]},
        {"id": "caitlyn", "cost": 1, "traits": ["Sniper"]},
        {"id": "darius", "cost": 1, "traits": ["Guardian"]},
        {"id": "ezreal", "cost": 2, "traits": ["Sniper", "Arcanist"]},
    ],
}


def noise_patch(seed: int, height: int, width: int = None) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width or height), dtype=np.uint8)


UNIT_PATCHES = {unit: noise_patch(100 + i, 40) for i, unit in enumerate(UNIT_IDS)}
STAR_PATCHES = {label: noise_patch(200 + i, 16) for i, label in enumerate(STAR_LABELS)}
ITEM_PATCHES = {item: noise_patch(300 + i, 14) for i, item in enumerate(ITEM_IDS)}


def blank_image(size=FRAME_SIZE) -> np.ndarray:
    return np.full((size[1], size[0], 3), BACKGROUND, dtype=np.uint8)


def paint_slot(image: np.ndarray, region, index: int, patch: np.ndarray) -> None:
    """Paint a grey patch centred in one slot of a region (3 identical channels)."""
    sx, sy, sw, sh = region.slot_rects()[index]
    ph, pw = patch.shape[:2]
    x = region.x + sx + (sw - pw) // 2
    y = region.y + sy + (sh - ph) // 2
    image[y : y + ph, x : x + pw] = patch[..., None]


def fill_slot(image: np.ndarray, region, index: int, patch: np.ndarray) -> None:
    """Cover a whole slot with a patch (resized to the slot)."""
    sx, sy, sw, sh = region.slot_rects()[index]
    resized = cv2.resize(patch, (sw, sh), interpolation=cv2.INTER_NEAREST)
    image[region.y + sy : region.y + sy + sh, region.x + sx : region.x + sx + sw] = resized[..., None]


class ScriptedOCR:
    """OCR backend stub that answers by the width of the (upscaled) region image."""

    def __init__(self, texts_by_width, gate: threading.Event = None):
        self.texts_by_width = dict(texts_by_width)
        self.gate = gate
        self.calls = 0
        self.closed = False

    def recognise_text(self, image, whitelist=None):
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return self.texts_by_width.get(image.size[0], ("", 0.0))

    def close(self):
        self.closed = True


class FixedOCR:
    """OCR backend stub that always returns the same reading."""

    def __init__(self, text: str, confidence: float = 95.0):
        self.text = text
        self.confidence = confidence
        self.closed = False

    def recognise_text(self, image, whitelist=None):
        return self.text, self.confidence

    def close(self):
        self.closed = True


def texts_by_width(texts) -> dict:
    widths = {}
    for name, region in TEST_PROFILE["regions"].items():
        if region["recognizer"] == "text" and name in texts:
            widths[region["rect"][2] * 2] = texts[name]
    return widths


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def assets_dir(tmp_path) -> Path:
    """Profile, template libraries and catalog written to a temp directory."""
    profiles = tmp_path / "profiles"
    profiles.mkdir()
    (profiles / "640x360.json").write_text(json.dumps(TEST_PROFILE), encoding="utf-8")

    for library, patches in (("units", UNIT_PATCHES), ("stars", STAR_PATCHES), ("items", ITEM_PATCHES)):
        directory = tmp_path / "templates" / library
        directory.mkdir(parents=True)
        for label, patch in patches.items():
            cv2.imwrite(str(directory / f"{label}.png"), patch)

    (tmp_path / "catalog.json").write_text(json.dumps(TEST_CATALOG), encoding="utf-8")
    return tmp_path


@pytest.fixture
def profile(assets_dir):
    return load_profile(str(assets_dir / "profiles" / "640x360.json"))


@pytest.fixture
def settings(assets_dir) -> Settings:
    return Settings(
        profiles_dir=assets_dir / "profiles",
        templates_dir=assets_dir / "templates",
        catalog_path=assets_dir / "catalog.json",
        compositions_path=assets_dir / "compositions.json",
        extraction_budget_s=5.0,
        staleness_limit_s=10.0,
        max_workers=16,
    )


@pytest.fixture
def make_scene(profile):
    """Build a Frame from board/bench placements: (unit, star, items) tuples, None for empty, "noise" for occluded."""

    def build(board=(), bench=(), timestamp: float = 100.0) -> Frame:
        image = blank_image()
        regions = profile.regions
        for index, placement in enumerate(board):
            if placement is None:
                continue
            if placement == "noise":
                fill_slot(image, regions["board_units"], index, noise_patch(999 + index, 60, 50))
                continue
            unit, star, items = placement
            paint_slot(image, regions["board_units"], index, UNIT_PATCHES[unit])
            if star:
                paint_slot(image, regions["board_stars"], index, STAR_PATCHES[star])
            for k, item in enumerate(items):
                paint_slot(image, regions["board_items"], index * 3 + k, ITEM_PATCHES[item])

        for index, placement in enumerate(bench):
            if placement is None:
                continue
            if placement == "noise":
                fill_slot(image, regions["bench_units"], index, noise_patch(555 + index, 60, 50))
                continue
            paint_slot(image, regions["bench_units"], index, UNIT_PATCHES[placement[0]])

        return Frame.from_array(image, timestamp)

    return build


@pytest.fixture
def scripted_ocr() -> ScriptedOCR:
    return ScriptedOCR(texts_by_width(DEFAULT_TEXTS))


@pytest.fixture
def make_orchestrator(settings, scripted_ocr):
    created = []

    def build(**overrides) -> ScreenReadingOrchestrator:
        for key, value in overrides.items():
            setattr(settings, key, value)
        orchestrator = ScreenReadingOrchestrator(settings, engine=OCREngineHandle(factory=lambda: scripted_ocr))
        created.append(orchestrator)
        return orchestrator

    yield build

    if scripted_ocr.gate is not None:
        scripted_ocr.gate.set()
    for orchestrator in created:
        orchestrator.shutdown()
