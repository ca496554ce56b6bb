"""Tests for file and debug-image helpers."""

import json
import os
import time

import numpy as np

from tactics_advisor.models import GameState
from tactics_advisor.utils import DebugUtils, FileUtils


class TestFileUtils:
    def test_save_json_creates_parents(self, tmp_path):
        path = tmp_path / "out" / "nested" / "state.json"
        assert FileUtils.save_json({"gold": 50}, str(path))
        assert json.loads(path.read_text()) == {"gold": 50}

    def test_save_json_failure_returns_false(self, tmp_path):
        assert FileUtils.save_json({"x": 1}, str(tmp_path)) is False

    def test_cleanup_old_files(self, tmp_path):
        old = tmp_path / "old.png"
        new = tmp_path / "new.png"
        old.write_bytes(b"x")
        new.write_bytes(b"x")
        stale = time.time() - 3 * 3600
        os.utime(old, (stale, stale))

        assert FileUtils.cleanup_old_files(str(tmp_path), "*.png", max_age_hours=1) == 1
        assert not old.exists()
        assert new.exists()


class TestDebugUtils:
    def test_disabled_is_noop(self, tmp_path):
        debug = DebugUtils("")
        assert not debug.enabled
        assert debug.save_debug_image(np.zeros((4, 4, 3), dtype=np.uint8), "crop.png", "gold") is None

    def test_saves_region_crop(self, tmp_path):
        debug = DebugUtils(str(tmp_path / "debug"))
        path = debug.save_debug_image(np.full((4, 4, 3), 200, dtype=np.uint8), "region.png", "gold")

        assert path is not None
        assert os.path.exists(path)
        assert path.endswith("_region_gold.png")

    def test_startup_cleanup_only_removes_old_images(self, tmp_path):
        fresh = tmp_path / "fresh.png"
        old = tmp_path / "old.png"
        fresh.write_bytes(b"x")
        old.write_bytes(b"x")
        stale = time.time() - 48 * 3600
        os.utime(old, (stale, stale))

        DebugUtils(str(tmp_path))

        assert fresh.exists()
        assert not old.exists()

    def test_empty_image_skipped(self, tmp_path):
        debug = DebugUtils(str(tmp_path))
        assert debug.save_debug_image(np.zeros((0, 0, 3), dtype=np.uint8), "region.png") is None


def test_save_json_dumps_models(tmp_path):
    path = tmp_path / "state.json"
    state = GameState(version=2, gold=30, board=())
    assert FileUtils.save_json({"game_state": state, "recommendations": []}, str(path))

    saved = json.loads(path.read_text())
    assert saved["game_state"]["gold"] == 30
    assert saved["game_state"]["board"] == []
    assert [p.name for p in tmp_path.iterdir()] == ["state.json"]
