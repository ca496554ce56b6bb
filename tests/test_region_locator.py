"""Tests for region profile loading, resolution lookup and cropping."""

import json

import numpy as np
import pytest

from tactics_advisor.config import DEFAULT_PROFILES_DIR
from tactics_advisor.core.models import Frame, Region, RegionProfile, RecognizerType
from tactics_advisor.core.region_locator import RegionLocator, crop_absolute, load_profile, load_profiles
from tactics_advisor.errors import UnsupportedResolution


def text_region(name, x, y, w, h):
    return Region(name=name, x=x, y=y, width=w, height=h, recognizer=RecognizerType.TEXT, field_name=name)


@pytest.fixture
def locator(profile):
    return RegionLocator([profile])


class TestLocate:
    def test_exact_resolution(self, locator, profile):
        assert locator.locate((640, 360)) is profile

    def test_same_aspect_is_scaled(self, locator):
        scaled = locator.locate((1280, 720))
        assert scaled.resolution == (1280, 720)
        gold = scaled.regions["gold"]
        assert gold.rect == (200, 20, 88, 40)
        assert scaled.regions["board_units"].slots == 7

    def test_closest_area_wins(self, profile):
        big = RegionProfile(resolution=(1920, 1080), regions={"gold": text_region("gold", 0, 0, 30, 30)})
        locator = RegionLocator([profile, big])
        assert locator.locate((1600, 900)).regions["gold"].width == 25
        assert locator.locate((800, 450)).regions["gold"].width == 55

    def test_unsupported_aspect_raises(self, locator):
        with pytest.raises(UnsupportedResolution) as excinfo:
            locator.locate((1024, 768))
        assert excinfo.value.resolution == (1024, 768)
        assert (640, 360) in excinfo.value.known

    def test_zero_size_raises(self, locator):
        with pytest.raises(UnsupportedResolution):
            locator.locate((0, 0))

    def test_duplicate_profiles_rejected(self, profile):
        with pytest.raises(ValueError):
            RegionLocator([profile, profile])

    def test_scaled_regions_stay_disjoint(self, locator):
        for resolution in [(1366, 768), (854, 480), (1600, 900), (1280, 720)]:
            try:
                scaled = locator.locate(resolution)
            except UnsupportedResolution:
                continue
            scaled.validate()


class TestProfiles:
    def test_overlap_rejected(self, tmp_path):
        data = {
            "resolution": [100, 100],
            "regions": {
                "gold": {"rect": [0, 0, 50, 50], "recognizer": "text"},
                "level": {"rect": [40, 40, 20, 20], "recognizer": "text"},
            },
        }
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(data))
        with pytest.raises(ValueError, match="overlap"):
            load_profile(str(path))

    def test_out_of_bounds_rejected(self, tmp_path):
        data = {"resolution": [100, 100], "regions": {"gold": {"rect": [90, 90, 20, 20], "recognizer": "text"}}}
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(data))
        with pytest.raises(ValueError, match="outside"):
            load_profile(str(path))

    def test_missing_resolution_rejected(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"regions": {}}))
        with pytest.raises(ValueError):
            load_profile(str(path))

    def test_region_json_round_trip_keeps_settings(self, profile):
        region = profile.regions["board_items"]
        again = Region.from_json(region.name, region.to_json())
        assert again == region

    def test_packaged_profiles_load(self):
        profiles = load_profiles(str(DEFAULT_PROFILES_DIR))
        resolutions = {p.resolution for p in profiles}
        assert (1920, 1080) in resolutions
        for p in profiles:
            assert {"stage", "gold", "level", "health", "streak", "board_units", "bench_units"} <= set(p.regions)

    def test_slot_rects_tile_the_region(self, profile):
        region = profile.regions["board_items"]
        rects = region.slot_rects()
        assert len(rects) == 21
        assert rects[0][0] == 0
        assert rects[-1][0] + rects[-1][2] == region.width
        for first, second in zip(rects, rects[1:]):
            assert first[0] + first[2] == second[0]


class TestCrop:
    def test_crop_is_copy(self, locator, profile):
        image = np.zeros((360, 640, 3), dtype=np.uint8)
        frame = Frame.from_array(image, 1.0)
        crop = locator.crop(frame, profile.regions["gold"])
        assert crop.shape == (20, 44, 3)
        crop[:] = 255
        assert image.max() == 0

    def test_crop_clamped_to_bounds(self):
        image = np.ones((50, 50), dtype=np.uint8)
        crop = crop_absolute(image, (40, 40, 30, 30))
        assert crop.shape == (10, 10)

    def test_crop_all_covers_every_region(self, locator, profile):
        frame = Frame.from_array(np.zeros((360, 640, 3), dtype=np.uint8), 1.0)
        crops = locator.crop_all(frame, profile)
        assert set(crops) == set(profile.regions)
