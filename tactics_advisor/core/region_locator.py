"""Region profile loading, resolution lookup and region cropping."""

import json
import os
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..errors import UnsupportedResolution
from .models import Frame, Region, RegionProfile

logger = logging.getLogger(__name__)

Resolution = Tuple[int, int]  # width, height

DEFAULT_ASPECT_TOLERANCE = 0.02


def load_profile(path: str) -> RegionProfile:
    """Load one region profile from JSON and check that its regions do not overlap."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    try:
        width, height = data["resolution"]
        regions_data = data["regions"]
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid region profile {path}: {e}") from e

    regions = {}
    for name, region_data in regions_data.items():
        region = Region.from_json(name, region_data)
        if not _region_in_bounds(region, width, height):
            raise ValueError(f"Region '{name}' in {path} lies outside {width}x{height}")
        regions[name] = region

    profile = RegionProfile(resolution=(int(width), int(height)), regions=regions, name=data.get("name", ""))
    profile.validate()
    logger.debug(f"Loaded profile {width}x{height} with {len(regions)} regions from {path}")
    return profile


def load_profiles(profiles_dir: str) -> List[RegionProfile]:
    """Load every *.json profile in a directory."""
    if not os.path.isdir(profiles_dir):
        raise FileNotFoundError(f"Profile directory not found: {profiles_dir}")

    profiles = []
    for file_name in sorted(os.listdir(profiles_dir)):
        if file_name.lower().endswith(".json"):
            profiles.append(load_profile(os.path.join(profiles_dir, file_name)))

    logger.info(f"Loaded {len(profiles)} region profiles from {profiles_dir}")
    return profiles


def _region_in_bounds(region: Region, width: int, height: int) -> bool:
    if region.x < 0 or region.y < 0 or region.width <= 0 or region.height <= 0:
        return False
    return region.x + region.width <= width and region.y + region.height <= height


class RegionLocator:
    """Maps a frame resolution to the region table of the closest known profile."""

    def __init__(self, profiles: Iterable[RegionProfile], aspect_tolerance: float = DEFAULT_ASPECT_TOLERANCE):
        self.profiles: Dict[Resolution, RegionProfile] = {}
        for profile in profiles:
            if profile.resolution in self.profiles:
                raise ValueError(f"Duplicate region profile for {profile.resolution[0]}x{profile.resolution[1]}")
            self.profiles[profile.resolution] = profile
        self.aspect_tolerance = aspect_tolerance

        logger.debug(f"RegionLocator initialized: {len(self.profiles)} profiles, tolerance={aspect_tolerance}")

    @classmethod
    def from_directory(cls, profiles_dir: str, aspect_tolerance: float = DEFAULT_ASPECT_TOLERANCE) -> "RegionLocator":
        return cls(load_profiles(profiles_dir), aspect_tolerance)

    @property
    def known_resolutions(self) -> List[Resolution]:
        return sorted(self.profiles)

    def locate(self, resolution: Resolution) -> RegionProfile:
        """Return the profile for a resolution, scaled from the closest same-aspect profile if needed."""
        width, height = int(resolution[0]), int(resolution[1])
        if width <= 0 or height <= 0:
            raise UnsupportedResolution((width, height), self.known_resolutions)

        exact = self.profiles.get((width, height))
        if exact is not None:
            return exact

        base = self._closest_profile(width, height)
        if base is None:
            raise UnsupportedResolution((width, height), self.known_resolutions)

        sx = width / base.resolution[0]
        sy = height / base.resolution[1]
        regions = {name: region.scaled(sx, sy) for name, region in base.regions.items()}
        logger.debug(f"Scaled profile {base.resolution} to {width}x{height} (sx={sx:.3f}, sy={sy:.3f})")
        return RegionProfile(resolution=(width, height), regions=regions, name=base.name)

    def _closest_profile(self, width: int, height: int) -> Optional[RegionProfile]:
        aspect = width / height
        best = None
        best_distance = None

        for (pw, ph), profile in sorted(self.profiles.items()):
            profile_aspect = pw / ph
            if abs(aspect - profile_aspect) / profile_aspect > self.aspect_tolerance:
                continue
            distance = abs(pw * ph - width * height)
            if best_distance is None or distance < best_distance:
                best, best_distance = profile, distance

        return best

    def crop(self, frame: Frame, region: Region) -> np.ndarray:
        """Crop a region from the frame, clamped to the image bounds."""
        return crop_absolute(frame.image, region.rect)

    def crop_all(self, frame: Frame, profile: RegionProfile) -> Dict[str, np.ndarray]:
        return {name: self.crop(frame, region) for name, region in profile.regions.items()}


def crop_absolute(img: np.ndarray, rect: Tuple[int, int, int, int]) -> np.ndarray:
    x, y, w, h = rect
    height, width = img.shape[:2]

    x = max(0, min(x, width - 1))
    y = max(0, min(y, height - 1))
    w = max(1, min(w, width - x))
    h = max(1, min(h, height - y))

    return img[y : y + h, x : x + w].copy()
