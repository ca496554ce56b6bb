"""Saves region crops for offline inspection when a debug directory is configured."""

import os
import time
import logging
from typing import Optional

import cv2
import numpy as np

from .file_utils import FileUtils

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_HOURS = 24.0


class DebugUtils:
    """Debug image output; every call is a no-op while debug_dir is empty."""

    def __init__(self, debug_dir: str = "", auto_cleanup: bool = True, max_age_hours: float = DEFAULT_MAX_AGE_HOURS):
        self.debug_dir = debug_dir
        self.auto_cleanup = auto_cleanup
        self.max_age_hours = max_age_hours

        if self.enabled:
            FileUtils.ensure_directory_exists(self.debug_dir)
            if self.auto_cleanup:
                FileUtils.cleanup_old_files(self.debug_dir, "*.png", self.max_age_hours)
            logger.debug(f"DebugUtils initialized with directory: {debug_dir}")

    @property
    def enabled(self) -> bool:
        return bool(self.debug_dir)

    def save_debug_image(self, image: np.ndarray, filename: str, region_name: str = None) -> Optional[str]:
        """Save debug image with a timestamp prefix."""
        if not self.enabled or image is None or image.size == 0:
            return None

        name_part, ext = os.path.splitext(filename)
        ext = ext or ".png"
        timestamp = int(time.time() * 1000)
        suffix = f"_{region_name}" if region_name else ""
        debug_path = os.path.join(self.debug_dir, f"{timestamp}_{name_part}{suffix}{ext}")

        if cv2.imwrite(debug_path, image):
            logger.debug(f"Saved debug image: {debug_path}")
            return debug_path

        logger.warning(f"Failed to save debug image: {debug_path}")
        return None
