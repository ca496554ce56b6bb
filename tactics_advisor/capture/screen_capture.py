"""Screen capture using MSS, producing Frames for the pipeline."""

import os
import time
import logging
from typing import Optional, Tuple

import cv2
import mss
import numpy as np
from dotenv import load_dotenv

from ..core.models import Frame

load_dotenv()

logger = logging.getLogger(__name__)

Rect = Tuple[int, int, int, int]  # left, top, width, height


class ScreenCapture:
    """Fast monitor or fixed-rectangle capture using MSS."""

    def __init__(self, monitor_index: Optional[int] = None, bounds: Optional[Rect] = None):
        self.monitor_index = monitor_index or int(os.getenv("DEFAULT_MONITOR", "1"))
        self.bounds = bounds

        logger.info(f"ScreenCapture initialized: monitor={self.monitor_index}, bounds={bounds}")

    def capture_frame(self) -> Frame:
        """Capture the configured area; the timestamp is taken just before the grab."""
        timestamp = time.time()
        image = self.capture_window(self.bounds) if self.bounds else self.capture_monitor()
        return Frame.from_array(image, timestamp)

    def capture_window(self, bounds: Rect) -> np.ndarray:
        """Capture a screen rectangle (e.g. the game window) as a BGR array."""
        left, top, width, height = bounds
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid capture bounds: {bounds}")
        return self._grab({"left": left, "top": top, "width": width, "height": height})

    def capture_monitor(self) -> np.ndarray:
        """Capture a full monitor as a BGR array; an out-of-range index falls back to the primary."""
        with mss.mss() as sct:
            monitors = sct.monitors  # [0] is the union of all monitors
            index = self.monitor_index
            if not 0 < index < len(monitors):
                logger.warning(f"Monitor {index} invalid ({len(monitors) - 1} available), using primary monitor")
                index = 1
            area = dict(monitors[index])
        return self._grab(area)

    @staticmethod
    def _grab(area: dict) -> np.ndarray:
        with mss.mss() as sct:
            bgra = np.asarray(sct.grab(area))
        image = cv2.cvtColor(bgra, cv2.COLOR_BGRA2BGR)
        logger.debug(f"Captured {image.shape[1]}x{image.shape[0]} at ({area['left']}, {area['top']})")
        return image
