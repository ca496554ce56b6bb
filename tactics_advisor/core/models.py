# Data models for frames, screen regions and per-region recognition results
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np


class RecognizerType(Enum):  # Which recognizer a region feeds
    TEMPLATE = "template"
    TEXT = "text"


class RecognitionStatus(Enum):  # Outcome of recognizing one field or slot
    OK = "ok"
    BELOW_THRESHOLD = "below_threshold"
    EMPTY = "empty"  # Slot holds nothing (not the same as unknown)
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class Frame:  # Captured screenshot, immutable and owned by one pipeline run
    image: np.ndarray = field(repr=False)  # BGR pixels
    timestamp: float
    resolution: Tuple[int, int]  # width, height

    @classmethod
    def from_array(cls, image: np.ndarray, timestamp: Optional[float] = None) -> "Frame":
        height, width = image.shape[:2]
        return cls(image=image, timestamp=time.time() if timestamp is None else timestamp, resolution=(width, height))

    @classmethod
    def from_bytes(cls, data: bytes, timestamp: Optional[float] = None) -> "Frame":  # Decode PNG/JPEG bytes
        buffer = np.frombuffer(data, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if image is None:
            raise ValueError("Could not decode frame image bytes")
        return cls.from_array(image, timestamp)

    @classmethod
    def from_file(cls, path: str, timestamp: Optional[float] = None) -> "Frame":
        with open(path, "rb") as f:
            return cls.from_bytes(f.read(), timestamp)


@dataclass(frozen=True)
class Region:  # Named rectangle (absolute pixels at the profile resolution) plus recognizer settings
    name: str
    x: int
    y: int
    width: int
    height: int
    recognizer: RecognizerType
    library: str = ""  # Template library (units, stars, items)
    slots: int = 1  # Equal-width slots laid out left to right
    field_name: str = ""  # GameState field a text region feeds
    grammar: str = "integer"  # integer | signed_integer | stage | text
    whitelist: str = ""  # OCR character whitelist
    notes: str = ""

    @property
    def rect(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    @property
    def target(self) -> str:  # Field this region contributes to
        return self.field_name or self.name

    def overlaps(self, other: "Region") -> bool:
        return not (
            self.x + self.width <= other.x
            or other.x + other.width <= self.x
            or self.y + self.height <= other.y
            or other.y + other.height <= self.y
        )

    def scaled(self, sx: float, sy: float) -> "Region":  # Same region at another resolution
        x = int(round(self.x * sx))
        y = int(round(self.y * sy))
        # Scale the far edge so adjacent regions stay adjacent instead of overlapping after rounding
        width = max(1, int(round((self.x + self.width) * sx)) - x)
        height = max(1, int(round((self.y + self.height) * sy)) - y)
        return Region(
            name=self.name,
            x=x,
            y=y,
            width=width,
            height=height,
            recognizer=self.recognizer,
            library=self.library,
            slots=self.slots,
            field_name=self.field_name,
            grammar=self.grammar,
            whitelist=self.whitelist,
            notes=self.notes,
        )

    def slot_rects(self) -> Tuple[Tuple[int, int, int, int], ...]:  # Slot rectangles relative to the region crop
        count = max(1, self.slots)
        rects = []
        for i in range(count):
            x0 = int(round(i * self.width / count))
            x1 = int(round((i + 1) * self.width / count))
            rects.append((x0, 0, max(1, x1 - x0), self.height))
        return tuple(rects)

    @staticmethod
    def from_json(name: str, d: Dict[str, Any]) -> "Region":
        x, y, w, h = d["rect"]
        return Region(
            name=name,
            x=int(x),
            y=int(y),
            width=int(w),
            height=int(h),
            recognizer=RecognizerType(d.get("recognizer", "text")),
            library=d.get("library", ""),
            slots=int(d.get("slots", 1)),
            field_name=d.get("field", ""),
            grammar=d.get("grammar", "integer"),
            whitelist=d.get("whitelist", ""),
            notes=d.get("notes", ""),
        )

    def to_json(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"rect": list(self.rect), "recognizer": self.recognizer.value}
        if self.recognizer is RecognizerType.TEMPLATE:
            d.update({"library": self.library, "slots": self.slots})
        else:
            d.update({"field": self.target, "grammar": self.grammar, "whitelist": self.whitelist})
        if self.notes:
            d["notes"] = self.notes
        return d


@dataclass(frozen=True)
class RegionProfile:  # Resolution-specific table of regions
    resolution: Tuple[int, int]
    regions: Dict[str, Region]
    name: str = ""

    def validate(self) -> None:
        """Raise ValueError when two differently named regions overlap."""
        items = list(self.regions.values())
        for i, first in enumerate(items):
            for second in items[i + 1 :]:
                if first.name != second.name and first.overlaps(second):
                    raise ValueError(
                        f"Profile {self.name or self.resolution}: regions '{first.name}' and '{second.name}' overlap"
                    )

    def by_recognizer(self, recognizer: RecognizerType) -> Dict[str, Region]:
        return {name: r for name, r in self.regions.items() if r.recognizer is recognizer}


@dataclass
class RecognitionResult:  # One recognized field or slot, consumed by the state assembler
    label: str  # Field name, or region[slot] for slot regions
    value: Any
    confidence: float
    region: str
    slot: Optional[int] = None
    status: RecognitionStatus = RecognitionStatus.OK
    processing_time_ms: float = 0.0

    @property
    def known(self) -> bool:
        return self.status is RecognitionStatus.OK and self.value is not None

    @classmethod
    def unknown(
        cls, label: str, region: str, status: RecognitionStatus, confidence: float = 0.0, slot: Optional[int] = None
    ) -> "RecognitionResult":
        return cls(
            label=label,
            value=None,
            confidence=max(0.0, min(1.0, confidence)),
            region=region,
            slot=slot,
            status=status,
        )
