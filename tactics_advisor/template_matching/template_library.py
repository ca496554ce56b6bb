"""Labeled template image libraries (units, stars, items) loaded once at startup."""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

VARIANT_SEPARATOR = "__"
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp")

EXACT_PRIORITY = 0
VARIANT_PRIORITY = 1


@dataclass(frozen=True)
class Template:
    """One reference image for an entity; lower priority value wins ties."""

    label: str
    image: np.ndarray = field(repr=False)  # Greyscale
    priority: int = EXACT_PRIORITY
    variant: str = ""
    source: str = ""


def to_grey(image: np.ndarray) -> np.ndarray:
    if image.ndim == 3:
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


def parse_template_name(file_name: str) -> Tuple[str, str]:  # "Ahri__chibi.png" -> ("Ahri", "chibi")
    stem = os.path.splitext(os.path.basename(file_name))[0]
    if VARIANT_SEPARATOR in stem:
        label, variant = stem.split(VARIANT_SEPARATOR, 1)
        return label, variant
    return stem, ""


class TemplateLibrary:
    """Ordered collection of templates: exact templates first, then variants, in load order."""

    def __init__(self, name: str, templates: Iterable[Template] = ()):
        self.name = name
        indexed = list(enumerate(templates))
        # Stable ordering by priority keeps file order within each priority band
        self.templates: List[Template] = [t for _, t in sorted(indexed, key=lambda it: (it[1].priority, it[0]))]
        self._resized_cache: Dict[Tuple[int, int, int], np.ndarray] = {}

        logger.debug(f"TemplateLibrary '{name}' ready with {len(self.templates)} templates")

    @classmethod
    def from_directory(cls, name: str, directory: str) -> "TemplateLibrary":
        """Load <label>.png (exact) and <label>__<variant>.png (variant) images from a directory."""
        if not os.path.isdir(directory):
            raise FileNotFoundError(f"Template directory not found: {directory}")

        templates = []
        for file_name in sorted(os.listdir(directory)):
            if not file_name.lower().endswith(IMAGE_EXTENSIONS):
                continue

            path = os.path.join(directory, file_name)
            image = cv2.imread(path, cv2.IMREAD_UNCHANGED)
            if image is None:
                logger.warning(f"Could not load template: {path}")
                continue

            label, variant = parse_template_name(file_name)
            templates.append(
                Template(
                    label=label,
                    image=to_grey(image),
                    priority=VARIANT_PRIORITY if variant else EXACT_PRIORITY,
                    variant=variant,
                    source=path,
                )
            )

        logger.info(f"Loaded {len(templates)} templates for library '{name}' from {directory}")
        return cls(name, templates)

    @property
    def labels(self) -> List[str]:
        seen = []
        for template in self.templates:
            if template.label not in seen:
                seen.append(template.label)
        return seen

    def sized_for(self, index: int, slot_shape: Tuple[int, int]) -> Optional[np.ndarray]:
        """Template `index` shrunk to fit inside a slot of (height, width); cached per slot size."""
        slot_h, slot_w = slot_shape
        key = (index, slot_h, slot_w)
        cached = self._resized_cache.get(key)
        if cached is not None:
            return cached

        image = self.templates[index].image
        h, w = image.shape[:2]
        if h <= slot_h and w <= slot_w:
            resized = image
        else:
            scale = min(slot_h / h, slot_w / w)
            new_w, new_h = max(1, int(w * scale)), max(1, int(h * scale))
            if new_w < 4 or new_h < 4:
                return None
            resized = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)

        self._resized_cache[key] = resized
        return resized

    def __len__(self) -> int:
        return len(self.templates)

    def __iter__(self):
        return iter(self.templates)


def load_libraries(templates_dir: str, names: Iterable[str]) -> Dict[str, TemplateLibrary]:
    """Load one library per sub-directory name; missing directories give empty libraries."""
    libraries = {}
    for name in names:
        directory = os.path.join(templates_dir, name)
        if os.path.isdir(directory):
            libraries[name] = TemplateLibrary.from_directory(name, directory)
        else:
            logger.warning(f"No template directory for library '{name}' at {directory}")
            libraries[name] = TemplateLibrary(name)
    return libraries
