"""Template matching for recognizing units, star levels and items in pre-aligned slot strips."""

import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..core.models import Region, RecognitionResult, RecognitionStatus
from .template_library import TemplateLibrary, to_grey

logger = logging.getLogger(__name__)

# Template matching configuration
DEFAULT_THRESHOLD = 0.80
DEFAULT_TIE_EPSILON = 1e-3
DEFAULT_EMPTY_STD = 6.0


@dataclass
class MatchResult:
    """Result of template matching for a single detected element."""

    x: int
    y: int
    width: int
    height: int
    confidence: float
    template_name: str
    priority: int = 0


@dataclass
class SlotScore:
    label: Optional[str]
    score: float
    template_index: int = -1


def normalized_score(slot: np.ndarray, template: np.ndarray) -> float:
    """Best TM_CCOEFF_NORMED score of a template anywhere inside a slot, clamped to [0, 1]."""
    if template.shape[0] > slot.shape[0] or template.shape[1] > slot.shape[1]:
        return 0.0
    result = cv2.matchTemplate(slot, template, cv2.TM_CCOEFF_NORMED)
    score = float(result.max()) if result.size else 0.0
    if math.isnan(score) or math.isinf(score):
        return 0.0
    return max(0.0, min(1.0, score))


class TemplateMatcher:
    """Scores every template against every slot and keeps the best label per slot."""

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        tie_epsilon: float = DEFAULT_TIE_EPSILON,
        empty_std_threshold: float = DEFAULT_EMPTY_STD,
    ):
        self.threshold = threshold
        self.tie_epsilon = tie_epsilon
        self.empty_std_threshold = empty_std_threshold

        logger.debug(
            f"TemplateMatcher initialized: threshold={threshold}, epsilon={tie_epsilon}, empty_std={empty_std_threshold}"
        )

    def match_slots(self, region_image: np.ndarray, region: Region, library: TemplateLibrary) -> List[RecognitionResult]:
        """Recognize each slot of a slot region. Slots below threshold are unknown, never guessed."""
        grey = to_grey(region_image)
        results = []

        for index, (sx, sy, sw, sh) in enumerate(region.slot_rects()):
            start = time.perf_counter()
            slot = grey[sy : sy + sh, sx : sx + sw]
            label = f"{region.name}[{index}]"

            if slot.size == 0:
                results.append(RecognitionResult.unknown(label, region.name, RecognitionStatus.ERROR, slot=index))
                continue

            if float(slot.std()) < self.empty_std_threshold:
                results.append(
                    RecognitionResult(
                        label=label,
                        value=None,
                        confidence=1.0,
                        region=region.name,
                        slot=index,
                        status=RecognitionStatus.EMPTY,
                    )
                )
                continue

            best = self.best_label(slot, library)
            elapsed = (time.perf_counter() - start) * 1000

            if best.label is not None and best.score >= self.threshold:
                results.append(
                    RecognitionResult(
                        label=label,
                        value=best.label,
                        confidence=best.score,
                        region=region.name,
                        slot=index,
                        status=RecognitionStatus.OK,
                        processing_time_ms=elapsed,
                    )
                )
            else:
                logger.debug(f"{label}: best '{best.label}' at {best.score:.3f} below {self.threshold}")
                result = RecognitionResult.unknown(
                    label, region.name, RecognitionStatus.BELOW_THRESHOLD, confidence=best.score, slot=index
                )
                result.processing_time_ms = elapsed
                results.append(result)

        recognized = sum(1 for r in results if r.status is RecognitionStatus.OK)
        logger.debug(f"Region '{region.name}': {recognized}/{len(results)} slots recognized")
        return results

    def best_label(self, slot: np.ndarray, library: TemplateLibrary) -> SlotScore:
        """Best label for one slot; near-ties go to the earlier template in library order."""
        scores: List[Tuple[int, float]] = []
        for index in range(len(library)):
            template = library.sized_for(index, slot.shape[:2])
            if template is None:
                continue
            scores.append((index, normalized_score(slot, template)))

        if not scores:
            return SlotScore(label=None, score=0.0)

        best_score = max(score for _, score in scores)
        # Library order already puts exact templates before variants
        winner = min(index for index, score in scores if score >= best_score - self.tie_epsilon)
        return SlotScore(label=library.templates[winner].label, score=best_score, template_index=winner)

    def find_matches(self, image: np.ndarray, library: TemplateLibrary, overlap_threshold: float = 0.5) -> List[MatchResult]:
        """Sliding search for every template over a free-form region, with overlap suppression."""
        grey = to_grey(image)
        all_matches = []

        for index, template in enumerate(library.templates):
            if template.image.shape[0] > grey.shape[0] or template.image.shape[1] > grey.shape[1]:
                continue

            result = cv2.matchTemplate(grey, template.image, cv2.TM_CCOEFF_NORMED)
            result = np.nan_to_num(result, nan=0.0, posinf=0.0, neginf=0.0)
            locations = np.where(result >= self.threshold)

            for y, x in zip(locations[0], locations[1]):
                all_matches.append(
                    MatchResult(
                        x=int(x),
                        y=int(y),
                        width=template.image.shape[1],
                        height=template.image.shape[0],
                        confidence=min(1.0, float(result[y, x])),
                        template_name=template.label,
                        priority=index,
                    )
                )

        filtered = self._filter_overlapping_matches(all_matches, overlap_threshold)
        logger.debug(f"Found {len(filtered)} matches after filtering from {len(all_matches)} candidates")
        return filtered

    def _filter_overlapping_matches(self, matches: List[MatchResult], overlap_threshold: float) -> List[MatchResult]:
        if not matches:
            return []

        # Highest confidence first; library order then position keep the result deterministic
        sorted_matches = sorted(matches, key=lambda m: (-m.confidence, m.priority, m.y, m.x))
        filtered: List[MatchResult] = []

        for match in sorted_matches:
            if not any(self._calculate_overlap(match, accepted) > overlap_threshold for accepted in filtered):
                filtered.append(match)

        return filtered

    def _calculate_overlap(self, match1: MatchResult, match2: MatchResult) -> float:
        """Calculate IoU overlap ratio between matches."""
        x1 = max(match1.x, match2.x)
        y1 = max(match1.y, match2.y)
        x2 = min(match1.x + match1.width, match2.x + match2.width)
        y2 = min(match1.y + match1.height, match2.y + match2.height)

        if x2 <= x1 or y2 <= y1:
            return 0.0

        intersection = (x2 - x1) * (y2 - y1)
        area1 = match1.width * match1.height
        area2 = match2.width * match2.height
        union = area1 + area2 - intersection

        return intersection / union if union > 0 else 0.0
