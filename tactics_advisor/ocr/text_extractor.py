# Reads numeric and short text HUD fields from cropped regions
import time
import logging
from typing import Optional

import numpy as np

from ..core.models import Region, RecognitionResult, RecognitionStatus
from ..core.validators import TextValidator, get_text_validator
from ..errors import RecognitionBelowThreshold
from ..imaging.preprocessor import ImagePreprocessor
from .tesseract_engine import OCREngineHandle, get_engine_handle

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.60


class TextExtractor:  # One OCR pass per region, strict parse, unknown instead of a fabricated value

    def __init__(
        self,
        engine: Optional[OCREngineHandle] = None,
        threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        preprocessor: Optional[ImagePreprocessor] = None,
        validator: Optional[TextValidator] = None,
    ):
        self.engine = engine or get_engine_handle()
        self.threshold = threshold
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.validator = validator or get_text_validator()

    def extract(self, region_image: np.ndarray, region: Region) -> RecognitionResult:
        """Recognize one text region. Raises EngineUnavailable when the OCR engine is gone."""
        start = time.perf_counter()
        field = region.target

        try:
            value, confidence = self.read_field(region_image, region)
            status = RecognitionStatus.OK
        except RecognitionBelowThreshold as e:
            logger.debug(str(e))
            value, confidence, status = None, e.confidence, RecognitionStatus.BELOW_THRESHOLD

        result = RecognitionResult(
            label=field,
            value=value,
            confidence=max(0.0, min(1.0, confidence)),
            region=region.name,
            status=status,
            processing_time_ms=(time.perf_counter() - start) * 1000,
        )
        logger.debug(f"{field}: {value!r} ({result.confidence:.2f}, {status.value})")
        return result

    def read_field(self, region_image: np.ndarray, region: Region):
        """Return (value, confidence 0-1) or raise RecognitionBelowThreshold."""
        field = region.target
        whitelist = self.validator.whitelist_for(region.grammar, region.whitelist)
        image = self.preprocessor.to_pil(region_image)

        text, raw_confidence = self.engine.recognise(image, whitelist or None)
        confidence = max(0.0, min(1.0, raw_confidence / 100.0))

        if confidence < self.threshold:
            raise RecognitionBelowThreshold(field, confidence, f"OCR read '{text}'")

        value, message = self.validator.parse(field, region.grammar, text)
        if value is None:
            raise RecognitionBelowThreshold(field, confidence, message)

        return value, confidence
