# Tesseract OCR backend and the process-wide scoped engine handle
import os
import threading
import logging
from typing import Callable, Optional, Tuple

import pytesseract
from dotenv import load_dotenv
from PIL import Image

from ..errors import EngineUnavailable

load_dotenv()

logger = logging.getLogger(__name__)

tesseract_cmd = os.getenv("TESSERACT_CMD")
if tesseract_cmd and os.path.exists(tesseract_cmd):
    pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

tessdata_prefix = os.getenv("TESSDATA_PREFIX")
if tessdata_prefix:
    os.environ["TESSDATA_PREFIX"] = tessdata_prefix


class TesseractEngine:
    # Pytesseract-based recognizer for short single-line HUD strings

    PSM_SINGLE_LINE = 7
    PSM_SINGLE_WORD = 8

    def __init__(self, psm: int = PSM_SINGLE_LINE):
        self.psm = psm
        self.version = pytesseract.get_tesseract_version()  # Raises when the binary is missing
        logger.info(f"Tesseract {self.version} ready (psm={psm})")

    def recognise_text(self, image: Image.Image, whitelist: Optional[str] = None) -> Tuple[str, float]:
        # Returns (text, confidence 0-100); words with negative confidence are layout noise
        config = f"--oem 3 --psm {self.psm}"
        if whitelist:
            config += f" -c tessedit_char_whitelist={whitelist}"

        data = pytesseract.image_to_data(image, config=config, output_type=pytesseract.Output.DICT)

        text_parts = []
        confidences = []
        for word, conf in zip(data["text"], data["conf"]):
            word = str(word).strip()
            conf = float(conf)
            if word and conf >= 0:
                text_parts.append(word)
                confidences.append(conf)

        if not text_parts:
            return "", 0.0

        text = "".join(text_parts)
        if whitelist:
            text = "".join(char for char in text if char in whitelist)
        return text, sum(confidences) / len(confidences)

    def close(self) -> None:
        # pytesseract spawns a process per call, nothing persistent to free
        logger.debug("Tesseract engine closed")


class OCREngineHandle:
    """Explicitly owned OCR engine: lazily acquired, call-serialized, released once.

    After release() every recognise() call raises EngineUnavailable until acquire() is called again.
    """

    NEW = "new"
    ACQUIRED = "acquired"
    RELEASED = "released"

    def __init__(self, factory: Callable[[], object] = TesseractEngine):
        self._factory = factory
        self._engine = None
        self._state = self.NEW
        self._lock = threading.RLock()

    @property
    def state(self) -> str:
        return self._state

    @property
    def available(self) -> bool:
        return self._state != self.RELEASED

    def acquire(self):
        with self._lock:
            if self._engine is None:
                try:
                    self._engine = self._factory()
                except Exception as e:
                    raise EngineUnavailable(f"OCR engine could not be acquired: {e}") from e
                self._state = self.ACQUIRED
                logger.info("OCR engine acquired")
            return self._engine

    def release(self) -> bool:
        """Release the engine; returns False when there was nothing to release."""
        with self._lock:
            if self._state == self.RELEASED:
                return False
            engine, self._engine = self._engine, None
            self._state = self.RELEASED
        if engine is not None and hasattr(engine, "close"):
            engine.close()
        logger.info("OCR engine released")
        return True

    def recognise(self, image: Image.Image, whitelist: Optional[str] = None) -> Tuple[str, float]:
        with self._lock:
            if self._state == self.RELEASED:
                raise EngineUnavailable("OCR engine has been released")
            engine = self._engine if self._engine is not None else self.acquire()
            # Held across the call: the engine is shared and not re-entrant
            return engine.recognise_text(image, whitelist)

    def __enter__(self) -> "OCREngineHandle":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


_handle_instance: Optional[OCREngineHandle] = None


def get_engine_handle() -> OCREngineHandle:  # Get the process-wide OCR engine handle
    global _handle_instance
    if _handle_instance is None:
        _handle_instance = OCREngineHandle()
    return _handle_instance
