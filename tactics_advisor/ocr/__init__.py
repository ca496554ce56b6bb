# OCR engine handle and HUD text extraction
from .tesseract_engine import TesseractEngine, OCREngineHandle, get_engine_handle
from .text_extractor import TextExtractor

__all__ = [
    "TesseractEngine",
    "OCREngineHandle",
    "get_engine_handle",
    "TextExtractor",
]
