"""Prepares HUD text crops for Tesseract."""

import logging

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

BORDER_WIDTH = 2  # Pixels sampled along each edge to estimate the background


class ImagePreprocessor:
    """Greyscale, upscale, denoise, contrast and binarize a HUD crop.

    The output is always dark glyphs on a white background. Polarity is taken from the crop border,
    which is HUD background for every text region, so bright digits on a dark bar and dark digits
    on a light banner both come out the same way.
    """

    def __init__(
        self,
        scale_factor: float = 2.0,
        enhance_contrast: bool = True,
        normalize_polarity: bool = True,
        apply_morphology: bool = False,
    ):
        self.scale_factor = scale_factor
        self.enhance_contrast = enhance_contrast
        self.normalize_polarity = normalize_polarity
        self.apply_morphology = apply_morphology
        self._clahe = cv2.createCLAHE(clipLimit=3.0, tileGridSize=(8, 8)) if enhance_contrast else None

        logger.debug(
            f"ImagePreprocessor initialized: scale={scale_factor}, contrast={enhance_contrast}, "
            f"polarity={normalize_polarity}, morph={apply_morphology}"
        )

    def preprocess_for_ocr(self, img: np.ndarray) -> np.ndarray:
        grey = self.to_grey(img)
        if grey.size == 0:
            return grey

        if self.scale_factor > 1.0:
            h, w = grey.shape
            size = (max(1, int(w * self.scale_factor)), max(1, int(h * self.scale_factor)))
            grey = cv2.resize(grey, size, interpolation=cv2.INTER_CUBIC)

        grey = cv2.medianBlur(grey, 3)
        if self._clahe is not None:
            grey = self._clahe.apply(grey)

        _, binary = cv2.threshold(grey, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

        if self.normalize_polarity and self.background_is_dark(binary):
            binary = cv2.bitwise_not(binary)

        if self.apply_morphology:
            # Close gaps inside thin glyph strokes left by the threshold
            kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (2, 2))
            binary = cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel)

        return binary

    def to_pil(self, img: np.ndarray) -> Image.Image:
        return Image.fromarray(self.preprocess_for_ocr(img))

    @staticmethod
    def to_grey(img: np.ndarray) -> np.ndarray:
        if img.ndim == 2:
            return img.copy()
        code = cv2.COLOR_BGRA2GRAY if img.shape[2] == 4 else cv2.COLOR_BGR2GRAY
        return cv2.cvtColor(img, code)

    @staticmethod
    def background_is_dark(binary: np.ndarray) -> bool:
        b = min(BORDER_WIDTH, binary.shape[0] // 2, binary.shape[1] // 2)
        if b == 0:
            return float(np.mean(binary)) < 127
        edges = np.concatenate(
            [binary[:b].ravel(), binary[-b:].ravel(), binary[:, :b].ravel(), binary[:, -b:].ravel()]
        )
        return float(np.mean(edges)) < 127
