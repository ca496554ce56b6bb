# Image preprocessing for recognition
from .preprocessor import ImagePreprocessor

__all__ = ["ImagePreprocessor"]
