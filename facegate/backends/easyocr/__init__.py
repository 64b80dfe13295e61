"""EasyOCR backend: text recognition."""

from facegate.backends.easyocr.recognizer import EasyOCRRecognizer

__all__ = ["EasyOCRRecognizer"]
