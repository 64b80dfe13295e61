"""Text recognizer using EasyOCR."""

from __future__ import annotations

from typing import List

import easyocr
import numpy as np

from facegate.config import Config
from facegate.logging_config import get_logger

logger = get_logger(__name__)


class EasyOCRRecognizer:
    """Recognizes text with an EasyOCR reader.

    Recognized text blocks are joined with newlines in reading order, the
    way a page of text reads.

    Attributes:
        langs: EasyOCR language codes
        gpu: Whether the reader runs on GPU
        reader: EasyOCR Reader instance

    Example:
        >>> recognizer = EasyOCRRecognizer(get_config())
        >>> text = recognizer.recognize(image)
    """

    def __init__(self, config: Config):
        """Initialize recognizer.

        Args:
            config: Configuration object with ocr_langs and ocr_gpu

        Raises:
            RuntimeError: If the OCR models fail to load.
        """
        self.langs: List[str] = list(config.ocr_langs)
        self.gpu = config.ocr_gpu

        logger.info(f"Initializing EasyOCR reader (langs={self.langs}, gpu={self.gpu})")

        try:
            self.reader = easyocr.Reader(self.langs, gpu=self.gpu, verbose=False)
        except Exception as e:
            logger.error(f"Failed to initialize EasyOCR: {e}", exc_info=True)
            raise RuntimeError(f"Could not load EasyOCR reader: {e}") from e

        logger.info("EasyOCR reader initialized successfully")

    def recognize(self, image_bgr: np.ndarray) -> str:
        """Recognize all text in an image.

        Args:
            image_bgr: Input image in BGR format, shape [H, W, 3]

        Returns:
            Recognized text, empty string if none.
        """
        if image_bgr is None or image_bgr.size == 0:
            return ""

        # detail=0 returns only the strings; paragraph=True merges lines into blocks
        blocks = self.reader.readtext(image_bgr, detail=0, paragraph=True)
        text = "\n".join(block.strip() for block in blocks if block.strip())

        logger.debug(f"Recognized {len(text)} characters in {len(blocks)} blocks")
        return text

    def __repr__(self) -> str:
        """String representation."""
        return f"EasyOCRRecognizer(langs={self.langs}, gpu={self.gpu})"
