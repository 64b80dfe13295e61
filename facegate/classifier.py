"""Content-type classification of incoming images.

An image is labeled PERSON, DOCUMENT or UNKNOWN from two signals:
how much text a text recognizer finds in it, and whether an image labeler
reports person-like or document-like labels. Label evidence is checked
before raw text volume because person photos often carry some incidental
text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

import numpy as np

from facegate.config import (
    DEFAULT_LABEL_CONFIDENCE_THRESHOLD,
    DEFAULT_MAX_IMAGE_SIZE,
    DEFAULT_TEXT_DENSITY_THRESHOLD,
)
from facegate.interfaces import ImageLabel, ImageLabeler, TextRecognizer
from facegate.logging_config import get_logger
from facegate.utils import load_image
from facegate.vocabulary import DOCUMENT_VOCABULARY, PERSON_VOCABULARY, LabelVocabulary

logger = get_logger(__name__)

# Assumed pixel footprint of one recognized character
PIXELS_PER_CHARACTER = 100
# Text longer than this is a document unless a person label is present
DOCUMENT_TEXT_LENGTH = 50
# Text longer than this is a document when nothing else decided
LONG_TEXT_LENGTH = 100


class Classification(str, Enum):
    """Content type of an image."""

    PERSON = "person"
    DOCUMENT = "document"
    UNKNOWN = "unknown"


@dataclass
class ClassificationSignals:
    """Evidence gathered for one image.

    Attributes:
        text_length: Number of recognized characters
        text_density: Estimated fraction of the image covered by text
        has_person_label: A confident person-vocabulary label was found
        has_document_label: A confident document-vocabulary label was found
    """

    text_length: int
    text_density: float
    has_person_label: bool
    has_document_label: bool


def calculate_text_density(text: str, image_area: int) -> float:
    """Estimate the fraction of an image covered by text.

    Each character is assumed to occupy 100 pixels; the result is capped
    at 1.0. Blank text or an empty image gives 0.0.
    """
    if not text.strip() or image_area <= 0:
        return 0.0

    return min(1.0, len(text) * PIXELS_PER_CHARACTER / image_area)


class ImageClassifier:
    """Classifies images as PERSON, DOCUMENT or UNKNOWN.

    Attributes:
        text_recognizer: OCR collaborator
        labeler: Image labeling collaborator
        text_density_threshold: Density separating documents from photos
        label_confidence_threshold: Labels at or below this are ignored
        person_vocabulary: Terms marking a person label
        document_vocabulary: Terms marking a document label

    Example:
        >>> classifier = ImageClassifier(text_recognizer, labeler)
        >>> classifier.classify("/photos/receipt.jpg")
        <Classification.DOCUMENT: 'document'>
    """

    def __init__(
        self,
        text_recognizer: TextRecognizer,
        labeler: ImageLabeler,
        text_density_threshold: float = DEFAULT_TEXT_DENSITY_THRESHOLD,
        label_confidence_threshold: float = DEFAULT_LABEL_CONFIDENCE_THRESHOLD,
        max_image_size: int = DEFAULT_MAX_IMAGE_SIZE,
        person_vocabulary: LabelVocabulary = PERSON_VOCABULARY,
        document_vocabulary: LabelVocabulary = DOCUMENT_VOCABULARY,
    ):
        """Initialize classifier.

        Args:
            text_recognizer: Text recognition collaborator
            labeler: Image labeling collaborator
            text_density_threshold: Document density threshold (0.0 to 1.0)
            label_confidence_threshold: Minimum label confidence (0.0 to 1.0)
            max_image_size: Bound used when decoding images
            person_vocabulary: Person label vocabulary
            document_vocabulary: Document label vocabulary

        Raises:
            ValueError: If a threshold is not in valid range.
        """
        for name, value in (
            ("text_density_threshold", text_density_threshold),
            ("label_confidence_threshold", label_confidence_threshold),
        ):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

        self.text_recognizer = text_recognizer
        self.labeler = labeler
        self.text_density_threshold = text_density_threshold
        self.label_confidence_threshold = label_confidence_threshold
        self.max_image_size = max_image_size
        self.person_vocabulary = person_vocabulary
        self.document_vocabulary = document_vocabulary

        logger.info(
            f"Initialized ImageClassifier: text_density_threshold={text_density_threshold}, "
            f"label_confidence_threshold={label_confidence_threshold}"
        )

    def _load(self, image_path: str | Path) -> Optional[np.ndarray]:
        try:
            return load_image(image_path, self.max_image_size)
        except Exception as e:
            logger.error(f"Failed to load image {image_path}: {e}", exc_info=True)
            return None

    def _has_label(self, labels: List[ImageLabel], vocabulary: LabelVocabulary) -> bool:
        for label in labels:
            if vocabulary.matches(label.text):
                logger.debug(
                    f"Found {vocabulary.name}-related label '{label.text}' "
                    f"(confidence={label.confidence:.2f})"
                )
                if label.confidence > self.label_confidence_threshold:
                    return True
        return False

    def gather_signals(
        self, text: str, labels: List[ImageLabel], image_area: int
    ) -> ClassificationSignals:
        """Turn raw collaborator output into classification signals."""
        return ClassificationSignals(
            text_length=len(text),
            text_density=calculate_text_density(text, image_area),
            has_person_label=self._has_label(labels, self.person_vocabulary),
            has_document_label=self._has_label(labels, self.document_vocabulary),
        )

    def decide(self, signals: ClassificationSignals) -> Classification:
        """Apply the decision rules; the first rule that fires wins."""
        person = signals.has_person_label
        dense = signals.text_density > self.text_density_threshold

        if (signals.text_length > DOCUMENT_TEXT_LENGTH or dense) and not person:
            return Classification.DOCUMENT
        if signals.has_document_label and not person:
            return Classification.DOCUMENT
        if person and signals.text_density < self.text_density_threshold:
            return Classification.PERSON
        # Selfies may carry some text
        if person:
            return Classification.PERSON
        if signals.text_length > LONG_TEXT_LENGTH:
            return Classification.DOCUMENT
        return Classification.UNKNOWN

    def classify_image(self, image: np.ndarray) -> Classification:
        """Classify an already decoded BGR image. Never raises."""
        try:
            text = self.text_recognizer.recognize(image) or ""
        except Exception as e:
            logger.error(f"Text recognition failed: {e}", exc_info=True)
            return Classification.UNKNOWN

        try:
            labels = list(self.labeler.label(image))
        except Exception as e:
            logger.error(f"Image labeling failed: {e}", exc_info=True)
            return Classification.UNKNOWN

        try:
            h, w = image.shape[:2]
            signals = self.gather_signals(text, labels, w * h)
            classification = self.decide(signals)
        except Exception as e:
            logger.error(f"Error processing classification results: {e}", exc_info=True)
            return Classification.UNKNOWN

        logger.debug(
            f"Classification: {classification.name} (text_length={signals.text_length}, "
            f"text_density={signals.text_density:.3f}, person_label={signals.has_person_label}, "
            f"document_label={signals.has_document_label}, labels={len(labels)})"
        )
        return classification

    def classify(self, image_path: str | Path) -> Classification:
        """Classify an image file. Returns UNKNOWN if it cannot be decoded."""
        logger.debug(f"Classifying image: {image_path}")

        image = self._load(image_path)
        if image is None:
            return Classification.UNKNOWN

        return self.classify_image(image)

    def extract_text(self, image_path: str | Path) -> Optional[str]:
        """Recognize the text of a document image.

        Returns:
            The recognized text, or None if it is blank or recognition fails.
        """
        image = self._load(image_path)
        if image is None:
            return None

        try:
            text = self.text_recognizer.recognize(image) or ""
        except Exception as e:
            logger.error(f"Text extraction failed for {image_path}: {e}", exc_info=True)
            return None

        logger.debug(f"Extracted {len(text)} characters from {image_path}")
        return text if text.strip() else None

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ImageClassifier(text_density_threshold={self.text_density_threshold}, "
            f"label_confidence_threshold={self.label_confidence_threshold})"
        )
