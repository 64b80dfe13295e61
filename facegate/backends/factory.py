"""Backend factory for the collaborator models.

This module provides a single place that builds the black-box collaborators
the subsystem consumes:
- face detection: InsightFace (SCRFD + 3D landmarks for head pose)
- text recognition: EasyOCR
- image labeling: OpenCLIP zero-shot

Heavy model imports happen inside the builder functions so that importing
the package never loads torch or onnxruntime.

Usage:
    components = create_backend(config)
    components.detector.detect(image)
"""

from __future__ import annotations

from dataclasses import dataclass

from facegate.config import Config
from facegate.interfaces import FaceDetector, ImageLabeler, TextRecognizer
from facegate.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class BackendComponents:
    """Container for backend components.

    Attributes:
        detector: Face detector instance
        text_recognizer: Text recognizer instance
        labeler: Image labeler instance
    """

    detector: FaceDetector
    text_recognizer: TextRecognizer
    labeler: ImageLabeler


def create_detector(config: Config) -> FaceDetector:
    """Create the InsightFace face detector."""
    from facegate.backends.insightface.detector import InsightFaceDetector

    return InsightFaceDetector(config)


def create_text_recognizer(config: Config) -> TextRecognizer:
    """Create the EasyOCR text recognizer."""
    from facegate.backends.easyocr.recognizer import EasyOCRRecognizer

    return EasyOCRRecognizer(config)


def create_labeler(config: Config) -> ImageLabeler:
    """Create the OpenCLIP image labeler."""
    from facegate.backends.clip.labeler import ClipImageLabeler

    return ClipImageLabeler(config)


def create_backend(config: Config | None = None) -> BackendComponents:
    """Create all collaborator components.

    Args:
        config: Configuration object. If None, loads from .env

    Returns:
        BackendComponents with detector, text recognizer and labeler.

    Example:
        >>> from facegate.config import get_config
        >>> components = create_backend(get_config())
    """
    if config is None:
        from facegate.config import get_config

        config = get_config()

    logger.info("Creating backend components...")

    components = BackendComponents(
        detector=create_detector(config),
        text_recognizer=create_text_recognizer(config),
        labeler=create_labeler(config),
    )

    logger.info("Backend components created successfully")
    return components
