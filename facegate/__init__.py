"""Reference-based person recognition.

Classifies incoming images as person photos or documents and verifies
person photos against one enrolled reference face per workflow.
"""

from facegate.classifier import Classification, ImageClassifier
from facegate.config import Config, get_config
from facegate.features import FaceFeatureExtractor, FaceFeatures
from facegate.histogram import extract_color_histogram
from facegate.interfaces import (
    BBox,
    DetectedFace,
    FaceDetector,
    ImageLabel,
    ImageLabeler,
    LandmarkType,
    ReferenceStorage,
    TextRecognizer,
)
from facegate.logging_config import get_logger, setup_logging
from facegate.reference_manager import ReferenceManager, VerificationResult
from facegate.similarity import ScoreWeights, SimilarityScorer
from facegate.storage import InMemoryReferenceStorage, JsonReferenceStorage
from facegate.vocabulary import DOCUMENT_VOCABULARY, PERSON_VOCABULARY, LabelVocabulary

__version__ = "0.1.0"

__all__ = [
    # Config
    "Config",
    "get_config",
    # Interfaces
    "BBox",
    "DetectedFace",
    "FaceDetector",
    "ImageLabel",
    "ImageLabeler",
    "LandmarkType",
    "ReferenceStorage",
    "TextRecognizer",
    # Logging
    "setup_logging",
    "get_logger",
    # Features and scoring
    "extract_color_histogram",
    "FaceFeatures",
    "FaceFeatureExtractor",
    "ScoreWeights",
    "SimilarityScorer",
    # References
    "InMemoryReferenceStorage",
    "JsonReferenceStorage",
    "ReferenceManager",
    "VerificationResult",
    # Classification
    "Classification",
    "ImageClassifier",
    "LabelVocabulary",
    "PERSON_VOCABULARY",
    "DOCUMENT_VOCABULARY",
]
