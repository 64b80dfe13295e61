"""Unit tests for image content classification."""

from __future__ import annotations

from unittest.mock import Mock, patch

import cv2
import numpy as np
import pytest
from PIL import Image

from facegate.classifier import (
    Classification,
    ClassificationSignals,
    ImageClassifier,
    calculate_text_density,
)
from facegate.interfaces import ImageLabel
from facegate.vocabulary import DOCUMENT_VOCABULARY, PERSON_VOCABULARY, LabelVocabulary


@pytest.fixture
def mock_recognizer():
    """Create a mock text recognizer."""
    recognizer = Mock()
    recognizer.recognize.return_value = ""
    return recognizer


@pytest.fixture
def mock_labeler():
    """Create a mock image labeler."""
    labeler = Mock()
    labeler.label.return_value = []
    return labeler


@pytest.fixture
def classifier(mock_recognizer, mock_labeler):
    """Create a classifier with mocks."""
    return ImageClassifier(
        text_recognizer=mock_recognizer,
        labeler=mock_labeler,
        text_density_threshold=0.15,
        label_confidence_threshold=0.5,
    )


@pytest.fixture
def photo(tmp_path):
    """Write a 200x200 image (area 40000)."""
    path = tmp_path / "photo.png"
    cv2.imwrite(str(path), np.random.randint(0, 255, (200, 200, 3), dtype=np.uint8))
    return path


def test_text_density():
    """Test the character-footprint density estimate."""
    assert calculate_text_density("a" * 10, 10000) == pytest.approx(0.1)
    assert calculate_text_density("a" * 500, 10000) == 1.0
    assert calculate_text_density("   \n", 10000) == 0.0
    assert calculate_text_density("abc", 0) == 0.0


def test_receipt_is_document(classifier, mock_recognizer, mock_labeler, photo):
    """Test a text-heavy image is a document."""
    mock_recognizer.recognize.return_value = "TOTAL 12.50\n" * 25
    mock_labeler.label.return_value = [ImageLabel("Paper", 0.9)]

    assert classifier.classify(photo) is Classification.DOCUMENT


def test_selfie_is_person(classifier, mock_recognizer, mock_labeler, photo):
    """Test a body-part label with little text is a person."""
    mock_recognizer.recognize.return_value = "Hi there"
    mock_labeler.label.return_value = [ImageLabel("Ear", 0.8)]

    assert classifier.classify(photo) is Classification.PERSON


def test_person_label_beats_text(classifier, mock_recognizer, mock_labeler, photo):
    """Test a confident person label wins even over dense text."""
    mock_recognizer.recognize.return_value = "x" * 200
    mock_labeler.label.return_value = [ImageLabel("Person", 0.9), ImageLabel("Text", 0.9)]

    assert classifier.classify(photo) is Classification.PERSON


def test_document_label_without_text(classifier, mock_labeler, photo):
    """Test a document label alone is enough."""
    mock_labeler.label.return_value = [ImageLabel("Receipt", 0.7)]

    assert classifier.classify(photo) is Classification.DOCUMENT


def test_long_text_is_document(classifier, mock_recognizer, photo):
    """Test text above 50 characters is a document even at low density."""
    # 60 * 100 / 40000 = 0.15, not above the threshold
    mock_recognizer.recognize.return_value = "y" * 60

    assert classifier.classify(photo) is Classification.DOCUMENT


@pytest.mark.parametrize("confidence", [0.5, 0.3])
def test_weak_labels_ignored(classifier, mock_labeler, photo, confidence):
    """Test labels at or below the confidence threshold do not count."""
    mock_labeler.label.return_value = [ImageLabel("Human face", confidence)]

    assert classifier.classify(photo) is Classification.UNKNOWN


def test_no_signals_is_unknown(classifier, mock_labeler, photo):
    """Test an image without text or relevant labels is unknown."""
    mock_labeler.label.return_value = [ImageLabel("Sky", 0.95)]

    assert classifier.classify(photo) is Classification.UNKNOWN


def test_recognizer_failure_is_unknown(classifier, mock_recognizer, mock_labeler, photo):
    """Test a text recognizer error resolves to UNKNOWN."""
    mock_recognizer.recognize.side_effect = RuntimeError("ocr failed")
    mock_labeler.label.return_value = [ImageLabel("Person", 0.99)]

    assert classifier.classify(photo) is Classification.UNKNOWN


def test_labeler_failure_is_unknown(classifier, mock_recognizer, mock_labeler, photo):
    """Test a labeler error resolves to UNKNOWN."""
    mock_recognizer.recognize.return_value = "x" * 300
    mock_labeler.label.side_effect = RuntimeError("labeler failed")

    assert classifier.classify(photo) is Classification.UNKNOWN


def test_undecodable_file_is_unknown(classifier, mock_recognizer, tmp_path):
    """Test unreadable images are unknown without calling collaborators."""
    broken = tmp_path / "broken.jpg"
    broken.write_bytes(b"not an image")

    assert classifier.classify(broken) is Classification.UNKNOWN
    assert classifier.classify(tmp_path / "missing.jpg") is Classification.UNKNOWN
    mock_recognizer.recognize.assert_not_called()


def test_oversized_image_is_classified(
    classifier, mock_recognizer, mock_labeler, photo, monkeypatch
):
    """Test images above the decompression-bomb limit are still classified."""
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    mock_recognizer.recognize.return_value = ""
    mock_labeler.label.return_value = [ImageLabel("Selfie", 0.9)]

    assert classifier.classify(photo) is Classification.PERSON


def test_decoder_error_is_unknown(classifier, mock_recognizer, photo):
    """Test an exception while decoding resolves to unknown instead of raising."""
    with patch("facegate.classifier.load_image", side_effect=MemoryError("out of memory")):
        assert classifier.classify(photo) is Classification.UNKNOWN
        assert classifier.extract_text(photo) is None

    mock_recognizer.recognize.assert_not_called()


def test_recognizer_returning_none(classifier, mock_recognizer, mock_labeler, photo):
    """Test a None text result counts as no text."""
    mock_recognizer.recognize.return_value = None
    mock_labeler.label.return_value = [ImageLabel("Portrait", 0.8)]

    assert classifier.classify(photo) is Classification.PERSON


@pytest.mark.parametrize(
    "signals, expected",
    [
        (ClassificationSignals(60, 0.01, False, False), Classification.DOCUMENT),
        (ClassificationSignals(10, 0.30, False, False), Classification.DOCUMENT),
        (ClassificationSignals(0, 0.0, False, True), Classification.DOCUMENT),
        (ClassificationSignals(5, 0.05, True, True), Classification.PERSON),
        (ClassificationSignals(400, 0.80, True, False), Classification.PERSON),
        (ClassificationSignals(10, 0.15, True, False), Classification.PERSON),
        (ClassificationSignals(40, 0.10, False, False), Classification.UNKNOWN),
    ],
)
def test_decision_rules(classifier, signals, expected):
    """Test the ordered decision rules."""
    assert classifier.decide(signals) is expected


def test_custom_vocabulary(mock_recognizer, mock_labeler, photo):
    """Test vocabularies can be replaced."""
    mock_labeler.label.return_value = [ImageLabel("Dog", 0.9)]
    classifier = ImageClassifier(
        mock_recognizer,
        mock_labeler,
        person_vocabulary=LabelVocabulary.of("pet", ["dog", "cat"]),
    )

    assert classifier.classify(photo) is Classification.PERSON


def test_invalid_thresholds(mock_recognizer, mock_labeler):
    """Test thresholds outside [0, 1] are rejected."""
    with pytest.raises(ValueError):
        ImageClassifier(mock_recognizer, mock_labeler, text_density_threshold=1.5)

    with pytest.raises(ValueError):
        ImageClassifier(mock_recognizer, mock_labeler, label_confidence_threshold=-0.1)


def test_extract_text(classifier, mock_recognizer, photo):
    """Test text extraction returns recognized text."""
    mock_recognizer.recognize.return_value = "INVOICE\nNo. 42"

    assert classifier.extract_text(photo) == "INVOICE\nNo. 42"


def test_extract_text_blank_or_failing(classifier, mock_recognizer, photo, tmp_path):
    """Test blank output and errors give None."""
    mock_recognizer.recognize.return_value = "  \n "
    assert classifier.extract_text(photo) is None

    mock_recognizer.recognize.side_effect = RuntimeError("ocr failed")
    assert classifier.extract_text(photo) is None

    assert classifier.extract_text(tmp_path / "missing.png") is None


def test_vocabulary_substring_match():
    """Test labels match on contained terms, case-insensitively."""
    assert PERSON_VOCABULARY.matches("Human face")
    assert PERSON_VOCABULARY.matches("EYELASHES")
    assert PERSON_VOCABULARY.matches("Earring")
    assert not PERSON_VOCABULARY.matches("Sky")

    assert DOCUMENT_VOCABULARY.matches("Business card")
    assert DOCUMENT_VOCABULARY.matches("Handwriting")
    assert not DOCUMENT_VOCABULARY.matches("Tree")


def test_vocabulary_normalizes_terms():
    """Test terms are stripped, lowercased and blanks dropped."""
    vocabulary = LabelVocabulary.of("x", [" Dog ", "CAT", "  "])

    assert vocabulary.terms == frozenset({"dog", "cat"})
