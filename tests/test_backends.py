"""Unit tests for backend wrappers and factory wiring (models mocked)."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import Mock

import numpy as np
import pytest

from facegate.backends import factory
from facegate.config import Config
from facegate.interfaces import LandmarkType
from facegate.services.pipeline import ImagePipeline
from facegate.storage import JsonReferenceStorage


@pytest.fixture
def config(monkeypatch, tmp_path):
    """Load a config whose reference store lives in a temp dir."""
    monkeypatch.setenv("REFERENCE_STORE", str(tmp_path / "references.json"))
    monkeypatch.setenv("MAX_WORKERS", "3")
    return Config.from_env()


def test_insightface_detector_maps_faces():
    """Test InsightFace output is converted to DetectedFace records."""
    pytest.importorskip("insightface")
    from facegate.backends.insightface.detector import InsightFaceDetector

    detector = InsightFaceDetector.__new__(InsightFaceDetector)
    detector.app = Mock()
    detector.app.get.return_value = [
        SimpleNamespace(
            bbox=np.array([10.4, 20.6, 110.0, 140.2]),
            kps=np.array([[40, 60], [80, 60], [60, 85], [45, 110], [75, 110]], dtype=np.float32),
            pose=np.array([5.0, -12.0, 3.0]),
            det_score=np.float32(0.97),
        )
    ]

    faces = detector.detect(np.zeros((200, 200, 3), dtype=np.uint8))

    assert len(faces) == 1
    face = faces[0]
    assert (face.bbox.x1, face.bbox.y1, face.bbox.x2, face.bbox.y2) == (10, 21, 110, 140)
    assert face.landmarks[LandmarkType.NOSE_BASE] == (60.0, 85.0)
    assert face.head_euler_angle_y == -12.0
    assert face.head_euler_angle_z == 3.0
    assert face.smiling_probability is None
    assert face.score == pytest.approx(0.97)


def test_insightface_detector_empty_image():
    """Test empty input short-circuits."""
    pytest.importorskip("insightface")
    from facegate.backends.insightface.detector import InsightFaceDetector

    detector = InsightFaceDetector.__new__(InsightFaceDetector)
    detector.app = Mock()

    assert detector.detect(np.zeros((0, 0, 3), dtype=np.uint8)) == []
    detector.app.get.assert_not_called()


def test_easyocr_recognizer_joins_blocks():
    """Test text blocks are joined with newlines and blanks dropped."""
    pytest.importorskip("easyocr")
    from facegate.backends.easyocr.recognizer import EasyOCRRecognizer

    recognizer = EasyOCRRecognizer.__new__(EasyOCRRecognizer)
    recognizer.reader = Mock()
    recognizer.reader.readtext.return_value = [" TOTAL ", "  ", "12.50"]

    assert recognizer.recognize(np.zeros((50, 50, 3), dtype=np.uint8)) == "TOTAL\n12.50"


def _stub_labeler(torch, labels, text_features, image_features, top_k=5):
    from facegate.backends.clip.labeler import ClipImageLabeler

    labeler = ClipImageLabeler.__new__(ClipImageLabeler)
    labeler.candidate_labels = labels
    labeler.background_labels = ["landscape", "food"]
    labeler.top_k = top_k
    labeler.device = "cpu"
    labeler.text_features = text_features
    # Background prompts lie on the last two axes
    labeler.background_features = torch.eye(4)[2:]
    labeler.preprocess = lambda image: torch.zeros(3)
    labeler.model = Mock()
    labeler.model.encode_image.return_value = image_features
    return labeler


def test_clip_labeler_ranks_labels():
    """Test per-label confidences and top-k ordering."""
    torch = pytest.importorskip("torch")
    pytest.importorskip("open_clip")
    labeler = _stub_labeler(
        torch,
        ["person", "document", "sky"],
        text_features=torch.eye(4)[[0, 1, 2]],
        image_features=torch.tensor([[0.0, 2.0, 0.0, 0.0]]),
        top_k=2,
    )

    labels = labeler.label(np.zeros((32, 32, 3), dtype=np.uint8))

    assert [l.text for l in labels][0] == "document"
    assert len(labels) == 2
    assert labels[0].confidence > 0.99


def test_clip_synonyms_do_not_split_confidence():
    """Test labels with the same embedding all keep a high confidence."""
    torch = pytest.importorskip("torch")
    pytest.importorskip("open_clip")
    person = [1.0, 0.0, 0.0, 0.0]
    labeler = _stub_labeler(
        torch,
        ["person", "selfie", "portrait", "document"],
        text_features=torch.tensor([person, person, person, [0.0, 1.0, 0.0, 0.0]]),
        image_features=torch.tensor([[3.0, 0.0, 0.0, 0.0]]),
    )

    image = np.zeros((32, 32, 3), dtype=np.uint8)
    labels = {l.text: l.confidence for l in labeler.label(image)}

    assert labels["person"] > 0.99
    assert labels["selfie"] > 0.99
    assert labels["portrait"] > 0.99
    assert labels["document"] < 0.5


def test_clip_scene_image_has_low_confidences():
    """Test an image closest to a background prompt scores every label low."""
    torch = pytest.importorskip("torch")
    pytest.importorskip("open_clip")
    labeler = _stub_labeler(
        torch,
        ["person", "document"],
        text_features=torch.eye(4)[:2],
        image_features=torch.tensor([[0.0, 0.0, 1.0, 0.0]]),
    )

    labels = labeler.label(np.zeros((32, 32, 3), dtype=np.uint8))

    assert all(l.confidence < 0.01 for l in labels)


def test_create_backend(monkeypatch, config):
    """Test the factory assembles all three collaborators."""
    detector, recognizer, labeler = Mock(), Mock(), Mock()
    monkeypatch.setattr(factory, "create_detector", lambda cfg: detector)
    monkeypatch.setattr(factory, "create_text_recognizer", lambda cfg: recognizer)
    monkeypatch.setattr(factory, "create_labeler", lambda cfg: labeler)

    components = factory.create_backend(config)

    assert components.detector is detector
    assert components.text_recognizer is recognizer
    assert components.labeler is labeler


def test_pipeline_from_config(monkeypatch, config):
    """Test the pipeline is wired from configuration."""
    components = factory.BackendComponents(
        detector=Mock(), text_recognizer=Mock(), labeler=Mock()
    )
    monkeypatch.setattr(factory, "create_backend", lambda cfg: components)

    pipeline = ImagePipeline.from_config(config)

    assert pipeline.max_workers == 3
    assert pipeline.classifier.labeler is components.labeler
    assert pipeline.references.detector is components.detector
    assert isinstance(pipeline.references.storage, JsonReferenceStorage)
    assert pipeline.references.scorer.threshold == config.similarity_threshold
