"""Shared fixtures: synthetic images and a scripted face detector."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Dict, List

import cv2
import numpy as np
import pytest

from facegate.interfaces import BBox, DetectedFace, LandmarkType
from facegate.storage import InMemoryReferenceStorage


class ScriptedDetector:
    """Face detector that returns faces keyed by a marker pixel.

    Test images store a scene id in the blue channel of pixel (0, 0);
    ``detect`` returns the faces registered for that id. Images are PNG so
    the marker survives encoding.
    """

    def __init__(self) -> None:
        self.scenes: Dict[int, List[DetectedFace]] = {}
        self.calls = 0
        self._lock = threading.Lock()

    def register(self, scene_id: int, faces: List[DetectedFace]) -> None:
        self.scenes[scene_id] = faces

    def detect(self, image_bgr: np.ndarray) -> List[DetectedFace]:
        with self._lock:
            self.calls += 1
        return list(self.scenes.get(int(image_bgr[0, 0, 0]), []))


def build_face(
    x1: int = 100,
    y1: int = 100,
    x2: int = 200,
    y2: int = 200,
    offset: float = 0.0,
    yaw: float = 0.0,
    roll: float = 0.0,
) -> DetectedFace:
    """Detected face whose landmarks sit inside the box, shifted by ``offset``."""
    landmarks = {
        LandmarkType.LEFT_EYE: (x1 + 30 + offset, y1 + 35 + offset),
        LandmarkType.RIGHT_EYE: (x1 + 70 + offset, y1 + 35 + offset),
        LandmarkType.NOSE_BASE: (x1 + 50 + offset, y1 + 55 + offset),
        LandmarkType.MOUTH_LEFT: (x1 + 35 + offset, y1 + 75 + offset),
        LandmarkType.MOUTH_RIGHT: (x1 + 65 + offset, y1 + 75 + offset),
    }
    return DetectedFace(
        bbox=BBox(x1, y1, x2, y2),
        landmarks=landmarks,
        head_euler_angle_y=yaw,
        head_euler_angle_z=roll,
        left_eye_open_probability=0.9,
        right_eye_open_probability=0.9,
        smiling_probability=0.2,
        score=0.95,
    )


def render_scene(
    path: Path,
    scene_id: int,
    face_color=(40, 90, 200),
    size: int = 300,
) -> Path:
    """Write a PNG with a colored face square and the scene marker."""
    image = np.full((size, size, 3), 235, dtype=np.uint8)
    image[100:200, 100:200] = face_color
    image[0, 0] = (scene_id, 0, 0)
    cv2.imwrite(str(path), image)
    return path


@pytest.fixture
def detector():
    """Create a scripted detector."""
    return ScriptedDetector()


@pytest.fixture
def storage():
    """Create an in-memory reference storage."""
    return InMemoryReferenceStorage()


@pytest.fixture
def alice_image(tmp_path, detector):
    """Single frontal face with warm colors (scene 1)."""
    detector.register(1, [build_face()])
    return render_scene(tmp_path / "alice.png", 1, face_color=(40, 90, 200))


@pytest.fixture
def bob_image(tmp_path, detector):
    """Single face of a different person: other colors, landmarks and pose (scene 2)."""
    detector.register(2, [build_face(offset=150.0, yaw=40.0, roll=30.0)])
    return render_scene(tmp_path / "bob.png", 2, face_color=(200, 60, 10))


@pytest.fixture
def landscape_image(tmp_path, detector):
    """Image without faces (scene 3)."""
    detector.register(3, [])
    return render_scene(tmp_path / "landscape.png", 3, face_color=(30, 160, 30))


@pytest.fixture
def make_face():
    """Factory for detected faces with landmarks inside the box."""
    return build_face


@pytest.fixture
def write_scene():
    """Writer for extra scene images registered on the detector."""
    return render_scene
