"""Core interfaces and data structures for the person-recognition subsystem.

This module defines the abstract interfaces (Protocols) for the black-box
collaborators (face detection, text recognition, image labeling, reference
persistence) and the value types they exchange.

Components depend on these abstractions rather than on concrete backends,
so tests can substitute mocks and backends can be swapped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

import numpy as np


class LandmarkType(str, Enum):
    """Facial landmark kinds reported by face detectors."""

    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    NOSE_BASE = "nose_base"
    MOUTH_LEFT = "mouth_left"
    MOUTH_RIGHT = "mouth_right"
    MOUTH_BOTTOM = "mouth_bottom"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_CHEEK = "left_cheek"
    RIGHT_CHEEK = "right_cheek"


@dataclass
class BBox:
    """Bounding box for a detected face.

    Attributes:
        x1: Left edge x-coordinate (pixels)
        y1: Top edge y-coordinate (pixels)
        x2: Right edge x-coordinate (pixels, exclusive)
        y2: Bottom edge y-coordinate (pixels, exclusive)
    """

    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        """Get bounding box width in pixels."""
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        """Get bounding box height in pixels."""
        return self.y2 - self.y1

    @property
    def area(self) -> int:
        """Get bounding box area in square pixels."""
        return self.width * self.height

    @property
    def is_degenerate(self) -> bool:
        """True when the box has no positive extent."""
        return self.width <= 0 or self.height <= 0

    def clamp(self, img_width: int, img_height: int) -> BBox:
        """Clamp bounding box coordinates to image boundaries.

        Coordinates are clamped to ``[0, img_width]`` and ``[0, img_height]``
        so the result can be used directly as a slice.

        Args:
            img_width: Image width in pixels
            img_height: Image height in pixels

        Returns:
            New BBox with clamped coordinates (may be degenerate).
        """
        return BBox(
            x1=max(0, min(self.x1, img_width)),
            y1=max(0, min(self.y1, img_height)),
            x2=max(0, min(self.x2, img_width)),
            y2=max(0, min(self.y2, img_height)),
        )

    def __repr__(self) -> str:
        """String representation of bounding box."""
        return f"BBox(x1={self.x1}, y1={self.y1}, x2={self.x2}, y2={self.y2})"


@dataclass
class DetectedFace:
    """A face reported by the face-detection collaborator.

    Attributes:
        bbox: Bounding box in absolute pixel coordinates (not clamped)
        landmarks: Landmark positions (x, y) keyed by kind
        head_euler_angle_y: Yaw in degrees
        head_euler_angle_z: Roll in degrees
        left_eye_open_probability: Optional probability in [0, 1]
        right_eye_open_probability: Optional probability in [0, 1]
        smiling_probability: Optional probability in [0, 1]
        score: Detection confidence score (0.0 to 1.0)
    """

    bbox: BBox
    landmarks: Dict[LandmarkType, Tuple[float, float]] = field(default_factory=dict)
    head_euler_angle_y: float = 0.0
    head_euler_angle_z: float = 0.0
    left_eye_open_probability: Optional[float] = None
    right_eye_open_probability: Optional[float] = None
    smiling_probability: Optional[float] = None
    score: float = 1.0

    def __post_init__(self) -> None:
        """Validate detection data after initialization."""
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"Detection score must be in [0, 1], got {self.score}")

        for name in (
            "left_eye_open_probability",
            "right_eye_open_probability",
            "smiling_probability",
        ):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

    def __repr__(self) -> str:
        """String representation of detected face."""
        return (
            f"DetectedFace(bbox={self.bbox}, score={self.score:.3f}, "
            f"landmarks={len(self.landmarks)}, yaw={self.head_euler_angle_y:.1f}, "
            f"roll={self.head_euler_angle_z:.1f})"
        )


@dataclass(frozen=True)
class ImageLabel:
    """A label assigned to a whole image by the labeling collaborator."""

    text: str
    confidence: float


@runtime_checkable
class FaceDetector(Protocol):
    """Protocol for face detection models.

    A FaceDetector takes an image and returns every face it finds, with
    bounding box, landmarks, head pose and (when available) expression
    probabilities.
    """

    def detect(self, image_bgr: np.ndarray) -> List[DetectedFace]:
        """Detect faces in an image.

        Args:
            image_bgr: Input image in BGR format (OpenCV convention), shape [H, W, 3]

        Returns:
            List of DetectedFace objects, possibly empty.

        Example:
            >>> faces = detector.detect(image)
            >>> for face in faces:
            ...     print(f"Face at {face.bbox} yaw={face.head_euler_angle_y}")
        """
        ...


@runtime_checkable
class TextRecognizer(Protocol):
    """Protocol for text recognition (OCR) engines."""

    def recognize(self, image_bgr: np.ndarray) -> str:
        """Recognize all text in an image.

        Args:
            image_bgr: Input image in BGR format, shape [H, W, 3]

        Returns:
            The recognized text blocks concatenated with newlines;
            empty string when no text is found.
        """
        ...


@runtime_checkable
class ImageLabeler(Protocol):
    """Protocol for whole-image labeling models."""

    def label(self, image_bgr: np.ndarray) -> List[ImageLabel]:
        """Label an image.

        Args:
            image_bgr: Input image in BGR format, shape [H, W, 3]

        Returns:
            List of ImageLabel objects with confidences in [0, 1].

        Example:
            >>> for label in labeler.label(image):
            ...     print(f"{label.text}: {label.confidence:.2f}")
        """
        ...


@runtime_checkable
class ReferenceStorage(Protocol):
    """Protocol for the durable workflow id -> reference image path mapping."""

    def save(self, workflow_id: str, image_path: str) -> None:
        """Record (or overwrite) the reference image path of a workflow."""
        ...

    def get(self, workflow_id: str) -> Optional[str]:
        """Return the recorded path, or None when nothing is recorded."""
        ...

    def remove(self, workflow_id: str) -> None:
        """Forget the reference of a workflow (no-op if absent)."""
        ...

    def has(self, workflow_id: str) -> bool:
        """True when a non-empty path is recorded and the file still exists."""
        ...
