"""Face feature extraction.

A :class:`FaceFeatures` record is the numeric description of one detected
face: box geometry, head pose, expression probabilities, landmark positions
and a color histogram of the face region. Records are created once per
detected face and never modified afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

import numpy as np

from facegate.histogram import HISTOGRAM_BINS, extract_color_histogram
from facegate.interfaces import DetectedFace, LandmarkType
from facegate.logging_config import get_logger
from facegate.utils import crop_region

logger = get_logger(__name__)

# Used when the detector does not report an expression probability
DEFAULT_PROBABILITY = 0.5
HISTOGRAM_TOLERANCE = 1e-3


@dataclass(frozen=True, eq=False)
class FaceFeatures:
    """Immutable features of a single detected face.

    Attributes:
        bounding_box_ratio: Box width / height
        face_size: Box area in pixels
        left_eye_open_probability: Probability in [0, 1]
        right_eye_open_probability: Probability in [0, 1]
        smiling_probability: Probability in [0, 1]
        head_euler_angle_y: Yaw in degrees
        head_euler_angle_z: Roll in degrees
        landmarks: Read-only mapping of landmark kind to (x, y)
        face_histogram: Read-only 64-bin color histogram summing to 1.0
    """

    bounding_box_ratio: float
    face_size: int
    left_eye_open_probability: float
    right_eye_open_probability: float
    smiling_probability: float
    head_euler_angle_y: float
    head_euler_angle_z: float
    landmarks: Mapping[LandmarkType, Tuple[float, float]]
    face_histogram: np.ndarray

    def __post_init__(self) -> None:
        """Validate invariants and freeze mutable containers."""
        for name in (
            "left_eye_open_probability",
            "right_eye_open_probability",
            "smiling_probability",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

        histogram = np.array(self.face_histogram, dtype=np.float64)
        if histogram.shape != (HISTOGRAM_BINS,):
            raise ValueError(
                f"face_histogram must have shape ({HISTOGRAM_BINS},), got {histogram.shape}"
            )
        if abs(histogram.sum() - 1.0) > HISTOGRAM_TOLERANCE:
            raise ValueError(f"face_histogram must sum to 1.0, got {histogram.sum():.6f}")
        histogram.flags.writeable = False

        landmarks = {
            LandmarkType(kind): (float(x), float(y))
            for kind, (x, y) in self.landmarks.items()
        }

        object.__setattr__(self, "face_histogram", histogram)
        object.__setattr__(self, "landmarks", MappingProxyType(landmarks))

    def __repr__(self) -> str:
        """String representation of the feature record."""
        return (
            f"FaceFeatures(ratio={self.bounding_box_ratio:.3f}, size={self.face_size}, "
            f"yaw={self.head_euler_angle_y:.1f}, roll={self.head_euler_angle_z:.1f}, "
            f"landmarks={len(self.landmarks)})"
        )


class FaceFeatureExtractor:
    """Builds :class:`FaceFeatures` from a detected face and its image.

    Geometry, pose, landmarks and expression come straight from the
    detector; the color histogram is computed from the face region after
    clamping the box to the image.

    Example:
        >>> extractor = FaceFeatureExtractor()
        >>> features = extractor.extract(face, image)
        >>> if features is None:
        ...     print("Degenerate face box")
    """

    def extract(self, face: DetectedFace, image: np.ndarray) -> Optional[FaceFeatures]:
        """Extract features of one face.

        Args:
            face: Face reported by the detector for ``image``
            image: The BGR image the face was detected in

        Returns:
            FaceFeatures, or None when the box is degenerate before or
            after clamping to the image bounds.
        """
        bbox = face.bbox

        if bbox.is_degenerate:
            logger.debug(f"Skipping degenerate face box {bbox}")
            return None

        region = crop_region(image, bbox)
        if region is None:
            logger.debug(f"Face box {bbox} lies outside the image")
            return None

        return FaceFeatures(
            bounding_box_ratio=bbox.width / bbox.height,
            face_size=bbox.area,
            left_eye_open_probability=_or_default(face.left_eye_open_probability),
            right_eye_open_probability=_or_default(face.right_eye_open_probability),
            smiling_probability=_or_default(face.smiling_probability),
            head_euler_angle_y=float(face.head_euler_angle_y),
            head_euler_angle_z=float(face.head_euler_angle_z),
            landmarks=dict(face.landmarks),
            face_histogram=extract_color_histogram(region),
        )


def _or_default(probability: Optional[float]) -> float:
    return DEFAULT_PROBABILITY if probability is None else float(probability)
