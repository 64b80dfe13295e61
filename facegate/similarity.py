"""Weighted similarity between two face feature records.

The score combines four sub-scores:

- shape: bounding box aspect ratio agreement
- landmarks: mean pixel distance between landmarks both faces share
- color: Bhattacharyya coefficient blended with histogram intersection
- pose: yaw and roll agreement

Landmark geometry carries the most weight, color is secondary, shape and
pose are small corrective terms.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from facegate.config import DEFAULT_SIMILARITY_THRESHOLD
from facegate.features import FaceFeatures
from facegate.logging_config import get_logger

logger = get_logger(__name__)

# Landmark distance (pixels) at which the landmark score reaches zero
LANDMARK_DISTANCE_SCALE = 100.0
# Angle difference (degrees) at which a pose axis score reaches zero
POSE_ANGLE_SCALE = 45.0
# Score used when two faces share no landmark kind
NEUTRAL_LANDMARK_SCORE = 0.5
BHATTACHARYYA_WEIGHT = 0.7
INTERSECTION_WEIGHT = 0.3


@dataclass(frozen=True)
class ScoreWeights:
    """Relative weights of the four sub-scores; must sum to 1.0."""

    shape: float = 0.15
    landmarks: float = 0.45
    color: float = 0.30
    pose: float = 0.10

    def __post_init__(self) -> None:
        """Validate that the weights are non-negative and sum to one."""
        values = (self.shape, self.landmarks, self.color, self.pose)
        if any(w < 0 for w in values):
            raise ValueError(f"Weights must be non-negative, got {values}")
        if not math.isclose(sum(values), 1.0, abs_tol=1e-9):
            raise ValueError(f"Weights must sum to 1.0, got {sum(values):.6f}")


@dataclass(frozen=True)
class SimilarityBreakdown:
    """Sub-scores and weighted total of one comparison."""

    shape: float
    landmarks: float
    color: float
    pose: float
    total: float

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"SimilarityBreakdown(shape={self.shape:.3f}, landmarks={self.landmarks:.3f}, "
            f"color={self.color:.3f}, pose={self.pose:.3f}, total={self.total:.3f})"
        )


def shape_similarity(reference: FaceFeatures, candidate: FaceFeatures) -> float:
    """Aspect-ratio agreement: ``1 - |ref - cand| / 2``, floored at 0."""
    diff = abs(reference.bounding_box_ratio - candidate.bounding_box_ratio)
    return max(0.0, 1.0 - diff / 2.0)


def landmark_similarity(reference: FaceFeatures, candidate: FaceFeatures) -> float:
    """Similarity from the mean distance of shared landmark kinds.

    Returns 0.5 when the faces share no landmark kind.
    """
    # Sorted so the float summation order does not depend on argument order
    common = sorted(reference.landmarks.keys() & candidate.landmarks.keys())

    if not common:
        logger.debug("No common landmarks available for comparison")
        return NEUTRAL_LANDMARK_SCORE

    total_distance = 0.0
    for kind in common:
        rx, ry = reference.landmarks[kind]
        cx, cy = candidate.landmarks[kind]
        total_distance += math.hypot(rx - cx, ry - cy)

    mean_distance = total_distance / len(common)
    return max(0.0, 1.0 - mean_distance / LANDMARK_DISTANCE_SCALE)


def color_similarity(reference: FaceFeatures, candidate: FaceFeatures) -> float:
    """Blend of Bhattacharyya coefficient (0.7) and intersection (0.3)."""
    ref = reference.face_histogram
    cand = candidate.face_histogram

    if ref.shape != cand.shape:
        return 0.0

    bhattacharyya = float(np.sqrt(ref * cand).sum())
    intersection = float(np.minimum(ref, cand).sum())

    weighted = BHATTACHARYYA_WEIGHT * bhattacharyya + INTERSECTION_WEIGHT * intersection
    return min(1.0, weighted / (BHATTACHARYYA_WEIGHT + INTERSECTION_WEIGHT))


def pose_similarity(reference: FaceFeatures, candidate: FaceFeatures) -> float:
    """Mean of per-axis ``max(0, 1 - |diff| / 45)`` over yaw and roll."""
    yaw_diff = abs(reference.head_euler_angle_y - candidate.head_euler_angle_y)
    roll_diff = abs(reference.head_euler_angle_z - candidate.head_euler_angle_z)

    yaw_sim = max(0.0, 1.0 - yaw_diff / POSE_ANGLE_SCALE)
    roll_sim = max(0.0, 1.0 - roll_diff / POSE_ANGLE_SCALE)

    return (yaw_sim + roll_sim) / 2.0


class SimilarityScorer:
    """Scores how alike two faces are and applies the match threshold.

    Attributes:
        weights: Sub-score weights
        threshold: A score strictly above this value is a match

    Example:
        >>> scorer = SimilarityScorer(threshold=0.5)
        >>> score = scorer.similarity(reference, candidate)
        >>> if scorer.is_match(score):
        ...     print(f"Same person ({score:.2f})")
    """

    def __init__(
        self,
        weights: ScoreWeights | None = None,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ):
        """Initialize scorer.

        Args:
            weights: Sub-score weights (defaults to 0.15/0.45/0.30/0.10)
            threshold: Similarity threshold (0.0 to 1.0)

        Raises:
            ValueError: If threshold is not in valid range.
        """
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"Threshold must be in [0, 1], got {threshold}")

        self.weights = weights or ScoreWeights()
        self.threshold = threshold

    def breakdown(self, reference: FaceFeatures, candidate: FaceFeatures) -> SimilarityBreakdown:
        """Compute all sub-scores and the weighted total."""
        shape = shape_similarity(reference, candidate)
        landmarks = landmark_similarity(reference, candidate)
        color = color_similarity(reference, candidate)
        pose = pose_similarity(reference, candidate)

        w = self.weights
        weighted = (
            shape * w.shape + landmarks * w.landmarks + color * w.color + pose * w.pose
        )
        # Same summation order as the weighted sum, so identical faces give exactly 1.0
        total = weighted / (w.shape + w.landmarks + w.color + w.pose)
        total = min(1.0, max(0.0, total))

        result = SimilarityBreakdown(
            shape=shape, landmarks=landmarks, color=color, pose=pose, total=total
        )
        logger.debug(f"Similarity breakdown: {result}")
        return result

    def similarity(self, reference: FaceFeatures, candidate: FaceFeatures) -> float:
        """Similarity in [0, 1]; symmetric in its arguments."""
        return self.breakdown(reference, candidate).total

    def is_match(self, score: float) -> bool:
        """True when ``score`` is strictly above the threshold."""
        return score > self.threshold

    def matches(self, reference: FaceFeatures, candidate: FaceFeatures) -> bool:
        """Score two faces and apply the threshold."""
        return self.is_match(self.similarity(reference, candidate))

    def __repr__(self) -> str:
        """String representation."""
        return f"SimilarityScorer(threshold={self.threshold:.2f}, weights={self.weights})"
