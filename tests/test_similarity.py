"""Unit tests for face similarity scoring."""

from __future__ import annotations

import numpy as np
import pytest

from facegate.features import FaceFeatureExtractor, FaceFeatures
from facegate.histogram import HISTOGRAM_BINS
from facegate.interfaces import BBox, DetectedFace, LandmarkType
from facegate.similarity import (
    ScoreWeights,
    SimilarityScorer,
    color_similarity,
    landmark_similarity,
    pose_similarity,
    shape_similarity,
)


def make_features(
    ratio: float = 1.0,
    yaw: float = 0.0,
    roll: float = 0.0,
    landmarks=None,
    histogram=None,
) -> FaceFeatures:
    """Create a feature record with sensible defaults."""
    if histogram is None:
        histogram = np.zeros(HISTOGRAM_BINS)
        histogram[10] = 0.5
        histogram[20] = 0.5
    if landmarks is None:
        landmarks = {
            LandmarkType.LEFT_EYE: (30.0, 40.0),
            LandmarkType.RIGHT_EYE: (70.0, 40.0),
            LandmarkType.NOSE_BASE: (50.0, 60.0),
        }
    return FaceFeatures(
        bounding_box_ratio=ratio,
        face_size=10000,
        left_eye_open_probability=0.8,
        right_eye_open_probability=0.8,
        smiling_probability=0.1,
        head_euler_angle_y=yaw,
        head_euler_angle_z=roll,
        landmarks=landmarks,
        face_histogram=histogram,
    )


def random_features(rng: np.random.Generator) -> FaceFeatures:
    histogram = rng.random(HISTOGRAM_BINS)
    all_kinds = list(LandmarkType)
    kinds = [all_kinds[i] for i in rng.choice(len(all_kinds), size=4, replace=False)]
    return make_features(
        ratio=float(rng.uniform(0.5, 1.5)),
        yaw=float(rng.uniform(-60, 60)),
        roll=float(rng.uniform(-60, 60)),
        landmarks={k: tuple(rng.uniform(0, 200, size=2)) for k in kinds},
        histogram=histogram / histogram.sum(),
    )


@pytest.fixture
def scorer():
    """Create a scorer with the default weights and threshold."""
    return SimilarityScorer()


def test_self_similarity_is_one(scorer):
    """Test a face compared with itself scores 1.0."""
    features = make_features()

    assert scorer.similarity(features, features) == 1.0
    assert scorer.matches(features, features)


def test_similarity_is_symmetric(scorer):
    """Test argument order does not change the score."""
    rng = np.random.default_rng(7)

    for _ in range(20):
        a, b = random_features(rng), random_features(rng)
        assert scorer.similarity(a, b) == scorer.similarity(b, a)
        assert 0.0 <= scorer.similarity(a, b) <= 1.0


def test_shape_similarity():
    """Test aspect-ratio agreement and its floor at zero."""
    assert shape_similarity(make_features(ratio=1.0), make_features(ratio=0.8)) == pytest.approx(0.9)
    assert shape_similarity(make_features(ratio=0.5), make_features(ratio=3.5)) == 0.0


def test_landmark_similarity_uses_common_kinds():
    """Test only landmarks present in both faces are compared."""
    a = make_features(landmarks={LandmarkType.LEFT_EYE: (0.0, 0.0), LandmarkType.NOSE_BASE: (5.0, 5.0)})
    b = make_features(landmarks={LandmarkType.LEFT_EYE: (30.0, 40.0), LandmarkType.LEFT_EAR: (1.0, 1.0)})

    # One common kind at distance 50
    assert landmark_similarity(a, b) == pytest.approx(0.5)


def test_landmark_similarity_without_common_kinds():
    """Test disjoint landmark sets give the neutral score."""
    a = make_features(landmarks={LandmarkType.LEFT_EYE: (0.0, 0.0)})
    b = make_features(landmarks={LandmarkType.RIGHT_EYE: (0.0, 0.0)})

    assert landmark_similarity(a, b) == 0.5


def test_landmark_similarity_far_apart():
    """Test distances beyond the scale give zero."""
    a = make_features(landmarks={LandmarkType.LEFT_EYE: (0.0, 0.0)})
    b = make_features(landmarks={LandmarkType.LEFT_EYE: (300.0, 0.0)})

    assert landmark_similarity(a, b) == 0.0


def test_color_similarity():
    """Test identical histograms score 1 and disjoint ones score 0."""
    first = np.zeros(HISTOGRAM_BINS)
    first[0] = 1.0
    second = np.zeros(HISTOGRAM_BINS)
    second[63] = 1.0

    a = make_features(histogram=first)
    b = make_features(histogram=second)

    assert color_similarity(a, a) == pytest.approx(1.0)
    assert color_similarity(a, b) == pytest.approx(0.0)


def test_pose_similarity():
    """Test yaw and roll agreement are averaged."""
    a = make_features(yaw=0.0, roll=0.0)
    b = make_features(yaw=22.5, roll=90.0)

    assert pose_similarity(a, b) == pytest.approx((0.5 + 0.0) / 2)


def test_breakdown_total_is_weighted_sum(scorer):
    """Test the total combines the sub-scores with the weights."""
    a = make_features(ratio=1.0, yaw=0.0)
    b = make_features(ratio=0.8, yaw=9.0)

    result = scorer.breakdown(a, b)
    expected = (
        0.15 * result.shape + 0.45 * result.landmarks + 0.30 * result.color + 0.10 * result.pose
    )

    assert result.total == pytest.approx(expected)


def test_threshold_is_strict():
    """Test a score equal to the threshold is not a match."""
    scorer = SimilarityScorer(threshold=0.6)

    assert not scorer.is_match(0.6)
    assert scorer.is_match(0.61)


def test_invalid_threshold():
    """Test thresholds outside [0, 1] are rejected."""
    with pytest.raises(ValueError):
        SimilarityScorer(threshold=1.5)


def test_weights_must_sum_to_one():
    """Test weight validation."""
    with pytest.raises(ValueError):
        ScoreWeights(shape=0.5, landmarks=0.5, color=0.5, pose=0.5)

    with pytest.raises(ValueError):
        ScoreWeights(shape=-0.1, landmarks=0.55, color=0.45, pose=0.1)

    weights = ScoreWeights(shape=0.25, landmarks=0.25, color=0.25, pose=0.25)
    assert SimilarityScorer(weights=weights).weights is weights


def test_self_similarity_of_extracted_face_is_exactly_one(scorer):
    """Test a face extracted from an image scores exactly 1.0 against itself."""
    image = np.random.default_rng(3).integers(0, 255, (120, 120, 3), dtype=np.uint8)
    face = DetectedFace(
        bbox=BBox(10, 20, 90, 110),
        landmarks={LandmarkType.LEFT_EYE: (35.0, 50.0)},
        head_euler_angle_y=7.5,
        head_euler_angle_z=-3.0,
    )
    features = FaceFeatureExtractor().extract(face, image)

    result = scorer.breakdown(features, features)

    assert result.total == 1.0
    assert result.color == 1.0


def test_unequal_weights_self_similarity_is_one():
    """Test normalization by the weight sum for other weightings."""
    weights = ScoreWeights(shape=0.1, landmarks=0.2, color=0.3, pose=0.4)
    features = make_features()

    assert SimilarityScorer(weights=weights).similarity(features, features) == 1.0
