"""Reference enrollment and 1:1 verification per workflow.

Each workflow enrolls a single reference photograph. Verification compares
every face found in a candidate image against the features of that
reference.

Workflow:
1. enroll() - extract the largest face of the reference image, persist its
   path and cache its features
2. verify() - resolve the reference features (cache or re-extraction),
   detect faces in the candidate, stop at the first face that matches
3. remove_reference() - forget the path and drop the cached features

compare_images() and compare_candidates() match images against an ad-hoc
reference photograph without enrolling it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from facegate.cache import ReferenceFeatureCache
from facegate.config import DEFAULT_MAX_IMAGE_SIZE
from facegate.features import FaceFeatureExtractor, FaceFeatures
from facegate.interfaces import DetectedFace, FaceDetector, ReferenceStorage
from facegate.logging_config import get_logger
from facegate.similarity import SimilarityScorer
from facegate.utils import load_image

logger = get_logger(__name__)


@dataclass
class VerificationResult:
    """Outcome of verifying one candidate image.

    Attributes:
        is_match: True if a face scored above the threshold
        best_score: Highest similarity seen (0.0 if no face was compared)
        faces_checked: Number of faces compared before stopping
        scores: Similarity of each compared face, in detection order

    Example:
        >>> result = manager.verify_with_details("w1", "/photos/new.jpg")
        >>> print(f"match={result.is_match} best={result.best_score:.2f}")
    """

    is_match: bool
    best_score: float = 0.0
    faces_checked: int = 0
    scores: List[float] = field(default_factory=list)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"VerificationResult(is_match={self.is_match}, "
            f"best_score={self.best_score:.3f}, faces_checked={self.faces_checked})"
        )


class ReferenceManager:
    """Enrolls reference faces and verifies candidates against them.

    The manager owns a :class:`ReferenceFeatureCache` derived from the
    persisted reference paths. A cached entry is only trusted while its path
    equals the path currently persisted for the workflow; otherwise the
    features are extracted again.

    Attributes:
        detector: Face detector
        storage: Reference path storage
        scorer: Similarity scorer holding the match threshold
        extractor: Face feature extractor
        cache: Reference feature cache
        max_image_size: Bound used when decoding images

    Example:
        >>> manager = ReferenceManager(
        ...     detector=detector,
        ...     storage=JsonReferenceStorage("data/references.json"),
        ... )
        >>> manager.enroll("w1", "/photos/alice.jpg")
        True
        >>> manager.verify("w1", "/photos/new.jpg")
        True
    """

    def __init__(
        self,
        detector: FaceDetector,
        storage: ReferenceStorage,
        scorer: Optional[SimilarityScorer] = None,
        extractor: Optional[FaceFeatureExtractor] = None,
        cache: Optional[ReferenceFeatureCache] = None,
        max_image_size: int = DEFAULT_MAX_IMAGE_SIZE,
    ):
        """Initialize reference manager.

        Args:
            detector: Face detector instance
            storage: Reference path storage
            scorer: Similarity scorer (default threshold 0.5)
            extractor: Feature extractor
            cache: Feature cache (a fresh one if None)
            max_image_size: Bound used when decoding images
        """
        self.detector = detector
        self.storage = storage
        self.scorer = scorer or SimilarityScorer()
        self.extractor = extractor or FaceFeatureExtractor()
        self.cache = cache if cache is not None else ReferenceFeatureCache()
        self.max_image_size = max_image_size

        logger.info(
            f"Initialized ReferenceManager: threshold={self.scorer.threshold:.2f}, "
            f"storage={self.storage}"
        )

    def _load(self, image_path: str | Path) -> Optional[np.ndarray]:
        try:
            return load_image(image_path, self.max_image_size)
        except Exception as e:
            logger.error(f"Failed to load image {image_path}: {e}", exc_info=True)
            return None

    def _detect(self, image: np.ndarray) -> List[DetectedFace]:
        """Run the detector, treating failures as 'no faces'."""
        try:
            return list(self.detector.detect(image))
        except Exception as e:
            logger.error(f"Face detection failed: {e}", exc_info=True)
            return []

    def extract_reference_features(self, image_path: str | Path) -> Optional[FaceFeatures]:
        """Extract features of the largest face in an image.

        Args:
            image_path: Path to the reference image

        Returns:
            FaceFeatures, or None if the image cannot be read, contains no
            face, or the largest face has a degenerate box.
        """
        image = self._load(image_path)
        if image is None:
            return None

        faces = self._detect(image)
        if not faces:
            logger.warning(f"No faces found in reference image {image_path}")
            return None

        largest = max(faces, key=lambda f: f.bbox.area)

        try:
            return self.extractor.extract(largest, image)
        except Exception as e:
            logger.error(f"Error extracting face features from {image_path}: {e}", exc_info=True)
            return None

    def enroll(self, workflow_id: str, image_path: str | Path) -> bool:
        """Enroll (or replace) the reference image of a workflow.

        Args:
            workflow_id: Workflow identifier
            image_path: Path to the reference photograph

        Returns:
            True on success. False leaves any previous reference untouched.
        """
        image_path = str(image_path)
        logger.info(f"Setting reference image for workflow '{workflow_id}': {image_path}")

        with self.cache.lock_for(workflow_id):
            features = self.extract_reference_features(image_path)

            if features is None:
                logger.warning(
                    f"Failed to extract face features from reference image for "
                    f"workflow '{workflow_id}'"
                )
                return False

            try:
                self.storage.save(workflow_id, image_path)
            except Exception as e:
                logger.error(f"Could not persist reference for '{workflow_id}': {e}", exc_info=True)
                return False

            self.cache.put(workflow_id, image_path, features)

        logger.info(f"Reference image set for workflow '{workflow_id}': {features}")
        return True

    def _reference_features(self, workflow_id: str) -> Optional[FaceFeatures]:
        """Resolve reference features from the cache or the persisted path."""
        with self.cache.lock_for(workflow_id):
            image_path = self.storage.get(workflow_id)

            if not image_path:
                self.cache.invalidate(workflow_id)
                logger.debug(f"No reference recorded for workflow '{workflow_id}'")
                return None

            if not Path(image_path).is_file():
                self.cache.invalidate(workflow_id)
                logger.warning(
                    f"Reference image of workflow '{workflow_id}' no longer exists: {image_path}"
                )
                return None

            cached = self.cache.get(workflow_id)
            if cached is not None and cached.image_path == image_path:
                return cached.features

            if cached is not None:
                logger.info(f"Cached reference of workflow '{workflow_id}' is stale, re-extracting")

            features = self.extract_reference_features(image_path)
            if features is None:
                self.cache.invalidate(workflow_id)
                return None

            self.cache.put(workflow_id, image_path, features)
            return features

    def _match_candidate(
        self, reference: FaceFeatures, candidate_path: str | Path, context: str
    ) -> VerificationResult:
        """Compare faces of a candidate image against reference features.

        Faces are compared in detection order and comparison stops at the
        first face scoring above the threshold.
        """
        image = self._load(candidate_path)
        if image is None:
            return VerificationResult(is_match=False)

        faces = self._detect(image)
        if not faces:
            logger.debug(f"No faces detected in {candidate_path}")
            return VerificationResult(is_match=False)

        result = VerificationResult(is_match=False)

        for i, face in enumerate(faces):
            try:
                candidate = self.extractor.extract(face, image)
            except Exception as e:
                logger.warning(f"Failed to extract features of face {i}: {e}")
                continue

            if candidate is None:
                continue

            score = self.scorer.similarity(reference, candidate)
            result.faces_checked += 1
            result.scores.append(score)
            result.best_score = max(result.best_score, score)

            if self.scorer.is_match(score):
                result.is_match = True
                logger.debug(
                    f"Face match for {context}: score={score:.3f} "
                    f"(threshold={self.scorer.threshold:.3f})"
                )
                break

            logger.debug(
                f"Face {i} does not match {context}: score={score:.3f} "
                f"(threshold={self.scorer.threshold:.3f})"
            )

        return result

    def verify_with_details(
        self, workflow_id: str, candidate_path: str | Path
    ) -> VerificationResult:
        """Verify a candidate image and report the scores seen.

        Args:
            workflow_id: Workflow identifier
            candidate_path: Path to the image to check

        Returns:
            VerificationResult (is_match False on any failure).
        """
        try:
            reference = self._reference_features(workflow_id)
        except Exception as e:
            logger.error(f"Could not resolve reference for '{workflow_id}': {e}", exc_info=True)
            return VerificationResult(is_match=False)

        if reference is None:
            return VerificationResult(is_match=False)

        return self._match_candidate(reference, candidate_path, f"workflow '{workflow_id}'")

    def verify(self, workflow_id: str, candidate_path: str | Path) -> bool:
        """True if the enrolled person appears in the candidate image."""
        return self.verify_with_details(workflow_id, candidate_path).is_match

    def compare_images(
        self, reference_path: str | Path, candidate_path: str | Path
    ) -> VerificationResult:
        """Compare two images without enrolling anything.

        The largest face of the reference image is matched against the
        faces of the candidate image, as in :meth:`verify_with_details`.
        Storage and cache are not touched.

        Args:
            reference_path: Image holding the known person
            candidate_path: Image to check

        Returns:
            VerificationResult (is_match False if either image has no usable face).
        """
        return self.compare_candidates(reference_path, [candidate_path])[0]

    def compare_candidates(
        self, reference_path: str | Path, candidate_paths: Sequence[str | Path]
    ) -> List[VerificationResult]:
        """Compare several candidate images against one reference image.

        Reference features are extracted once for the whole batch.

        Returns:
            One VerificationResult per candidate, in input order.
        """
        reference = self.extract_reference_features(reference_path)
        if reference is None:
            logger.warning(f"No usable face in reference image {reference_path}")
            return [VerificationResult(is_match=False) for _ in candidate_paths]

        results = [
            self._match_candidate(reference, path, f"reference {reference_path}")
            for path in candidate_paths
        ]

        logger.info(
            f"Compared {len(results)} image(s) against {reference_path}: "
            f"{sum(r.is_match for r in results)} match(es)"
        )
        return results

    def has_reference(self, workflow_id: str) -> bool:
        """True when a reference is recorded and its file still exists."""
        return self.storage.has(workflow_id)

    def get_reference_path(self, workflow_id: str) -> Optional[str]:
        """Return the recorded reference path of a workflow."""
        return self.storage.get(workflow_id)

    def remove_reference(self, workflow_id: str) -> None:
        """Forget the reference of a workflow and drop its cached features."""
        with self.cache.lock_for(workflow_id):
            self.storage.remove(workflow_id)
            self.cache.invalidate(workflow_id)

        logger.info(f"Removed reference for workflow '{workflow_id}'")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ReferenceManager(threshold={self.scorer.threshold:.2f}, "
            f"cached_references={len(self.cache)})"
        )
