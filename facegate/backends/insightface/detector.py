"""Face detector using InsightFace.

This module provides a face detector based on SCRFD via InsightFace's
FaceAnalysis API. Besides boxes and the 5-point keypoints it loads the 3D
landmark model, which estimates head pose (pitch, yaw, roll).
"""

from __future__ import annotations

from typing import List

import numpy as np
from insightface.app import FaceAnalysis

from facegate.config import Config
from facegate.interfaces import BBox, DetectedFace, LandmarkType
from facegate.logging_config import get_logger

logger = get_logger(__name__)

# Order of InsightFace 5-point keypoints
KEYPOINT_LANDMARKS = (
    LandmarkType.LEFT_EYE,
    LandmarkType.RIGHT_EYE,
    LandmarkType.NOSE_BASE,
    LandmarkType.MOUTH_LEFT,
    LandmarkType.MOUTH_RIGHT,
)


class InsightFaceDetector:
    """Face detector using InsightFace SCRFD and 3D landmark models.

    InsightFace reports no eye-open or smiling probabilities, so those
    fields of :class:`DetectedFace` are left unset.

    Attributes:
        app: InsightFace FaceAnalysis instance
        ctx_id: Device context (-1=CPU, 0+=GPU)
        det_size: Detection input size

    Example:
        >>> from facegate.config import get_config
        >>> detector = InsightFaceDetector(get_config())
        >>> faces = detector.detect(image)
        >>> print(f"Found {len(faces)} faces")
    """

    def __init__(self, config: Config):
        """Initialize detector.

        Args:
            config: Configuration object with ctx_id, model_pack and det_size

        Raises:
            RuntimeError: If model fails to load.
        """
        self.ctx_id = config.ctx_id
        self.det_size = (config.det_size, config.det_size)

        logger.info(
            f"Initializing InsightFace detector (model={config.model_pack}, "
            f"device={'GPU:' + str(config.ctx_id) if config.ctx_id >= 0 else 'CPU'}, "
            f"det_size={self.det_size})"
        )

        try:
            # landmark_3d_68 provides face.pose = [pitch, yaw, roll]
            self.app = FaceAnalysis(
                name=config.model_pack,
                allowed_modules=["detection", "landmark_3d_68"],
                providers=(
                    ["CUDAExecutionProvider", "CPUExecutionProvider"]
                    if config.ctx_id >= 0
                    else ["CPUExecutionProvider"]
                ),
            )

            self.app.prepare(ctx_id=config.ctx_id, det_size=self.det_size)

            logger.info("InsightFace detector initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize InsightFace detector: {e}", exc_info=True)
            raise RuntimeError(f"Could not load InsightFace detector: {e}") from e

    def detect(self, image_bgr: np.ndarray) -> List[DetectedFace]:
        """Detect faces in an image.

        Args:
            image_bgr: Input image in BGR format, shape [H, W, 3]

        Returns:
            List of DetectedFace objects in detector order.
            Empty list if no faces are detected.
        """
        if image_bgr is None or image_bgr.size == 0:
            logger.warning("Empty image provided to detector")
            return []

        faces = self.app.get(image_bgr)

        detected = []
        for face in faces:
            x1, y1, x2, y2 = np.round(face.bbox).astype(int)

            landmarks = {}
            kps = getattr(face, "kps", None)
            if kps is not None:
                for kind, (x, y) in zip(KEYPOINT_LANDMARKS, kps):
                    landmarks[kind] = (float(x), float(y))

            yaw, roll = 0.0, 0.0
            pose = getattr(face, "pose", None)
            if pose is not None:
                _pitch, yaw, roll = (float(a) for a in pose)

            detected.append(
                DetectedFace(
                    bbox=BBox(x1=int(x1), y1=int(y1), x2=int(x2), y2=int(y2)),
                    landmarks=landmarks,
                    head_euler_angle_y=yaw,
                    head_euler_angle_z=roll,
                    score=float(np.clip(face.det_score, 0.0, 1.0)),
                )
            )

        if detected:
            logger.debug(f"Detected {len(detected)} faces")

        return detected

    def __repr__(self) -> str:
        """String representation of detector."""
        return f"InsightFaceDetector(ctx_id={self.ctx_id}, det_size={self.det_size})"
