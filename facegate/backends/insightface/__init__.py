"""InsightFace backend: SCRFD face detection with 3D landmark head pose."""

from facegate.backends.insightface.detector import InsightFaceDetector

__all__ = ["InsightFaceDetector"]
