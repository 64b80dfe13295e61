"""Collaborator backends for the person-recognition subsystem.

This package contains the concrete model wrappers:
- insightface: face detection with landmarks and head pose
- easyocr: text recognition
- clip: zero-shot image labeling

Use the factory module to create backend components.
"""

from facegate.backends.factory import (
    BackendComponents,
    create_backend,
    create_detector,
    create_labeler,
    create_text_recognizer,
)

__all__ = [
    "BackendComponents",
    "create_backend",
    "create_detector",
    "create_labeler",
    "create_text_recognizer",
]
