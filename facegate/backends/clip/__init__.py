"""OpenCLIP backend: zero-shot image labeling."""

from facegate.backends.clip.labeler import ClipImageLabeler

__all__ = ["ClipImageLabeler"]
