"""High-level services for the person-recognition subsystem.

This package contains the pipeline that orchestrates classification,
reference verification and per-workflow routing.
"""

from facegate.services.pipeline import (
    ImagePipeline,
    PipelineAction,
    PipelineResult,
    WorkflowConfig,
    WorkflowType,
)

__all__ = [
    "ImagePipeline",
    "PipelineAction",
    "PipelineResult",
    "WorkflowConfig",
    "WorkflowType",
]
