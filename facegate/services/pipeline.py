"""Image pipeline: classify incoming images and route them per workflow.

This module ties the classifier and the reference manager together. Every
workflow is one of two kinds:

1. IMAGE_FORWARD: person photos are verified against the workflow's
   reference; a match means the image should be forwarded
2. DOCUMENT_ANALYSIS: document images have their text recognized and are
   handed over for analysis

Delivery of the forwarded image or of the analysis result is the caller's
job; the pipeline only decides.
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from facegate.classifier import Classification, ImageClassifier
from facegate.config import Config
from facegate.logging_config import get_logger
from facegate.reference_manager import ReferenceManager, VerificationResult

logger = get_logger(__name__)


class WorkflowType(str, Enum):
    """Kinds of image workflows."""

    IMAGE_FORWARD = "image_forward"
    DOCUMENT_ANALYSIS = "document_analysis"


class PipelineAction(str, Enum):
    """What the caller should do with an image."""

    FORWARD = "forward"
    ANALYZE = "analyze"
    SKIP = "skip"


@dataclass
class WorkflowConfig:
    """Settings of one workflow that the pipeline needs.

    Attributes:
        workflow_id: Workflow identifier (also the reference storage key)
        workflow_type: IMAGE_FORWARD or DOCUMENT_ANALYSIS
        reference_image_path: Reference photograph uploaded for the workflow;
            enrolled on first use when nothing is enrolled yet
        name: Display name
    """

    workflow_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    workflow_type: WorkflowType = WorkflowType.IMAGE_FORWARD
    reference_image_path: str = ""
    name: str = "Image Workflow"


@dataclass
class PipelineResult:
    """Decision for one image and one workflow.

    Attributes:
        workflow_id: Workflow the decision belongs to
        image_path: Image that was processed
        classification: Content type of the image
        action: FORWARD, ANALYZE or SKIP
        is_match: Reference verification outcome (IMAGE_FORWARD only)
        text: Recognized text (ANALYZE only)
        reason: Short explanation of the decision
    """

    workflow_id: str
    image_path: str
    classification: Classification
    action: PipelineAction
    is_match: bool = False
    text: Optional[str] = None
    reason: str = ""

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"PipelineResult(workflow_id='{self.workflow_id}', "
            f"classification={self.classification.name}, action={self.action.name}, "
            f"is_match={self.is_match}, reason='{self.reason}')"
        )


class ImagePipeline:
    """Classify-then-verify pipeline with a worker pool.

    The collaborators behind the classifier and the reference manager are
    blocking, so :meth:`submit` runs :meth:`process` on a thread pool and
    returns a future the caller can wait on or simply drop.

    Attributes:
        classifier: Image classifier
        references: Reference manager
        max_workers: Size of the worker pool

    Example:
        >>> with ImagePipeline(classifier, references) as pipeline:
        ...     future = pipeline.submit("/photos/new.jpg", workflow)
        ...     result = future.result()
        ...     if result.action is PipelineAction.FORWARD:
        ...         send(result.image_path)
    """

    def __init__(
        self,
        classifier: ImageClassifier,
        references: ReferenceManager,
        max_workers: int = 4,
    ):
        """Initialize pipeline.

        Args:
            classifier: Image classifier instance
            references: Reference manager instance
            max_workers: Worker threads used by submit()

        Raises:
            ValueError: If max_workers is not positive.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.classifier = classifier
        self.references = references
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

        logger.info(f"Initialized ImagePipeline with max_workers={max_workers}")

    @classmethod
    def from_config(cls, config: Config | None = None) -> ImagePipeline:
        """Build a pipeline wired to the real model backends.

        Args:
            config: Configuration object. If None, loads from .env

        Returns:
            ImagePipeline using InsightFace, EasyOCR, OpenCLIP and a JSON
            reference store.
        """
        from facegate.backends.factory import create_backend
        from facegate.similarity import SimilarityScorer
        from facegate.storage import JsonReferenceStorage

        if config is None:
            from facegate.config import get_config

            config = get_config()

        components = create_backend(config)

        classifier = ImageClassifier(
            text_recognizer=components.text_recognizer,
            labeler=components.labeler,
            text_density_threshold=config.text_density_threshold,
            label_confidence_threshold=config.label_confidence_threshold,
            max_image_size=config.max_image_size,
        )
        references = ReferenceManager(
            detector=components.detector,
            storage=JsonReferenceStorage(config.reference_store),
            scorer=SimilarityScorer(threshold=config.similarity_threshold),
            max_image_size=config.max_image_size,
        )

        return cls(classifier, references, max_workers=config.max_workers)

    # Pass-through operations

    def classify(self, image_path: str | Path) -> Classification:
        return self.classifier.classify(image_path)

    def enroll(self, workflow_id: str, image_path: str | Path) -> bool:
        return self.references.enroll(workflow_id, image_path)

    def verify(self, workflow_id: str, image_path: str | Path) -> bool:
        return self.references.verify(workflow_id, image_path)

    def has_reference(self, workflow_id: str) -> bool:
        return self.references.has_reference(workflow_id)

    def get_reference_path(self, workflow_id: str) -> Optional[str]:
        return self.references.get_reference_path(workflow_id)

    def remove_reference(self, workflow_id: str) -> None:
        self.references.remove_reference(workflow_id)

    def compare_images(
        self, reference_path: str | Path, candidate_path: str | Path
    ) -> VerificationResult:
        return self.references.compare_images(reference_path, candidate_path)

    # Routing

    def _ensure_reference(self, workflow: WorkflowConfig) -> Optional[str]:
        """Make sure the workflow has an enrolled reference.

        Returns:
            None when a reference is available, otherwise the reason why not.
        """
        if self.references.has_reference(workflow.workflow_id):
            return None

        configured = workflow.reference_image_path
        if not configured:
            return "no reference image configured"

        if not Path(configured).is_file():
            logger.error(
                f"Reference image file does not exist for workflow "
                f"'{workflow.workflow_id}': {configured}"
            )
            return "reference image file missing"

        if not self.references.enroll(workflow.workflow_id, configured):
            logger.error(f"Failed to set reference image for workflow '{workflow.workflow_id}'")
            return "reference enrollment failed"

        return None

    def _route_person(
        self, image_path: str, workflow: WorkflowConfig, classification: Classification
    ) -> PipelineResult:
        result = PipelineResult(
            workflow_id=workflow.workflow_id,
            image_path=image_path,
            classification=classification,
            action=PipelineAction.SKIP,
        )

        problem = self._ensure_reference(workflow)
        if problem is not None:
            result.reason = problem
            return result

        result.is_match = self.references.verify(workflow.workflow_id, image_path)

        if result.is_match:
            result.action = PipelineAction.FORWARD
            result.reason = "person matches reference"
        else:
            result.reason = "person does not match reference"

        return result

    def _route_document(
        self, image_path: str, workflow: WorkflowConfig, classification: Classification
    ) -> PipelineResult:
        text = self.classifier.extract_text(image_path)

        return PipelineResult(
            workflow_id=workflow.workflow_id,
            image_path=image_path,
            classification=classification,
            action=PipelineAction.ANALYZE,
            text=text,
            reason="document ready for analysis" if text else "document without readable text",
        )

    def _route(
        self, image_path: str, workflow: WorkflowConfig, classification: Classification
    ) -> PipelineResult:
        if (
            workflow.workflow_type is WorkflowType.IMAGE_FORWARD
            and classification is Classification.PERSON
        ):
            return self._route_person(image_path, workflow, classification)

        if (
            workflow.workflow_type is WorkflowType.DOCUMENT_ANALYSIS
            and classification is Classification.DOCUMENT
        ):
            return self._route_document(image_path, workflow, classification)

        return PipelineResult(
            workflow_id=workflow.workflow_id,
            image_path=image_path,
            classification=classification,
            action=PipelineAction.SKIP,
            reason=f"{classification.value} image not handled by {workflow.workflow_type.value}",
        )

    def process(self, image_path: str | Path, workflow: WorkflowConfig) -> PipelineResult:
        """Classify an image and decide what a workflow should do with it.

        Args:
            image_path: Path to the new image
            workflow: Workflow settings

        Returns:
            PipelineResult. Errors resolve to SKIP; this method never raises.
        """
        image_path = str(image_path)
        logger.debug(
            f"Processing {image_path} for workflow '{workflow.workflow_id}' "
            f"({workflow.workflow_type.value})"
        )

        classification = self.classifier.classify(image_path)
        return self._dispatch(image_path, workflow, classification)

    def _dispatch(
        self, image_path: str, workflow: WorkflowConfig, classification: Classification
    ) -> PipelineResult:
        try:
            result = self._route(image_path, workflow, classification)
        except Exception as e:
            logger.error(
                f"Error processing {image_path} for workflow '{workflow.workflow_id}': {e}",
                exc_info=True,
            )
            result = PipelineResult(
                workflow_id=workflow.workflow_id,
                image_path=image_path,
                classification=classification,
                action=PipelineAction.SKIP,
                reason=f"error: {e}",
            )

        logger.info(f"Pipeline decision: {result}")
        return result

    def process_all(
        self, image_path: str | Path, workflows: List[WorkflowConfig]
    ) -> List[PipelineResult]:
        """Process one image for several workflows, classifying it once."""
        image_path = str(image_path)

        if not workflows:
            logger.debug("No active workflows configured, skipping image processing")
            return []

        classification = self.classifier.classify(image_path)
        return [self._dispatch(image_path, wf, classification) for wf in workflows]

    # Worker pool

    def start(self) -> None:
        """Start the worker pool (idempotent)."""
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="facegate"
                )

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker pool."""
        with self._executor_lock:
            executor, self._executor = self._executor, None

        if executor is not None:
            executor.shutdown(wait=wait)

    def submit(self, image_path: str | Path, workflow: WorkflowConfig) -> Future:
        """Run :meth:`process` on the worker pool.

        Returns:
            Future resolving to a PipelineResult.
        """
        self.start()
        return self._executor.submit(self.process, image_path, workflow)

    def __enter__(self) -> ImagePipeline:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ImagePipeline(max_workers={self.max_workers}, "
            f"running={self._executor is not None}, references={self.references})"
        )
