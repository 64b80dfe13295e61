"""Zero-shot image labeler using OpenCLIP.

Each candidate label is turned into an "a photo of ..." prompt. A label's
confidence is a two-way softmax between its own prompt and a shared set of
background prompts, so labels never compete with each other and synonyms
("person", "selfie", "portrait") can all score high on the same image.
"""

from __future__ import annotations

from typing import List, Sequence

import cv2
import numpy as np
import open_clip
import torch
from PIL import Image

from facegate.config import Config
from facegate.interfaces import ImageLabel
from facegate.logging_config import get_logger

logger = get_logger(__name__)

# Person and document concepts
DEFAULT_CANDIDATE_LABELS = (
    "person",
    "human face",
    "selfie",
    "portrait",
    "people",
    "hand",
    "hair",
    "document",
    "paper",
    "receipt",
    "text",
    "book",
    "invoice",
    "business card",
    "newspaper",
)

# Scene concepts every candidate label is weighed against
DEFAULT_BACKGROUND_LABELS = (
    "landscape",
    "sky",
    "building",
    "animal",
    "food",
    "vehicle",
    "plant",
    "furniture",
    "screen",
)


class ClipImageLabeler:
    """Labels images by zero-shot CLIP classification.

    Attributes:
        model_name: OpenCLIP architecture
        pretrained: Pretrained weights tag
        candidate_labels: Labels that can be reported
        background_labels: Labels each candidate is weighed against
        top_k: Number of labels returned per image
        device: Torch device

    Example:
        >>> labeler = ClipImageLabeler(get_config())
        >>> for label in labeler.label(image):
        ...     print(label.text, label.confidence)
    """

    def __init__(
        self,
        config: Config,
        candidate_labels: Sequence[str] = DEFAULT_CANDIDATE_LABELS,
        background_labels: Sequence[str] = DEFAULT_BACKGROUND_LABELS,
        top_k: int = 5,
    ):
        """Initialize labeler and precompute the label text embeddings.

        Args:
            config: Configuration object with clip_model and clip_pretrained
            candidate_labels: Labels to report
            background_labels: Non-empty set of scene labels to weigh against
            top_k: Labels returned per image

        Raises:
            RuntimeError: If the model fails to load.
        """
        if not candidate_labels:
            raise ValueError("candidate_labels must not be empty")
        if not background_labels:
            raise ValueError("background_labels must not be empty")

        self.model_name = config.clip_model
        self.pretrained = config.clip_pretrained
        self.candidate_labels: List[str] = list(candidate_labels)
        self.background_labels: List[str] = list(background_labels)
        self.top_k = max(1, min(top_k, len(self.candidate_labels)))
        self.device = "cuda" if config.ctx_id >= 0 and torch.cuda.is_available() else "cpu"

        logger.info(
            f"Initializing CLIP labeler (model={self.model_name}, "
            f"pretrained={self.pretrained}, device={self.device}, "
            f"labels={len(self.candidate_labels)}, background={len(self.background_labels)})"
        )

        try:
            self.model, _, self.preprocess = open_clip.create_model_and_transforms(
                self.model_name, pretrained=self.pretrained
            )
            self.model = self.model.to(self.device)
            self.model.eval()
            tokenizer = open_clip.get_tokenizer(self.model_name)

            with torch.no_grad():
                self.text_features = self._encode_prompts(tokenizer, self.candidate_labels)
                self.background_features = self._encode_prompts(
                    tokenizer, self.background_labels
                )

        except Exception as e:
            logger.error(f"Failed to initialize CLIP labeler: {e}", exc_info=True)
            raise RuntimeError(f"Could not load CLIP model: {e}") from e

        logger.info("CLIP labeler initialized successfully")

    def _encode_prompts(self, tokenizer, labels: Sequence[str]) -> torch.Tensor:
        prompts = [f"a photo of {label}" for label in labels]
        features = self.model.encode_text(tokenizer(prompts).to(self.device))
        return features / features.norm(dim=-1, keepdim=True)

    def label(self, image_bgr: np.ndarray) -> List[ImageLabel]:
        """Return the ``top_k`` most likely labels of an image.

        Each confidence is independent of the other candidates, so the
        values do not sum to 1.

        Args:
            image_bgr: Input image in BGR format, shape [H, W, 3]

        Returns:
            Labels sorted by confidence (descending).
        """
        if image_bgr is None or image_bgr.size == 0:
            return []

        pil_image = Image.fromarray(cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB))
        image_input = self.preprocess(pil_image).unsqueeze(0).to(self.device)

        with torch.no_grad():
            image_features = self.model.encode_image(image_input)
            image_features = image_features / image_features.norm(dim=-1, keepdim=True)
            label_logits = 100.0 * image_features @ self.text_features.T
            background_logits = 100.0 * image_features @ self.background_features.T
            # sigmoid(l - logsumexp(b)) == exp(l) / (exp(l) + sum(exp(b)))
            probs = torch.sigmoid(
                label_logits - torch.logsumexp(background_logits, dim=-1, keepdim=True)
            )[0].cpu().numpy()

        order = np.argsort(probs)[::-1][: self.top_k]
        labels = [
            ImageLabel(text=self.candidate_labels[i], confidence=float(probs[i])) for i in order
        ]

        logger.debug(
            "CLIP labels: " + ", ".join(f"{l.text}={l.confidence:.2f}" for l in labels)
        )
        return labels

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ClipImageLabeler(model={self.model_name}, pretrained={self.pretrained}, "
            f"labels={len(self.candidate_labels)}, top_k={self.top_k})"
        )
