"""Configuration management for the person-recognition subsystem.

This module loads configuration from environment variables (.env file) and
provides a centralized Config class for accessing application settings.
The matching and classification thresholds are calibration knobs, not
derived values, so all of them are exposed here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_SIMILARITY_THRESHOLD = 0.5
DEFAULT_TEXT_DENSITY_THRESHOLD = 0.15
DEFAULT_LABEL_CONFIDENCE_THRESHOLD = 0.5
DEFAULT_MAX_IMAGE_SIZE = 1024


def _unit_interval(name: str, default: str) -> float:
    value = float(os.getenv(name, default))
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")
    return value


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    Attributes:
        ctx_id: Device context ID (-1 for CPU, 0+ for GPU)
        model_pack: InsightFace model pack name
        det_size: Square detector input size in pixels
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        similarity_threshold: Face similarity above which a face matches
        text_density_threshold: Text density separating documents from photos
        label_confidence_threshold: Minimum label confidence to count a label
        max_image_size: Decoded images are downsampled towards this bound
        ocr_langs: EasyOCR language codes
        ocr_gpu: Whether EasyOCR runs on GPU
        clip_model: OpenCLIP architecture used for image labels
        clip_pretrained: OpenCLIP pretrained weights tag
        max_workers: Worker threads used by the image pipeline
        data_dir: Project data directory
        reference_store: JSON file mapping workflow ids to reference paths
        log_file: Optional file that receives a plain copy of the logs
    """

    ctx_id: int
    model_pack: str
    det_size: int
    log_level: str
    similarity_threshold: float
    text_density_threshold: float
    label_confidence_threshold: float
    max_image_size: int
    ocr_langs: List[str]
    ocr_gpu: bool
    clip_model: str
    clip_pretrained: str
    max_workers: int

    # Paths
    data_dir: Path
    reference_store: Path
    log_file: Optional[Path] = None

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Returns:
            Config instance with values from environment or defaults.

        Raises:
            ValueError: If environment variables are invalid.
        """
        # Get project root (parent of facegate/)
        project_root = Path(__file__).parent.parent

        # Device configuration
        ctx_id = int(os.getenv("CTX_ID", "-1"))

        # Model configuration
        model_pack = os.getenv("MODEL_PACK", "buffalo_l")
        valid_packs = ["buffalo_l", "buffalo_m", "buffalo_s", "buffalo_sc"]
        if model_pack not in valid_packs:
            raise ValueError(f"MODEL_PACK must be one of {valid_packs}, got {model_pack}")

        det_size = int(os.getenv("DET_SIZE", "640"))
        if det_size < 32:
            raise ValueError(f"DET_SIZE must be >= 32, got {det_size}")

        # Logging configuration
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}, got {log_level}")
        log_file = Path(os.environ["LOG_FILE"]) if os.getenv("LOG_FILE") else None

        # Calibration thresholds
        similarity_threshold = _unit_interval(
            "SIMILARITY_THRESHOLD", str(DEFAULT_SIMILARITY_THRESHOLD)
        )
        text_density_threshold = _unit_interval(
            "TEXT_DENSITY_THRESHOLD", str(DEFAULT_TEXT_DENSITY_THRESHOLD)
        )
        label_confidence_threshold = _unit_interval(
            "LABEL_CONFIDENCE_THRESHOLD", str(DEFAULT_LABEL_CONFIDENCE_THRESHOLD)
        )

        # Image decoding
        max_image_size = int(os.getenv("MAX_IMAGE_SIZE", str(DEFAULT_MAX_IMAGE_SIZE)))
        if max_image_size < 32:
            raise ValueError(f"MAX_IMAGE_SIZE must be >= 32, got {max_image_size}")

        # Text recognition
        ocr_langs = [
            lang.strip() for lang in os.getenv("OCR_LANGS", "en").split(",") if lang.strip()
        ]
        if not ocr_langs:
            raise ValueError("OCR_LANGS must name at least one language")
        ocr_gpu = bool(int(os.getenv("OCR_GPU", "0")))

        # Image labeling
        clip_model = os.getenv("CLIP_MODEL", "ViT-B-32")
        clip_pretrained = os.getenv("CLIP_PRETRAINED", "openai")

        # Pipeline
        max_workers = int(os.getenv("MAX_WORKERS", "4"))
        if max_workers < 1:
            raise ValueError(f"MAX_WORKERS must be >= 1, got {max_workers}")

        # Paths
        data_dir = project_root / "data"
        reference_store = Path(
            os.getenv("REFERENCE_STORE", str(data_dir / "references.json"))
        )

        # Ensure directories exist
        reference_store.parent.mkdir(parents=True, exist_ok=True)
        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)

        return cls(
            ctx_id=ctx_id,
            model_pack=model_pack,
            det_size=det_size,
            log_level=log_level,
            similarity_threshold=similarity_threshold,
            text_density_threshold=text_density_threshold,
            label_confidence_threshold=label_confidence_threshold,
            max_image_size=max_image_size,
            ocr_langs=ocr_langs,
            ocr_gpu=ocr_gpu,
            clip_model=clip_model,
            clip_pretrained=clip_pretrained,
            max_workers=max_workers,
            data_dir=data_dir,
            reference_store=reference_store,
            log_file=log_file,
        )

    def __repr__(self) -> str:
        """Return string representation of config."""
        return (
            f"Config(\n"
            f"  Device: {'GPU' if self.ctx_id >= 0 else 'CPU'}:{self.ctx_id},\n"
            f"  Model: {self.model_pack} @ {self.det_size},\n"
            f"  Log Level: {self.log_level},\n"
            f"  Log File: {self.log_file or '-'},\n"
            f"  Similarity Threshold: {self.similarity_threshold},\n"
            f"  Text Density Threshold: {self.text_density_threshold},\n"
            f"  Label Confidence: {self.label_confidence_threshold},\n"
            f"  OCR: {','.join(self.ocr_langs)} (gpu={self.ocr_gpu}),\n"
            f"  CLIP: {self.clip_model}/{self.clip_pretrained},\n"
            f"  Reference Store: {self.reference_store}\n"
            f")"
        )


# Global config instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get global config instance (singleton pattern).

    Returns:
        Config instance loaded from environment.
    """
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config
