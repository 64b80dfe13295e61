"""Color-distribution descriptor for face regions."""

from __future__ import annotations

import numpy as np

from facegate.utils import resample

HISTOGRAM_BINS = 64
FACE_RESAMPLE_SIZE = 32
LEVELS_PER_CHANNEL = 4


def extract_color_histogram(region_bgr: np.ndarray) -> np.ndarray:
    """Compute a normalized 64-bin RGB histogram of an image region.

    The region is resampled to 32x32 (nearest-neighbor) and each of the
    R, G and B channels is quantized into 4 levels, giving
    ``r * 16 + g * 4 + b`` as the bin index.

    Args:
        region_bgr: Region in BGR format [H, W, 3], H and W > 0

    Returns:
        float64 vector of 64 bins summing to 1.0.

    Raises:
        ValueError: If the region is empty or not a 3-channel image.
    """
    if region_bgr is None or region_bgr.size == 0:
        raise ValueError("Cannot compute histogram of an empty region")

    if region_bgr.ndim != 3 or region_bgr.shape[2] != 3:
        raise ValueError(f"Expected [H, W, 3] region, got shape {region_bgr.shape}")

    pixels = resample(region_bgr, FACE_RESAMPLE_SIZE).reshape(-1, 3).astype(np.int32)

    levels = np.clip(pixels // 64, 0, LEVELS_PER_CHANNEL - 1)
    b, g, r = levels[:, 0], levels[:, 1], levels[:, 2]
    bins = r * 16 + g * 4 + b

    histogram = np.bincount(bins, minlength=HISTOGRAM_BINS).astype(np.float64)
    return histogram / histogram.sum()
