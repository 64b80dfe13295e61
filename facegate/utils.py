"""Image-buffer helpers shared by the classifier and the face pipeline.

This module provides decoding with EXIF orientation correction and bounded
memory use, rotation, safe cropping, and fixed-size resampling.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import cv2
import numpy as np
from PIL import Image

from facegate.config import DEFAULT_MAX_IMAGE_SIZE
from facegate.interfaces import BBox
from facegate.logging_config import get_logger

logger = get_logger(__name__)

EXIF_ORIENTATION_TAG = 0x0112

# EXIF orientation value -> clockwise rotation in degrees
ORIENTATION_ROTATIONS = {3: 180, 6: 90, 8: 270}

_CV2_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}

# Largest reduction OpenCV can apply while decoding
MAX_DECODE_REDUCTION = 8

_DECODE_FLAGS = {
    1: cv2.IMREAD_COLOR,
    2: cv2.IMREAD_REDUCED_COLOR_2,
    4: cv2.IMREAD_REDUCED_COLOR_4,
    8: cv2.IMREAD_REDUCED_COLOR_8,
}


def calculate_sample_size(
    width: int,
    height: int,
    req_width: int = DEFAULT_MAX_IMAGE_SIZE,
    req_height: int = DEFAULT_MAX_IMAGE_SIZE,
) -> int:
    """Compute a power-of-two downsampling factor for a large image.

    The factor keeps doubling while both halved dimensions, divided by the
    factor, still reach the requested size. Small images get a factor of 1.

    Args:
        width: Source width in pixels
        height: Source height in pixels
        req_width: Requested width bound
        req_height: Requested height bound

    Returns:
        Sample size (1, 2, 4, ...).

    Example:
        >>> calculate_sample_size(4032, 3024)
        2
        >>> calculate_sample_size(800, 600)
        1
    """
    sample_size = 1

    if height > req_height or width > req_width:
        half_height = height // 2
        half_width = width // 2

        while (half_height // sample_size) >= req_height and (
            half_width // sample_size
        ) >= req_width:
            sample_size *= 2

    return sample_size


@dataclass(frozen=True)
class ImageHeader:
    """Image dimensions and EXIF orientation, read without decoding pixels."""

    width: int
    height: int
    orientation: int = 1


def read_image_header(image_path: str | Path) -> Optional[ImageHeader]:
    """Read the size and EXIF orientation of an image file.

    Pillow parses only the file header here. Files above Pillow's
    decompression-bomb limit are reported as a square of that limit, which
    is enough to choose a decode reduction.

    Returns:
        ImageHeader, or None if Pillow cannot identify the file.
    """
    try:
        with Image.open(image_path) as img:
            width, height = img.size
            orientation = int(img.getexif().get(EXIF_ORIENTATION_TAG, 1))
    except Image.DecompressionBombError as e:
        side = math.isqrt(2 * Image.MAX_IMAGE_PIXELS)
        logger.warning(f"Very large image {image_path}, decoding at reduced size: {e}")
        return ImageHeader(width=side, height=side)
    except (OSError, ValueError) as e:
        logger.debug(f"Could not read image header of {image_path}: {e}")
        return None

    return ImageHeader(width=width, height=height, orientation=orientation)


def read_exif_orientation(image_path: str | Path) -> int:
    """Return the EXIF orientation value of an image file (1 if absent)."""
    header = read_image_header(image_path)
    return header.orientation if header is not None else 1


def load_image(
    image_path: str | Path,
    max_size: int = DEFAULT_MAX_IMAGE_SIZE,
) -> Optional[np.ndarray]:
    """Decode an image file into an upright BGR buffer.

    The sample size is chosen from the file header with
    :func:`calculate_sample_size`, and OpenCV decodes directly at up to 1/8
    scale, so a large photo is never held in memory at full resolution.
    Any reduction left after that is applied with a resize. The EXIF
    orientation tag is applied with :func:`rotate`.

    Args:
        image_path: Path to an image file
        max_size: Size bound used to pick the downsampling factor

    Returns:
        BGR image [H, W, 3] uint8, or None if the file is missing or
        cannot be decoded.
    """
    path = Path(image_path)
    if not path.is_file():
        logger.warning(f"Image file does not exist: {path}")
        return None

    header = read_image_header(path)
    reduction = 1
    if header is not None:
        reduction = min(
            calculate_sample_size(header.width, header.height, max_size, max_size),
            MAX_DECODE_REDUCTION,
        )

    try:
        image = cv2.imread(str(path), _DECODE_FLAGS[reduction] | cv2.IMREAD_IGNORE_ORIENTATION)
    except cv2.error as e:
        logger.warning(f"Failed to decode image {path}: {e}")
        return None

    if image is None or image.size == 0:
        logger.warning(f"Could not decode image: {path}")
        return None

    degrees = ORIENTATION_ROTATIONS.get(header.orientation if header else 1, 0)
    if degrees:
        image = rotate(image, degrees)

    h, w = image.shape[:2]
    sample_size = calculate_sample_size(w, h, max_size, max_size)

    if sample_size > 1:
        new_w = max(1, w // sample_size)
        new_h = max(1, h // sample_size)
        image = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)

    if reduction > 1 or sample_size > 1:
        logger.debug(
            f"Loaded {path.name} at {image.shape[1]}x{image.shape[0]} "
            f"(decode reduction={reduction}, resize sample_size={sample_size})"
        )

    return image


def rotate(image: np.ndarray, degrees: int) -> np.ndarray:
    """Rotate an image clockwise by a multiple of 90 degrees.

    Raises:
        ValueError: If degrees is not a multiple of 90.
    """
    degrees %= 360
    if degrees == 0:
        return image
    if degrees not in _CV2_ROTATIONS:
        raise ValueError(f"Rotation must be a multiple of 90 degrees, got {degrees}")
    return cv2.rotate(image, _CV2_ROTATIONS[degrees])


def crop_region(image: np.ndarray, bbox: BBox) -> Optional[np.ndarray]:
    """Crop a bounding box from an image after clamping it to the bounds.

    Args:
        image: Input image [H, W, 3]
        bbox: Region to crop, may extend beyond the image

    Returns:
        The cropped region, or None if nothing is left after clamping.
    """
    h, w = image.shape[:2]
    clamped = bbox.clamp(w, h)

    if clamped.is_degenerate:
        return None

    return image[clamped.y1:clamped.y2, clamped.x1:clamped.x2]


def resample(image: np.ndarray, size: int) -> np.ndarray:
    """Resample an image to ``size`` x ``size`` with nearest-neighbor.

    Args:
        image: Input image [H, W, C]
        size: Output side length in pixels

    Returns:
        Resampled image [size, size, C].
    """
    return cv2.resize(image, (size, size), interpolation=cv2.INTER_NEAREST)
