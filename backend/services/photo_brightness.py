"""
Brightness heuristic feeding the trip mood tag.

Mean luma of a downscaled grayscale copy; no attempt at exposure analysis.
"""
from __future__ import annotations

from typing import Iterable, Optional
import logging

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

MAX_DIM = 256


def measure_brightness(image: Image.Image) -> Optional[float]:
    """Return mean luma (0..255) or None if the pixels cannot be decoded."""
    try:
        gray = image.convert("L")
        gray.thumbnail((MAX_DIM, MAX_DIM))
        arr = np.asarray(gray, dtype=float)
        if arr.size == 0:
            return None
        return float(arr.mean())
    except Exception as exc:
        logger.debug("Brightness measurement failed: %s", exc)
        return None


def is_likely_bright(values: Iterable[Optional[float]], threshold: float) -> Optional[bool]:
    """
    Decide whether a set of photos reads as bright.

    Returns None when no photo had a measurable brightness, so callers can
    tell "dim" apart from "unknown".
    """
    measured = [v for v in values if v is not None]
    if not measured:
        return None
    return float(np.mean(measured)) > threshold
