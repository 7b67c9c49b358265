"""
windowing.py - Map stored pixel values onto an 8-bit preview frame.

Grayscale frames go through the same steps a viewer applies:

    value = stored_value * RescaleSlope + RescaleIntercept
    display = window(value, WindowCenter, WindowWidth)

When the header carries no window, the frame is normalised over its own
min/max range.  MONOCHROME1 frames are inverted so that low values render
white.  Colour frames are only scaled down to 8 bits per sample; pydicom
already returns YBR data as RGB.

References
----------
- DICOM PS3.3 C.11.1 (Modality LUT) and C.11.2 (VOI LUT)
"""

import logging
from typing import Optional

import numpy as np
from pydicom.dataset import Dataset

logger = logging.getLogger(__name__)


def rescale(
    pixel_array: np.ndarray,
    slope: float = 1.0,
    intercept: float = 0.0,
) -> np.ndarray:
    """Apply the modality rescale to stored pixel values."""
    return pixel_array.astype(np.float64) * slope + intercept


def apply_window(
    values: np.ndarray,
    center: float,
    width: float,
) -> np.ndarray:
    """
    Apply window/level and return values normalised to [0, 1].

    Pixels below (center - width/2) map to 0, pixels above
    (center + width/2) map to 1, everything in between is linearly scaled.

    Raises
    ------
    ValueError
        If *width* is not positive.
    """
    if width <= 0:
        raise ValueError(
            f"Window width must be > 0, got width={width}."
        )
    lower = center - width / 2.0
    upper = center + width / 2.0
    windowed = np.clip(values, lower, upper)
    return (windowed - lower) / (upper - lower)


def _first(value) -> float:
    # WindowCenter/Width can be a MultiValue list; take the first element
    if hasattr(value, "__iter__") and not isinstance(value, str):
        return float(list(value)[0])
    return float(value)


def header_window(ds: Dataset) -> Optional[tuple[float, float]]:
    """Return (center, width) from the header, or None if absent or unusable."""
    center = ds.get("WindowCenter")
    width = ds.get("WindowWidth")
    if center is None or width is None:
        return None
    try:
        wc, ww = _first(center), _first(width)
    except (TypeError, ValueError, IndexError):
        logger.debug("Ignoring unreadable window: center=%r width=%r", center, width)
        return None
    if ww <= 0:
        return None
    return wc, ww


def range_window(values: np.ndarray) -> tuple[float, float]:
    """Return a (center, width) spanning the full value range of *values*."""
    low = float(np.min(values))
    high = float(np.max(values))
    width = high - low
    if width <= 0:
        width = 1.0
    return (low + high) / 2.0, width


def monochrome_to_uint8(frame: np.ndarray, ds: Dataset) -> np.ndarray:
    """Rescale, window and quantise one grayscale frame."""
    slope = float(ds.get("RescaleSlope", 1.0) or 1.0)
    intercept = float(ds.get("RescaleIntercept", 0.0) or 0.0)
    values = rescale(frame, slope=slope, intercept=intercept)

    window = header_window(ds) or range_window(values)
    logger.debug("Applying window: centre=%.1f, width=%.1f", window[0], window[1])
    normalised = apply_window(values, center=window[0], width=window[1])

    if str(ds.get("PhotometricInterpretation", "")).upper() == "MONOCHROME1":
        normalised = 1.0 - normalised
    return np.round(normalised * 255.0).astype(np.uint8)


def color_to_uint8(frame: np.ndarray, ds: Dataset) -> np.ndarray:
    """Quantise one colour frame to 8 bits per sample."""
    if frame.dtype == np.uint8:
        return frame
    bits = int(ds.get("BitsStored") or ds.get("BitsAllocated") or 8)
    scale = 255.0 / float((1 << bits) - 1)
    return np.clip(np.round(frame.astype(np.float64) * scale), 0, 255).astype(np.uint8)


def frame_to_uint8(frame: np.ndarray, ds: Dataset) -> np.ndarray:
    """
    Convert one frame of ``ds.pixel_array`` into a displayable uint8 array.

    Returns
    -------
    np.ndarray
        Shape (rows, columns) for grayscale, (rows, columns, 3) for colour.

    Raises
    ------
    ValueError
        If the frame does not have a displayable shape.
    """
    samples = int(ds.get("SamplesPerPixel") or 1)
    if samples == 1:
        if frame.ndim != 2:
            raise ValueError(f"Expected a 2-D grayscale frame, got shape {frame.shape}")
        return monochrome_to_uint8(frame, ds)
    if frame.ndim != 3 or frame.shape[-1] != 3:
        raise ValueError(f"Expected a (rows, columns, 3) colour frame, got shape {frame.shape}")
    return color_to_uint8(frame, ds)
