"""
debug_summary.py - Flat diagnostic record about the source file and pixel data.

The pixel fields are only meaningful when ``has_pixel_data`` is true.  The
four ``*_error`` slots record which upstream stage failed; they are data to
display and never stop a preview from rendering.
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, Optional

from dicom_preview.errors import DecodingError
from dicom_preview.fields import expect_object, join_path, optional, require

logger = logging.getLogger(__name__)

# (field name, display label) in display order
ERROR_SLOTS: list[tuple[str, str]] = [
    ("parse_error", "Parse Error"),
    ("pixel_decode_error", "Pixel Decode Error"),
    ("pixel_convert_error", "Pixel Convert Error"),
    ("pixel_encode_error", "Pixel Encode Error"),
]


@dataclass
class Dimensions:
    rows: int
    columns: int


@dataclass
class DebugSummary:
    """Descriptive record carried alongside the attribute tree."""

    # File information
    file_size: int
    file_preamble: str
    dicom_magic: str
    transfer_syntax: Optional[str] = None

    # General DICOM structure
    attribute_count: int = 0
    sequence_count: int = 0
    meta_info_present: bool = False

    # Pixel data
    has_pixel_data: bool = False
    pixel_data_vr: Optional[str] = None
    image_dimensions: Optional[Dimensions] = None
    number_of_frames: Optional[int] = None
    bits_allocated: Optional[int] = None
    samples_per_pixel: Optional[int] = None
    photometric_interpretation: Optional[str] = None
    pixel_representation: Optional[int] = None

    # Upstream stage failures
    parse_error: Optional[str] = None
    pixel_decode_error: Optional[str] = None
    pixel_convert_error: Optional[str] = None
    pixel_encode_error: Optional[str] = None

    def errors(self) -> list[tuple[str, str]]:
        """Return (label, message) for every error slot that is set."""
        return [
            (label, getattr(self, name))
            for name, label in ERROR_SLOTS
            if getattr(self, name) is not None
        ]


def decode_dimensions(raw: Any, path: str) -> Dimensions:
    data = expect_object(raw, path)
    return Dimensions(
        rows=require(data, "rows", int, path),
        columns=require(data, "columns", int, path),
    )


def decode_debug_summary(raw: Any, path: str = "debug_info") -> DebugSummary:
    """
    Decode the ``debug_info`` object of an upstream payload.

    Raises
    ------
    DecodingError
        If a required field is missing or any field has the wrong type.
    """
    data = expect_object(raw, path)

    file_size = require(data, "file_size", int, path)
    if file_size < 0:
        raise DecodingError.type_mismatch("UInt64", join_path(path, "file_size"))

    dims_raw = data.get("image_dimensions")
    dimensions = (
        decode_dimensions(dims_raw, join_path(path, "image_dimensions"))
        if dims_raw is not None else None
    )

    summary = DebugSummary(
        file_size=file_size,
        file_preamble=require(data, "file_preamble", str, path),
        dicom_magic=require(data, "dicom_magic", str, path),
        transfer_syntax=optional(data, "transfer_syntax", str, path),
        attribute_count=require(data, "attribute_count", int, path),
        sequence_count=require(data, "sequence_count", int, path),
        meta_info_present=require(data, "meta_info_present", bool, path),
        has_pixel_data=require(data, "has_pixel_data", bool, path),
        pixel_data_vr=optional(data, "pixel_data_vr", str, path),
        image_dimensions=dimensions,
        number_of_frames=optional(data, "number_of_frames", int, path),
        bits_allocated=optional(data, "bits_allocated", int, path),
        samples_per_pixel=optional(data, "samples_per_pixel", int, path),
        photometric_interpretation=optional(data, "photometric_interpretation", str, path),
        pixel_representation=optional(data, "pixel_representation", int, path),
        parse_error=optional(data, "parse_error", str, path),
        pixel_decode_error=optional(data, "pixel_decode_error", str, path),
        pixel_convert_error=optional(data, "pixel_convert_error", str, path),
        pixel_encode_error=optional(data, "pixel_encode_error", str, path),
    )

    for label, message in summary.errors():
        logger.debug("Upstream reported %s: %s", label, message)
    return summary


def encode_debug_summary(summary: DebugSummary) -> dict[str, Any]:
    """Encode a summary into the ``debug_info`` wire shape."""
    payload: dict[str, Any] = {}
    for f in fields(summary):
        value = getattr(summary, f.name)
        if isinstance(value, Dimensions):
            value = {"rows": value.rows, "columns": value.columns}
        payload[f.name] = value
    return payload
