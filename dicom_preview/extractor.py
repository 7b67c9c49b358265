"""
extractor.py - Built-in upstream parser backed by pydicom.

Reads a DICOM file and produces the JSON payload the orchestrator decodes:
the flattened attribute tree, base64 JPEG preview frames and the debug
summary.  Failures in the pixel pipeline are recorded in the summary and
never fail the call; only an unreadable or non-DICOM file turns into an
error reply.

The orchestrator does not depend on this module.  Any object with
``parse_file``/``release``/``reentrant`` can stand in for it.
"""

import base64
import io
import json
import logging
import os
from typing import Iterator, Optional

import numpy as np
import pydicom
from matplotlib import image as mpimg
from pydicom.dataelem import DataElement
from pydicom.dataset import Dataset
from pydicom.multival import MultiValue

from dicom_preview.config import CONFIG
from dicom_preview.debug_summary import DebugSummary, Dimensions, encode_debug_summary
from dicom_preview.upstream import UpstreamResult
from dicom_preview.windowing import frame_to_uint8

logger = logging.getLogger(__name__)

PIXEL_DATA_TAG = 0x7FE00010
BULK_VRS = {"OB", "OW", "OF", "OD", "OL", "OV", "UN"}

_PREAMBLE_LENGTH = 128
_MAGIC_LENGTH = 4

_LIKELY_CAUSES = (
    "This could be because:\n"
    "1. The file is not a valid DICOM file\n"
    "2. The file is corrupted\n"
    "3. The file uses an unsupported transfer syntax\n"
    "4. There are insufficient read permissions"
)


# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------

def format_tag(tag) -> str:
    return f"({tag.group:04X},{tag.element:04X})"


def element_text(elem: DataElement) -> str:
    """Render a non-sequence element value as display text."""
    if elem.tag == PIXEL_DATA_TAG:
        return "[PixelData]"
    if elem.VR in BULK_VRS:
        return "[Binary data]"
    try:
        value = elem.value
        if value is None:
            return ""
        if isinstance(value, (bytes, bytearray)):
            return "[Binary data]"
        if isinstance(value, (MultiValue, list, tuple)):
            return "\\".join(str(v) for v in value)
        return str(value)
    except Exception as exc:
        logger.debug("Cannot display %s: %s", format_tag(elem.tag), exc)
        return f"[Cannot display value of type {elem.VR}]"


def iter_elements(ds: Dataset) -> Iterator[DataElement]:
    """Yield the elements of *ds* in tag order, skipping unreadable ones."""
    for tag in ds.keys():
        try:
            yield ds[tag]
        except Exception as exc:
            logger.warning("Skipping unreadable element %s: %s", format_tag(tag), exc)


def element_to_attribute(elem: DataElement, depth: int) -> dict:
    """
    Convert one element to its wire shape.

    The elements of every item of a sequence are concatenated into one
    content list at ``depth + 1``.
    """
    if elem.VR == "SQ":
        content = [
            element_to_attribute(child, depth + 1)
            for item in (elem.value or [])
            for child in iter_elements(item)
        ]
        value = {"type": "Sequence", "content": content}
    else:
        value = {"type": "String", "content": element_text(elem)}

    return {
        "depth": depth,
        "tag": format_tag(elem.tag),
        "name": elem.keyword or "Unknown",
        "vr": str(elem.VR),
        "value": value,
    }


def dataset_attributes(ds: Dataset) -> list[dict]:
    return [element_to_attribute(elem, 0) for elem in iter_elements(ds)]


# ---------------------------------------------------------------------------
# Debug summary
# ---------------------------------------------------------------------------

def analyze_file_structure(path: str) -> tuple[DebugSummary, str]:
    """
    Inspect the raw file header without parsing it as DICOM.

    Returns the partially filled summary and a human-readable analysis
    used in error replies.

    Raises
    ------
    OSError
        If the file cannot be opened or read.
    """
    summary = DebugSummary(file_size=os.path.getsize(path), file_preamble="", dicom_magic="")
    lines = [f"File size: {summary.file_size} bytes"]

    with open(path, "rb") as f:
        header = f.read(_PREAMBLE_LENGTH + _MAGIC_LENGTH)

    if len(header) == _PREAMBLE_LENGTH + _MAGIC_LENGTH:
        summary.file_preamble = "[" + ", ".join(f"{b:02X}" for b in header[:_PREAMBLE_LENGTH]) + "]"
        summary.dicom_magic = header[_PREAMBLE_LENGTH:].decode("utf-8", errors="replace")
        lines.append("Header analysis:")
        lines.append(f"First 128 bytes (preamble): {summary.file_preamble}")
        lines.append(f"DICM marker at 128: {summary.dicom_magic}")
    else:
        lines.append(f"File is too short for a DICOM preamble ({len(header)} bytes)")

    return summary, "\n".join(lines)


def _int_or_none(ds: Dataset, keyword: str) -> Optional[int]:
    value = ds.get(keyword)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def update_debug_info(ds: Dataset, summary: DebugSummary) -> None:
    """Fill the structure and pixel fields of *summary* from a dataset."""
    elements = list(iter_elements(ds))
    summary.attribute_count = len(elements)
    summary.sequence_count = sum(1 for elem in elements if elem.VR == "SQ")

    file_meta = getattr(ds, "file_meta", None)
    summary.meta_info_present = bool(file_meta is not None and len(file_meta) > 0)
    if file_meta is not None and "TransferSyntaxUID" in file_meta:
        summary.transfer_syntax = str(file_meta.TransferSyntaxUID)

    if PIXEL_DATA_TAG in ds:
        summary.has_pixel_data = True
        summary.pixel_data_vr = str(ds[PIXEL_DATA_TAG].VR)

    rows, columns = _int_or_none(ds, "Rows"), _int_or_none(ds, "Columns")
    if rows is not None and columns is not None:
        summary.image_dimensions = Dimensions(rows=rows, columns=columns)

    summary.number_of_frames = _int_or_none(ds, "NumberOfFrames")
    summary.bits_allocated = _int_or_none(ds, "BitsAllocated")
    summary.samples_per_pixel = _int_or_none(ds, "SamplesPerPixel")
    summary.pixel_representation = _int_or_none(ds, "PixelRepresentation")
    photometric = ds.get("PhotometricInterpretation")
    summary.photometric_interpretation = str(photometric) if photometric else None


# ---------------------------------------------------------------------------
# Preview frames
# ---------------------------------------------------------------------------

def encode_jpeg(frame: np.ndarray, quality: int) -> bytes:
    """Encode a uint8 grayscale or RGB frame as JPEG."""
    buffer = io.BytesIO()
    if frame.ndim == 2:
        mpimg.imsave(buffer, frame, cmap="gray", vmin=0, vmax=255,
                     format="jpeg", pil_kwargs={"quality": quality})
    else:
        mpimg.imsave(buffer, frame, format="jpeg", pil_kwargs={"quality": quality})
    return buffer.getvalue()


def extract_preview_frames(
    ds: Dataset,
    summary: DebugSummary,
    jpeg_quality: int = 60,
    max_frames: Optional[int] = None,
) -> Optional[list[str]]:
    """
    Decode, window and JPEG-encode every frame of the pixel data.

    The first failing stage is recorded in the matching ``*_error`` slot
    of *summary* and no frames are returned.

    Returns
    -------
    list[str] or None
        Base64 JPEG per frame, or None when there is nothing to show.
    """
    if not summary.has_pixel_data:
        return None

    try:
        pixels = ds.pixel_array
    except Exception as exc:
        summary.pixel_decode_error = f"Pixel data decode error: {exc}"
        logger.warning("%s", summary.pixel_decode_error)
        return None

    frame_count = summary.number_of_frames or 1
    if max_frames is not None:
        frame_count = min(frame_count, max_frames)

    images: list[str] = []
    for index in range(frame_count):
        try:
            frame = pixels[index] if (summary.number_of_frames or 1) > 1 else pixels
            display = frame_to_uint8(frame, ds)
        except (ValueError, TypeError, IndexError) as exc:
            summary.pixel_convert_error = f"Image conversion error for frame {index}: {exc}"
            logger.warning("%s", summary.pixel_convert_error)
            return None

        try:
            jpeg = encode_jpeg(display, jpeg_quality)
        except (ValueError, OSError) as exc:
            summary.pixel_encode_error = f"JPEG encoding error for frame {index}: {exc}"
            logger.warning("%s", summary.pixel_encode_error)
            return None

        images.append(base64.b64encode(jpeg).decode("ascii"))
        logger.debug("Encoded frame %d (%d bytes)", index, len(jpeg))

    return images or None


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def build_payload(
    ds: Dataset,
    summary: DebugSummary,
    jpeg_quality: int = 60,
    max_frames: Optional[int] = None,
) -> dict:
    """Assemble the full upstream payload for a parsed dataset."""
    update_debug_info(ds, summary)
    attributes = dataset_attributes(ds)
    preview_images = extract_preview_frames(ds, summary, jpeg_quality, max_frames)
    return {
        "attributes": attributes,
        "preview_images": preview_images,
        "debug_info": encode_debug_summary(summary),
    }


class PydicomParser:
    """In-process upstream parser; stateless, so safe to call concurrently."""

    def __init__(
        self,
        jpeg_quality: Optional[int] = None,
        max_frames: Optional[int] = None,
        reentrant: Optional[bool] = None,
    ):
        preview_cfg = CONFIG["preview"]
        self.jpeg_quality = jpeg_quality if jpeg_quality is not None else preview_cfg["jpeg_quality"]
        self.max_frames = max_frames if max_frames is not None else preview_cfg["max_frames"]
        self.reentrant = reentrant if reentrant is not None else CONFIG["upstream"]["reentrant"]

    def parse_file(self, path: str) -> UpstreamResult:
        try:
            summary, analysis = analyze_file_structure(path)
        except OSError as exc:
            return UpstreamResult(error_message=f"Cannot open file: {path}. Error: {exc}")

        try:
            ds = pydicom.dcmread(path)
        except Exception as exc:
            summary.parse_error = f"Failed to parse DICOM file: {exc}"
            logger.error("pydicom could not read %s: %s", path, exc)
            return UpstreamResult(error_message=(
                f"Failed to parse DICOM file: {path}.\n"
                f"Error details: {exc!r}\n\n"
                f"File Analysis:\n{analysis}\n"
                f"{_LIKELY_CAUSES}"
            ))

        payload = build_payload(ds, summary, self.jpeg_quality, self.max_frames)
        try:
            return UpstreamResult(json_data=json.dumps(payload))
        except (TypeError, ValueError) as exc:
            return UpstreamResult(error_message=f"Failed to serialize to JSON: {exc}")

    def release(self, result: UpstreamResult) -> None:
        result.json_data = None
        result.error_message = None
