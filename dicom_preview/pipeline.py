"""
pipeline.py - Parse orchestrator.

Validates the source, calls the upstream parser through the scoped call
helper, decodes its JSON payload and applies the validity rules.  Every
failure leaves this module as exactly one PreviewError subclass; nothing
here retries.

Two policies worth knowing about:

- An empty attribute list is a ParsingError even when the payload decoded
  cleanly.  A DICOM file with no attributes is treated as unusable.
- A preview image string that is not valid base64 is dropped from the
  frame list with a warning.  It never fails the parse.
"""

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import urlparse
from urllib.request import url2pathname

from dicom_preview import jsontext
from dicom_preview.attributes import Attribute, decode_attributes
from dicom_preview.debug_summary import DebugSummary, decode_debug_summary
from dicom_preview.errors import DecodingError, FileError, ParsingError, PreviewError
from dicom_preview.fields import expect_list, expect_object, index_path, require
from dicom_preview.upstream import UpstreamParser, upstream_call

logger = logging.getLogger(__name__)

SourceLocator = Union[str, os.PathLike]


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class ParseResult:
    """Everything the renderer needs for one file."""
    attributes: list[Attribute]
    debug: DebugSummary
    preview_frames: list[bytes] = field(default_factory=list)

    @property
    def has_preview(self) -> bool:
        return bool(self.preview_frames)


# ---------------------------------------------------------------------------
# Source validation
# ---------------------------------------------------------------------------

def resolve_source(source: SourceLocator) -> str:
    """
    Turn a path, PathLike or ``file://`` URL into a local filesystem path.

    Raises
    ------
    FileError
        If *source* is a URL with any scheme other than ``file``.
    """
    if isinstance(source, os.PathLike):
        return os.fspath(source)

    # Colons are legal in file names; only "scheme://" or "file:" marks a URL
    looks_like_url = "://" in source or source.startswith("file:")
    if not looks_like_url or os.path.exists(source):
        return source

    parsed = urlparse(source)
    if parsed.scheme != "file":
        raise FileError("URL is not a file URL")
    if parsed.netloc not in ("", "localhost"):
        raise FileError(f"URL does not refer to a local file: {source}")
    return url2pathname(parsed.path)


def validate_source(path: str) -> None:
    """Check that *path* is an existing, readable regular file."""
    if not os.path.exists(path):
        raise FileError(f"File does not exist at path: {path}")
    if not os.path.isfile(path):
        raise FileError(f"Not a regular file: {path}")
    if not os.access(path, os.R_OK):
        raise FileError(f"File is not readable at path: {path}")


# ---------------------------------------------------------------------------
# Payload decoding
# ---------------------------------------------------------------------------

def decode_preview_images(raw: Any, path: str = "preview_images") -> list[bytes]:
    """
    Decode base64 preview strings, silently dropping the ones that fail.

    A null or absent list means no previews.  Entries that are not strings
    are a structural error; strings that are not valid base64 are not.
    """
    if raw is None:
        return []

    frames: list[bytes] = []
    for index, item in enumerate(expect_list(raw, path)):
        if not isinstance(item, str):
            raise DecodingError.type_mismatch("String", index_path(path, index))
        try:
            blob = base64.b64decode(item, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Dropping preview image %d: not valid base64", index)
            continue
        if not blob:
            logger.warning("Dropping preview image %d: empty", index)
            continue
        frames.append(blob)
    return frames


def decode_payload(json_text: str) -> ParseResult:
    """
    Decode the upstream JSON text into a ParseResult.

    Raises
    ------
    DecodingError
        On malformed JSON or any structural mismatch.
    MalformedValueTag
        On an unknown attribute value discriminator.
    ParsingError
        If the payload holds no attributes.
    """
    try:
        raw = jsontext.loads(json_text)
    except json.JSONDecodeError as exc:
        raise DecodingError.corrupted(str(exc)) from exc

    data = expect_object(raw, "")
    attributes = decode_attributes(require(data, "attributes", list), "attributes")
    debug = decode_debug_summary(require(data, "debug_info", dict), "debug_info")
    frames = decode_preview_images(data.get("preview_images"))

    if not attributes:
        raise ParsingError("No DICOM attributes found in the file")

    return ParseResult(attributes=attributes, debug=debug, preview_frames=frames)


# ---------------------------------------------------------------------------
# Core orchestrator
# ---------------------------------------------------------------------------

def _default_parser() -> UpstreamParser:
    from dicom_preview.extractor import PydicomParser  # pulls in pydicom, numpy and matplotlib
    return PydicomParser()


def _call_upstream(parser: UpstreamParser, path: str) -> tuple[Optional[str], Optional[str]]:
    """Run one scoped parser call and copy its reply out before release."""
    try:
        with upstream_call(parser, path) as result:
            json_data = result.json_data
            error_message = result.error_message
    except PreviewError:
        raise
    except Exception as exc:
        raise ParsingError(f"Upstream parser failed: {exc}") from exc

    if isinstance(json_data, bytes):
        try:
            json_data = json_data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParsingError("Could not convert JSON string to data") from exc
    return json_data, error_message


def parse(source: SourceLocator, parser: Optional[UpstreamParser] = None) -> ParseResult:
    """
    Parse *source* into a ParseResult.

    Parameters
    ----------
    source : str or PathLike
        Local path or ``file://`` URL of the DICOM file.
    parser : UpstreamParser, optional
        Upstream parser to call.  Defaults to the built-in pydicom parser.

    Returns
    -------
    ParseResult

    Raises
    ------
    FileError, ParsingError, DecodingError, MalformedValueTag
    """
    path = resolve_source(source)
    validate_source(path)

    parser = parser if parser is not None else _default_parser()
    json_data, error_message = _call_upstream(parser, path)

    if error_message is not None:
        raise ParsingError(error_message)
    if json_data is None:
        raise ParsingError("No data returned from parser")

    result = decode_payload(json_data)
    logger.info(
        "Parsed %s: %d attributes, %d preview frame(s)",
        Path(path).name, len(result.attributes), len(result.preview_frames),
    )
    return result
