"""
errors.py - Typed failures raised while turning a file into a preview.

Every stage maps what went wrong into exactly one of these kinds before
returning.  None of them is fatal to the host: preview.build_preview turns
any of them into an error document.
"""

from enum import Enum
from typing import Optional


class PreviewError(Exception):
    """Base class for every failure the renderer knows how to display."""

    title = "Error"
    failure_reason = "The file could not be previewed"
    recovery_suggestion = "Please try again"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def display_message(self) -> str:
        return f"{self.title}: {self.message}"

    def __str__(self) -> str:
        return self.display_message


class FileError(PreviewError):
    """The source is missing, not a local file, or cannot be read."""

    title = "File Error"
    failure_reason = "The DICOM file could not be accessed or is invalid"
    recovery_suggestion = "Please check if the file exists and you have permission to access it"


class ParsingError(PreviewError):
    """The upstream parser failed, returned nothing, or found no attributes."""

    title = "DICOM Parsing Error"
    failure_reason = "The file could not be parsed as a valid DICOM file"
    recovery_suggestion = "Please ensure the file is a valid DICOM file and is not corrupted"


class DecodingIssue(Enum):
    CORRUPTED = "corrupted"
    MISSING_KEY = "missing-key"
    TYPE_MISMATCH = "type-mismatch"
    VALUE_MISSING = "value-missing"


class DecodingError(PreviewError):
    """
    The upstream payload does not have the expected shape.

    ``path`` locates the offending field inside the payload, e.g.
    ``attributes[3].value.content[0].vr``.
    """

    title = "JSON Decoding Error"
    failure_reason = "The parsed DICOM data could not be decoded"
    recovery_suggestion = "This is an internal error. Please report this issue"

    def __init__(self, issue: DecodingIssue, message: str, path: str = ""):
        super().__init__(message)
        self.issue = issue
        self.path = path

    @classmethod
    def corrupted(cls, detail: str, path: str = "") -> "DecodingError":
        return cls(DecodingIssue.CORRUPTED, f"Invalid JSON data: {detail}", path)

    @classmethod
    def missing_key(cls, key: str, path: str) -> "DecodingError":
        return cls(DecodingIssue.MISSING_KEY, f"Missing key '{key}' in {path or '<root>'}", path)

    @classmethod
    def type_mismatch(cls, expected: str, path: str) -> "DecodingError":
        return cls(DecodingIssue.TYPE_MISMATCH, f"Type mismatch: expected {expected} in {path or '<root>'}", path)

    @classmethod
    def value_missing(cls, expected: str, path: str) -> "DecodingError":
        return cls(DecodingIssue.VALUE_MISSING, f"Value of type {expected} not found in {path or '<root>'}", path)


class MalformedValueTag(PreviewError):
    """An attribute value carries a discriminator other than String/Sequence."""

    title = "Malformed Value Tag"
    failure_reason = "The parsed DICOM data could not be decoded"
    recovery_suggestion = "This is an internal error. Please report this issue"

    def __init__(self, tag: object, path: str):
        super().__init__(f"Unknown value type {tag!r} in {path}")
        self.tag = tag
        self.path = path


def describe(error: BaseException) -> tuple[str, Optional[str], Optional[str]]:
    """Return (message, failure reason, recovery suggestion) for display."""
    if isinstance(error, PreviewError):
        return error.display_message, error.failure_reason, error.recovery_suggestion
    return str(error), None, None
