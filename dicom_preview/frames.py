"""
frames.py - Assemble decoded preview images into a displayable unit.

Zero frames give an empty unit (the renderer shows a placeholder), one
frame gives a static image, two or more give a multi-frame unit with a
zero-based current index.  Navigation is clamped to [0, frame_count - 1]
and never wraps around.
"""

import base64
import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

# Magic-number prefixes of the image formats a preview may carry
_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\xff\xd8\xff", "image/jpeg"),
]
DEFAULT_MIME = "image/jpeg"


@dataclass(frozen=True)
class PreviewUnit:
    """Renderable preview: an ordered tuple of frames plus the current index."""
    frames: tuple[bytes, ...] = ()
    index: int = 0

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def is_empty(self) -> bool:
        return not self.frames

    @property
    def is_multi_frame(self) -> bool:
        return len(self.frames) > 1

    @property
    def primary(self) -> Optional[bytes]:
        return self.frames[0] if self.frames else None

    @property
    def current(self) -> Optional[bytes]:
        return self.frames[self.index] if self.frames else None

    def seek(self, index: int) -> "PreviewUnit":
        """Return a unit positioned at *index*, clamped to the valid range."""
        if not self.frames:
            return self
        clamped = max(0, min(index, len(self.frames) - 1))
        return replace(self, index=clamped)

    def step(self, delta: int) -> "PreviewUnit":
        return self.seek(self.index + delta)


def assemble_frames(blobs: Iterable[bytes]) -> PreviewUnit:
    """Build a PreviewUnit from decoded image blobs, preserving order."""
    frames = tuple(bytes(blob) for blob in blobs)
    logger.debug("Assembled preview unit with %d frame(s)", len(frames))
    return PreviewUnit(frames=frames)


def sniff_mime(blob: bytes) -> str:
    """Guess the image MIME type from magic bytes; JPEG when unknown."""
    for signature, mime in _SIGNATURES:
        if blob.startswith(signature):
            return mime
    return DEFAULT_MIME


def data_uri(blob: bytes) -> str:
    """Return a ``data:`` URI carrying *blob* as base64 text."""
    encoded = base64.b64encode(blob).decode("ascii")
    return f"data:{sniff_mime(blob)};base64,{encoded}"
