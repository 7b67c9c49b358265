"""
preview.py - Host-facing entry point.

build_preview() always returns a document: a parse failure of any kind is
rendered as an error document instead of propagating to the host.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from dicom_preview.errors import PreviewError
from dicom_preview.pipeline import ParseResult, SourceLocator, parse
from dicom_preview.renderer import render_document, render_error
from dicom_preview.resources import Assets, load_assets
from dicom_preview.upstream import UpstreamParser

logger = logging.getLogger(__name__)

# Display size hints agreed with the host: (width, height)
TEXT_CONTENT_SIZE = (800, 600)
IMAGE_CONTENT_SIZE = (800, 800)

CONTENT_TYPE = "text/html"


@dataclass(frozen=True)
class PreviewReply:
    data: bytes
    content_size: tuple[int, int]
    content_type: str = CONTENT_TYPE
    error: Optional[PreviewError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def content_size_for(result: ParseResult) -> tuple[int, int]:
    return IMAGE_CONTENT_SIZE if result.has_preview else TEXT_CONTENT_SIZE


def build_preview(
    source: SourceLocator,
    parser: Optional[UpstreamParser] = None,
    assets: Optional[Assets] = None,
) -> PreviewReply:
    """
    Parse *source* and render it, or render an error document.

    Parameters
    ----------
    source : str or PathLike
        Local path or ``file://`` URL of the file to preview.
    parser : UpstreamParser, optional
        Upstream parser override (the pydicom parser by default).
    assets : Assets, optional
        Stylesheet/script to inline.  Loaded from resources when omitted.
    """
    assets = assets if assets is not None else load_assets()
    try:
        result = parse(source, parser=parser)
    except PreviewError as exc:
        logger.error("Cannot preview %s: %s", source, exc.display_message)
        document = render_error(exc, assets)
        return PreviewReply(document.encode("utf-8"), TEXT_CONTENT_SIZE, error=exc)

    document = render_document(result, assets)
    return PreviewReply(document.encode("utf-8"), content_size_for(result))
