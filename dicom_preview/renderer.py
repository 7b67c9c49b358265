"""
renderer.py - Turn a ParseResult into one self-contained HTML document.

The renderer is purely data-to-markup.  Interactive behaviour (expand and
collapse, frame slider) lives in resources/scripts.js and only consumes the
``data-*`` hooks emitted here:

    data-collapsible="sequence"   container of one sequence value
    data-panel="preview|debug"    container of a top-level panel
    data-state                    "collapsed" or "expanded"
    data-toggle / data-symbol     the toggle button and its arrow
    data-content                  the element shown or hidden
    data-action                   "expand-all" / "collapse-all"
    data-frames                   id of the JSON frame list for the slider

All user-controlled text goes through escape(); image bytes only ever
appear as base64 inside a ``data:`` URI.
"""

import html
import json
import logging
from typing import Any, Optional

from dicom_preview.attributes import Attribute, Leaf
from dicom_preview.debug_summary import DebugSummary, Dimensions
from dicom_preview.errors import describe
from dicom_preview.frames import PreviewUnit, assemble_frames, data_uri
from dicom_preview.pipeline import ParseResult
from dicom_preview.resources import Assets, load_assets

logger = logging.getLogger(__name__)

INDENT_UNIT = "&nbsp;&nbsp;&nbsp;&nbsp;"
SYMBOL_COLLAPSED = "▶"
SYMBOL_EXPANDED = "▼"

DOCUMENT_TITLE = "DICOM File Preview"
ERROR_TITLE = "DICOM Parse Error"
NO_PREVIEW_TEXT = "No preview available"

# Fallbacks for optional debug fields, applied only at render time
DEBUG_DEFAULTS: dict[str, Any] = {
    "transfer_syntax": "N/A",
    "pixel_data_vr": "N/A",
    "image_dimensions": "N/A",
    "number_of_frames": 1,
    "bits_allocated": 0,
    "samples_per_pixel": 0,
    "photometric_interpretation": "N/A",
    "pixel_representation": 0,
}

# (section title, [(row label, DebugSummary field)])
DEBUG_SECTIONS: list[tuple[str, list[tuple[str, str]]]] = [
    ("File Information", [
        ("File Size", "file_size"),
        ("DICOM Magic", "dicom_magic"),
        ("Transfer Syntax", "transfer_syntax"),
    ]),
    ("DICOM Structure", [
        ("Total Attributes", "attribute_count"),
        ("Sequence Count", "sequence_count"),
        ("Meta Info Present", "meta_info_present"),
    ]),
    ("Pixel Data Information", [
        ("Has Pixel Data", "has_pixel_data"),
        ("Pixel Data VR", "pixel_data_vr"),
        ("Dimensions", "image_dimensions"),
        ("Number of Frames", "number_of_frames"),
        ("Bits Allocated", "bits_allocated"),
        ("Samples per Pixel", "samples_per_pixel"),
        ("Photometric Interpretation", "photometric_interpretation"),
        ("Pixel Representation", "pixel_representation"),
    ]),
]


def escape(text: object) -> str:
    """Escape &, <, > and quotes so *text* cannot break the markup."""
    return html.escape(str(text), quote=True)


# ---------------------------------------------------------------------------
# Chrome
# ---------------------------------------------------------------------------

def render_head(title: str, assets: Assets) -> str:
    return "\n".join([
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{escape(title)}</title>",
        "<style>",
        assets.stylesheet,
        "</style>",
        "<script>",
        assets.script,
        "</script>",
        "</head>",
    ])


def _toggle_button(css_class: str, label: str, expanded: bool) -> str:
    symbol = SYMBOL_EXPANDED if expanded else SYMBOL_COLLAPSED
    return (
        f'<button type="button" class="{css_class}" data-toggle>'
        f"<span data-symbol>{symbol}</span> {label}</button>"
    )


def _content_open(css_class: str, expanded: bool) -> str:
    hidden = "" if expanded else " hidden"
    return f'<div class="{css_class}" data-content{hidden}>'


def render_error(error: BaseException, assets: Optional[Assets] = None) -> str:
    """Render a minimal document explaining why no preview could be built."""
    assets = assets if assets is not None else load_assets()
    message, reason, suggestion = describe(error)

    details = []
    if reason:
        details.append(f'<p class="error-details">{escape(reason)}</p>')
    if suggestion:
        details.append(f'<p class="error-details">{escape(suggestion)}</p>')

    return "\n".join([
        "<!DOCTYPE html>",
        '<html lang="en">',
        render_head(ERROR_TITLE, assets),
        "<body>",
        f'<div class="error">Error parsing DICOM file: {escape(message)}</div>',
        *details,
        "</body>",
        "</html>",
    ])


# ---------------------------------------------------------------------------
# Attribute table
# ---------------------------------------------------------------------------

def _row_open(attribute: Attribute) -> str:
    return "\n".join([
        "<tr>",
        f'<td class="tag-id">{escape(attribute.tag)}</td>',
        f'<td class="tag-name">{escape(attribute.name)}</td>',
        f'<td class="vr">{escape(attribute.vr)}</td>',
        f'<td class="value">{INDENT_UNIT * attribute.depth}',
    ])


_ROW_CLOSE = "</td>\n</tr>"


def _sequence_open(attribute: Attribute) -> str:
    count = len(attribute.value.items)
    return "\n".join([
        _row_open(attribute),
        '<div class="sequence" data-collapsible="sequence" data-state="collapsed">',
        _toggle_button("sequence-toggle", f"Sequence [{count} items]", expanded=False),
        _content_open("sequence-content", expanded=False),
        '<table class="nested-table">',
        "<tbody>",
    ])


_SEQUENCE_CLOSE = "\n".join(["</tbody>", "</table>", "</div>", "</div>", _ROW_CLOSE])


def render_attribute(attribute: Attribute) -> str:
    """
    Render one attribute as a table row.

    Sequences become a collapsed toggle plus a nested table of their items.
    The tree is walked with an explicit stack, so nesting depth is bounded
    only by memory.
    """
    out: list[str] = []
    stack: list[object] = [attribute]

    while stack:
        item = stack.pop()
        if isinstance(item, str):
            out.append(item)
            continue
        if isinstance(item.value, Leaf):
            out.append(_row_open(item) + escape(item.value.text) + _ROW_CLOSE)
            continue
        out.append(_sequence_open(item))
        stack.append(_SEQUENCE_CLOSE)
        stack.extend(reversed(item.value.items))

    return "\n".join(out)


def render_attribute_table(attributes: list[Attribute]) -> str:
    rows = "\n".join(render_attribute(attribute) for attribute in attributes)
    return "\n".join([
        '<div class="table-container">',
        "<table>",
        "<thead>",
        "<tr>",
        '<th class="tag-id">Tag ID</th>',
        '<th class="tag-name">Tag Name</th>',
        '<th class="vr">VR</th>',
        '<th class="value">Value</th>',
        "</tr>",
        "</thead>",
        "<tbody>",
        rows,
        "</tbody>",
        "</table>",
        "</div>",
    ])


# ---------------------------------------------------------------------------
# Debug panel
# ---------------------------------------------------------------------------

def format_debug_value(name: str, value: Any) -> str:
    if value is None:
        value = DEBUG_DEFAULTS.get(name, "N/A")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Dimensions):
        return f"{value.rows} × {value.columns}"
    if name == "file_size":
        return f"{value} bytes"
    return escape(value)


def _render_error_section(summary: DebugSummary) -> str:
    errors = summary.errors()
    if not errors:
        return ""
    lines = ['<div class="error-section">', "<h3>Errors</h3>"]
    for label, message in errors:
        lines.append(f'<p class="error-item"><strong>{label}:</strong> {escape(message)}</p>')
    lines.append("</div>")
    return "\n".join(lines)


def render_debug(summary: DebugSummary) -> str:
    """Render the collapsible debug panel."""
    rows = []
    for title, entries in DEBUG_SECTIONS:
        rows.append(f'<tr><th colspan="2">{title}</th></tr>')
        for label, name in entries:
            value = format_debug_value(name, getattr(summary, name))
            rows.append(f"<tr><td>{label}</td><td>{value}</td></tr>")

    parts = [
        '<div class="debug-container" data-panel="debug" data-state="collapsed">',
        _toggle_button("debug-toggle", "Show Debug Information", expanded=False),
        _content_open("debug-content", expanded=False),
        '<table class="debug-table">',
        *rows,
        "</table>",
    ]
    error_section = _render_error_section(summary)
    if error_section:
        parts.append(error_section)
    parts.extend(["</div>", "</div>"])
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Preview panel
# ---------------------------------------------------------------------------

def render_preview(unit: PreviewUnit) -> str:
    """Render the preview panel: placeholder, static image, or frame slider."""
    if unit.is_empty:
        return "\n".join([
            '<div class="preview-container" data-panel="preview" data-state="collapsed">',
            _toggle_button("preview-toggle", "Preview Image", expanded=False),
            _content_open("preview-content", expanded=False),
            '<div class="no-preview-container">',
            f'<p class="error-message">{NO_PREVIEW_TEXT}</p>',
            "</div>",
            "</div>",
            "</div>",
        ])

    parts = [
        '<div class="preview-container" data-panel="preview" data-state="expanded">',
        _toggle_button("preview-toggle", "Preview Image", expanded=True),
        _content_open("preview-content", expanded=True),
        '<div class="preview-image-wrapper">',
        f'<img id="previewImage" class="preview-image" alt="Frame {unit.index + 1}" '
        f'src="{data_uri(unit.current)}">',
        "</div>",
    ]

    if unit.is_multi_frame:
        frame_uris = json.dumps([data_uri(frame) for frame in unit.frames])
        parts.extend([
            '<div class="slider-container">',
            f'<input type="range" id="frameSlider" class="frame-slider" min="0" '
            f'max="{unit.frame_count - 1}" value="{unit.index}" data-frames="frame-data" '
            f'data-image="previewImage" data-counter="frameNumber">',
            f'<div class="slider-label">Frame: <span id="frameNumber">{unit.index + 1}</span>'
            f" / {unit.frame_count}</div>",
            "</div>",
            f'<script type="application/json" id="frame-data">{frame_uris}</script>',
        ])

    parts.extend(["</div>", "</div>"])
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

def render_document(result: ParseResult, assets: Optional[Assets] = None) -> str:
    """Compose the full preview document for a successful parse."""
    assets = assets if assets is not None else load_assets()
    unit = assemble_frames(result.preview_frames)

    document = "\n".join([
        "<!DOCTYPE html>",
        '<html lang="en">',
        render_head(DOCUMENT_TITLE, assets),
        "<body>",
        '<div class="container">',
        f"<h1>{DOCUMENT_TITLE}</h1>",
        '<div class="preview-section">',
        render_preview(unit),
        render_debug(result.debug),
        "</div>",
        '<div class="attributes-section">',
        '<div class="controls">',
        '<button type="button" data-action="expand-all">Expand All</button>',
        '<button type="button" data-action="collapse-all">Collapse All</button>',
        "</div>",
        render_attribute_table(result.attributes),
        f'<div class="count">{len(result.attributes)} DICOM attributes</div>',
        "</div>",
        "</div>",
        "</body>",
        "</html>",
    ])
    logger.info(
        "Rendered document: %d attributes, %d preview frame(s)",
        len(result.attributes), unit.frame_count,
    )
    return document
