"""
Command-line host: render a DICOM file's preview document to disk.

Usage
-----
    python -m dicom_preview scan.dcm
    python -m dicom_preview scan.dcm -o preview.html --verbose
    python -m dicom_preview scan.dcm --config site.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from dicom_preview.config import apply_config
from dicom_preview.errors import FileError
from dicom_preview.pipeline import resolve_source
from dicom_preview.preview import build_preview

logger = logging.getLogger("dicom_preview")


def _parse_args(argv: Optional[list[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="dicom-preview",
        description="Render a DICOM file's attributes and preview frames as a standalone HTML page",
    )
    parser.add_argument("source", help="Path or file:// URL of the DICOM file")
    parser.add_argument("-o", "--output", help="Where to write the HTML (default: <source>.html)")
    parser.add_argument("-c", "--config", help="YAML settings file (default: $DICOM_PREVIEW_CONFIG or config.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _default_output(source: str) -> Path:
    try:
        return Path(resolve_source(source)).with_suffix(".html")
    except FileError:
        return Path("preview.html")


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)-8s %(name)s: %(message)s",
    )
    if args.config:
        apply_config(args.config)

    reply = build_preview(args.source)

    output = Path(args.output) if args.output else _default_output(args.source)
    output.write_bytes(reply.data)
    width, height = reply.content_size
    logger.info("Wrote %s (%d bytes, content size %dx%d)", output, len(reply.data), width, height)
    return 0 if reply.ok else 1


if __name__ == "__main__":
    sys.exit(main())
