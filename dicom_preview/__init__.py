"""Render decoded DICOM metadata into a self-contained HTML preview."""

__version__ = "0.1.0"
