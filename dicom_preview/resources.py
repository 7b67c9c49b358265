"""
resources.py - Static presentation assets inlined into every document.

The stylesheet and script are looked up by file name in the configured
resources directory (the packaged ``resources/`` folder by default).  A
missing or unreadable asset yields an empty block rather than a failure.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dicom_preview.config import CONFIG

logger = logging.getLogger(__name__)

_PACKAGE_RESOURCES = os.path.join(os.path.dirname(os.path.abspath(__file__)), "resources")


@dataclass(frozen=True)
class Assets:
    """Stylesheet and script text, inlined verbatim into the document head."""
    stylesheet: str = ""
    script: str = ""


def resources_dir() -> str:
    return CONFIG["resources"]["directory"] or _PACKAGE_RESOURCES


def load_resource(name: str, directory: Optional[str] = None) -> str:
    """
    Return the text of resource *name*, or "" if it cannot be loaded.

    Parameters
    ----------
    name : str
        File name inside the resources directory, e.g. "styles.css".
    directory : str, optional
        Directory to search.  Defaults to the configured resources directory.
    """
    path = os.path.join(directory or resources_dir(), name)
    if not os.path.isfile(path):
        logger.warning("Resource %s not found at %s", name, path)
        return ""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Error loading resource %s: %s", name, exc)
        return ""


def load_assets(directory: Optional[str] = None) -> Assets:
    """Load the configured stylesheet and script."""
    cfg = CONFIG["resources"]
    return Assets(
        stylesheet=load_resource(cfg["stylesheet"], directory),
        script=load_resource(cfg["script"], directory),
    )
