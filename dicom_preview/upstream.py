"""
upstream.py - Call contract of the binary DICOM parser.

Given a file path, a parser returns exactly one of JSON text or an error
string.  Whatever it allocates for the call stays alive until release() is
called on the result; upstream_call() guarantees that release happens on
every exit path, including exceptions raised while the caller is still
reading the result.

Parsers advertise ``reentrant``.  Calls into a non-reentrant parser are
serialised behind a single lock held for the whole acquire/read/release span.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Protocol

logger = logging.getLogger(__name__)

_SERIAL_LOCK = threading.Lock()


@dataclass
class UpstreamResult:
    """Raw reply of one parser call."""
    json_data: Optional[str] = None
    error_message: Optional[str] = None


class UpstreamParser(Protocol):
    reentrant: bool

    def parse_file(self, path: str) -> UpstreamResult:
        ...

    def release(self, result: UpstreamResult) -> None:
        ...


@contextmanager
def upstream_call(parser: UpstreamParser, path: str) -> Iterator[UpstreamResult]:
    """
    Scoped parser call: acquire a result, yield it, always release it.

    Copy whatever is needed out of the result inside the ``with`` block;
    it must not be used after the block exits.
    """
    serialise = not getattr(parser, "reentrant", True)
    if serialise:
        _SERIAL_LOCK.acquire()
    try:
        result = parser.parse_file(path)
        try:
            yield result
        finally:
            parser.release(result)
            logger.debug("Released upstream result for %s", path)
    finally:
        if serialise:
            _SERIAL_LOCK.release()
