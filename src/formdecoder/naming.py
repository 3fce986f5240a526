"""
Output names for decoded parts.

A part is written to the file named by the ``filename`` option of its
Content-Disposition header, or to ``unnamed.<counter>`` if it has none. An
explicitly empty filename marks a part that must not produce any output.
"""

import logging
import os
from typing import NamedTuple, Optional, Tuple

from formdecoder.exceptions import MalformedInput

__all__ = ["NAMED", "SEQUENTIAL", "DISCARD", "PartTarget", "resolve_target", "unique_path"]

log = logging.getLogger(__name__)

# Target kinds
NAMED = "named"
SEQUENTIAL = "sequential"
DISCARD = "discard"

_FILENAME = b'filename="'
_UNNAMED = "unnamed.%08x"


class PartTarget(NamedTuple):
    kind: str
    #: Output path, None for DISCARD targets.
    path: Optional[str] = None
    #: False in list-only mode: the path is reported, never created.
    write: bool = True
    #: The filename as sent by the client, before sanitizing.
    filename: Optional[str] = None

    @property
    def discard(self) -> bool:
        return self.kind == DISCARD


def unique_path(path: str) -> str:
    """Return `path`, or the first of ``path.0``, ``path.1``, ... that does not
    exist yet.

    This is check-then-act: a file created by someone else between this call
    and opening the result is overwritten.
    """
    if not os.path.lexists(path):
        return path

    i = 0
    while os.path.lexists("%s.%d" % (path, i)):
        i += 1

    return "%s.%d" % (path, i)


def _safe_filename(raw: bytes) -> str:
    filename = os.fsdecode(raw)

    # Some clients send the full client-side path
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]

    if name in ("", ".", "..") or "\0" in name:
        raise MalformedInput("Invalid filename in Content-Disposition: %r" % filename)

    return name


def resolve_target(
    disposition: bytes, output_dir: str, list_only: bool, sequence: int
) -> Tuple[PartTarget, int]:
    """Decide where the body of a part goes.

    :param disposition: The raw Content-Disposition header value.
    :param output_dir: Directory prefixed to every output path.
    :param list_only: If true, nothing will be written, so existing files are
        not checked for collisions.
    :param sequence: Next number for parts without a filename.
    :returns: The target and the (possibly advanced) sequence number.
    """
    start = disposition.find(_FILENAME)

    if start == -1:
        path = os.path.join(output_dir, _UNNAMED % sequence)
        return PartTarget(SEQUENTIAL, path, not list_only), sequence + 1

    start += len(_FILENAME)
    end = disposition.find(b'"', start)
    if end == -1:
        raise MalformedInput("Unterminated filename in Content-Disposition")

    raw = disposition[start:end]
    if not raw:
        return PartTarget(DISCARD, write=False, filename=""), sequence

    path = os.path.join(output_dir, _safe_filename(raw))
    if not list_only:
        path = unique_path(path)

    log.debug("Resolved %r to %s", raw, path)
    return PartTarget(NAMED, path, not list_only, os.fsdecode(raw)), sequence
