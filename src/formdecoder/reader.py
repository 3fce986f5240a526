"""
Buffered access to a multipart byte source.

:class:`BoundedReader` reads lines and chunks from any binary stream and
reports each attempt as a :class:`ReadResult`, which is always one of
``DATA``, ``END_OF_INPUT`` or ``ERROR``. :class:`WindowBuffer` is the
fixed-capacity window the body copier slides over the input.
"""

from typing import NamedTuple, Optional, Union

from formdecoder.util import find_delimiter

__all__ = ["DATA", "END_OF_INPUT", "ERROR", "ReadResult", "BoundedReader", "WindowBuffer"]


# Read outcomes as constants
DATA = "DATA"
END_OF_INPUT = "END_OF_INPUT"
ERROR = "ERROR"


class ReadResult(NamedTuple):
    #: One of DATA, END_OF_INPUT or ERROR.
    status: str
    #: The line read (``read_line``) or the byte count appended (``fill``).
    value: Union[bytes, int, None] = None
    #: The OSError raised by the stream, for ERROR results.
    error: Optional[OSError] = None


_END = ReadResult(END_OF_INPUT)


class WindowBuffer:
    """A fixed-capacity byte window.

    Bytes are appended at the end and consumed from the front; the storage is
    reused for the whole stream and only cleared logically between parts.
    """

    def __init__(self, capacity: int):
        if capacity < 2:
            raise ValueError("Window capacity too small")
        self.capacity = capacity
        self._data = bytearray()

    def __len__(self):
        return len(self._data)

    def __bytes__(self):
        return bytes(self._data)

    @property
    def filled_len(self) -> int:
        return len(self._data)

    @property
    def space(self) -> int:
        return self.capacity - len(self._data)

    def append(self, chunk) -> int:
        """Append as much of `chunk` as fits and return the count."""
        count = min(len(chunk), self.space)
        self._data += chunk[:count]
        return count

    def consume(self, count: int) -> bytes:
        """Remove and return the first `count` bytes."""
        assert 0 <= count <= len(self._data)
        chunk = bytes(self._data[:count])
        del self._data[:count]
        return chunk

    def clear(self):
        del self._data[:]

    def find(self, needle) -> int:
        return find_delimiter(self._data, needle)

    def flushable(self, needle_len: int) -> int:
        """Number of bytes that may leave the window when no delimiter was
        found and more input is pending.

        Only the first half of the capacity is released. The retained half is
        long enough to hold any delimiter that starts in the released half and
        runs past the end of the window, as long as the delimiter is shorter
        than the retained half.
        """
        half = self.capacity // 2
        assert needle_len <= self.capacity - half, "delimiter longer than half the window"
        assert len(self._data) >= half, "window released before it was filled"
        return half


class BoundedReader:
    def __init__(self, stream):
        """Wrap a binary stream implementing ``read(size)`` and
        ``readline(size)``.

        Bytes handed back with :meth:`unread` are served before anything
        else, so the source never needs to be seekable.
        """
        self.stream = stream
        self._pending = bytearray()

    def read_line(self, max_len: int) -> ReadResult:
        """Read up to and including the next ``\\n``, but never more than
        ``max_len - 1`` bytes.

        END_OF_INPUT is returned only if not a single byte was available. A
        line cut short by the end of input is returned as DATA without its
        terminator.
        """
        limit = max_len - 1
        assert limit > 0

        pending = self._pending
        if pending:
            nl = pending.find(b"\n", 0, limit)
            if nl > -1:
                return ReadResult(DATA, self._take(nl + 1))
            if len(pending) >= limit:
                return ReadResult(DATA, self._take(limit))
            line = self._take(len(pending))
        else:
            line = b""

        try:
            line += self.stream.readline(limit - len(line))
        except OSError as err:
            return ReadResult(ERROR, error=err)

        if not line:
            return _END

        return ReadResult(DATA, line)

    def fill(self, window: WindowBuffer) -> ReadResult:
        """Append up to ``window.space`` bytes to the window.

        Returns DATA with the number of bytes appended, which may be less than
        requested. END_OF_INPUT means the source is exhausted.
        """
        space = window.space
        assert space > 0

        if self._pending:
            chunk = self._take(min(space, len(self._pending)))
        else:
            try:
                chunk = self.stream.read(space)
            except OSError as err:
                return ReadResult(ERROR, error=err)

        if not chunk:
            return _END

        return ReadResult(DATA, window.append(chunk))

    def unread(self, data):
        """Push `data` back so that the next read starts with it."""
        self._pending[:0] = data

    def _take(self, count):
        chunk = bytes(self._pending[:count])
        del self._pending[:count]
        return chunk
