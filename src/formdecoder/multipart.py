"""
Streaming decoder for captured `multipart/form-data` request bodies.

The first line of the input is taken as the boundary. Every part that
follows is written to its own file (or only counted, in list-only mode) while
the input is read through a fixed-size window, so memory use does not depend
on the size of the parts.

The format is read strictly: parts may only carry Content-Disposition (which
must be ``form-data``), Content-Type and no other headers, and any structural
violation abandons the rest of the stream.
"""

import logging
import sys
from contextlib import nullcontext
from typing import List, NamedTuple, Optional, Tuple

from multipart import parse_options_header

from formdecoder.exceptions import DecodeError, MalformedInput, StreamIOError
from formdecoder.naming import PartTarget, resolve_target
from formdecoder.reader import DATA, END_OF_INPUT, ERROR, BoundedReader, WindowBuffer
from formdecoder.util import CRLF, strip_crlf

__all__ = [
    "DEFAULT_BUFFER_SIZE",
    "COMPLETE",
    "EMPTY",
    "TRUNCATED",
    "FAILED",
    "DecodedPart",
    "DecodeResult",
    "PartHeaders",
    "PartSink",
    "read_part_headers",
    "copy_body",
    "MultipartDecoder",
]

log = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 8192
MIN_BUFFER_SIZE = 16

# Stream outcomes
COMPLETE = "complete"
EMPTY = "empty"
TRUNCATED = "truncated"
FAILED = "failed"


def _text(line):
    return line.decode("latin-1").rstrip("\r\n")


def _read_error(result, what):
    return StreamIOError("Read error while %s: %s" % (what, result.error))


##############################################################################
################################ Header Parser ###############################
##############################################################################


class PartHeaders:
    #: Where the body goes. Set by the Content-Disposition header.
    target: Optional[PartTarget]
    #: The 'name' option of the Content-Disposition header, if present.
    name: Optional[str]
    #: The Content-Type header value. Not interpreted.
    content_type: Optional[str]

    def __init__(self):
        self.target = None
        self.name = None
        self.content_type = None


def _field_name(disposition):
    _, options = parse_options_header(disposition.decode("latin-1").strip())
    return options.get("name")


def read_part_headers(
    reader: BoundedReader, line_size: int, output_dir: str, list_only: bool, sequence: int
) -> Tuple[PartHeaders, int]:
    """Read a header block up to and including the blank line.

    Returns the parsed headers and the next sequence number for unnamed
    parts. A second Content-Disposition header replaces the first.

    :raises MalformedInput: On unknown or unsupported headers, a disposition
        other than ``form-data``, a missing Content-Disposition header or an
        early end of input.
    :raises StreamIOError: If reading fails.
    """
    headers = PartHeaders()

    while True:
        result = reader.read_line(line_size)

        if result.status is ERROR:
            raise _read_error(result, "reading headers") from result.error
        if result.status is END_OF_INPUT:
            raise MalformedInput("Unexpected end of input while reading headers")

        line = result.value
        if line == CRLF:
            break

        name, sep, value = line.partition(b":")
        name = name.lower()
        value = value.lstrip(b" \t")

        if not sep:
            raise MalformedInput("Unknown header: %s" % _text(line))
        elif name == b"content-disposition":
            if value[:10].lower() != b"form-data;":
                raise MalformedInput(
                    "Invalid Content-Disposition (not form-data): %s" % _text(value)
                )
            headers.target, sequence = resolve_target(
                value, output_dir, list_only, sequence
            )
            headers.name = _field_name(value)
            log.debug("Part %r -> %s", headers.name, headers.target.path)
        elif name == b"content-type":
            headers.content_type = _text(value)
        elif name == b"content-transfer-encoding":
            raise MalformedInput("Unsupported %s" % _text(line))
        else:
            raise MalformedInput("Unknown header: %s" % _text(line))

    if headers.target is None:
        raise MalformedInput("No Content-Disposition, invalid part")

    return headers, sequence


##############################################################################
################################# Body Copier ################################
##############################################################################


class PartSink:
    def __init__(self, target: PartTarget, file=None):
        """Destination for the body bytes of one part.

        Without a `file`, bytes are only counted. A DISCARD target accepts
        nothing but empty writes.
        """
        self.target = target
        self.file = file

    def write(self, chunk) -> int:
        if not chunk:
            return 0
        if self.target.discard:
            raise MalformedInput("Non-empty data where an empty part was declared")

        if self.file is not None:
            try:
                self.file.write(chunk)
            except OSError as err:
                raise StreamIOError(
                    "Write to %s failed: %s" % (self.target.path, err)
                ) from err

        return len(chunk)


def _fill(reader, window):
    """Fill the window up to its capacity. Returns True at end of input."""
    while window.space:
        result = reader.fill(window)
        if result.status is END_OF_INPUT:
            return True
        if result.status is ERROR:
            raise _read_error(result, "reading part data") from result.error

    return False


def copy_body(reader: BoundedReader, window: WindowBuffer, delimiter: bytes, sink: PartSink) -> int:
    """Copy body bytes from `reader` to `sink` up to the next `delimiter`.

    On return the reader is positioned at the boundary line that follows the
    body (the delimiter's leading CRLF is consumed). Returns the number of
    body bytes, which is the same whether the sink writes or only counts.

    :raises MalformedInput: If the input ends before the delimiter.
    """
    size = 0
    window.clear()

    while True:
        exhausted = _fill(reader, window)
        index = window.find(delimiter)

        if index > -1:
            size += sink.write(window.consume(index))
            window.consume(len(CRLF))
            reader.unread(window.consume(window.filled_len))
            return size

        if exhausted:
            size += sink.write(window.consume(window.filled_len))
            raise MalformedInput(
                "Unexpected end of input: boundary not found after %d bytes" % size
            )

        size += sink.write(window.consume(window.flushable(len(delimiter))))


##############################################################################
################################### Decoder ##################################
##############################################################################


class DecodedPart(NamedTuple):
    #: The form field name, if the part had one.
    name: Optional[str]
    #: The filename sent by the client: None if absent, "" for discarded parts.
    filename: Optional[str]
    #: The output path (not created in list-only mode), None if discarded.
    path: Optional[str]
    #: Number of body bytes.
    size: int


class DecodeResult:
    def __init__(self, source=None):
        self.source = source
        #: COMPLETE, EMPTY, TRUNCATED or FAILED. None while decoding.
        self.status = None
        #: Parts decoded so far, in stream order.
        self.parts: List[DecodedPart] = []
        #: The DecodeError that stopped decoding, if any.
        self.error = None

    @property
    def ok(self):
        return self.status in (COMPLETE, EMPTY)

    def __repr__(self):
        return "<DecodeResult %r %s (%d parts)>" % (self.source, self.status, len(self.parts))


class MultipartDecoder:
    def __init__(
        self,
        output_dir=".",
        list_only=False,
        buffer_size=DEFAULT_BUFFER_SIZE,
        sequence=0,
    ):
        """Decode multipart/form-data streams into files.

        One decoder is meant to serve a whole run: parts without a filename
        are numbered from `sequence` onwards, across all streams it decodes.

        :param output_dir: Directory for output files. Must exist and be
            writable unless `list_only` is set.
        :param list_only: Count and report parts, but do not create files.
        :param buffer_size: Size of the window the input is scanned with, and
            the maximum length of header lines. The boundary (plus CRLF) must
            be shorter than half of it.
        :param sequence: First number used for unnamed parts.
        """
        if buffer_size < MIN_BUFFER_SIZE:
            raise ValueError("buffer_size must be at least %d" % MIN_BUFFER_SIZE)

        self.output_dir = output_dir
        self.list_only = list_only
        self.buffer_size = buffer_size
        self.sequence = sequence

    def decode(self, stream, source=None) -> DecodeResult:
        """Decode all parts of a binary stream.

        Returns a result with status COMPLETE, EMPTY or TRUNCATED.

        :raises DecodeError: On malformed input or I/O errors. Files written
            for earlier parts are kept.
        """
        result = DecodeResult(source)
        self._decode(stream, result)
        return result

    def decode_file(self, filename) -> DecodeResult:
        """Decode one input file (``-`` for standard input).

        Decoding errors are logged and reported as a FAILED result instead of
        being raised.

        :raises OSError: If the input file cannot be opened.
        """
        if filename == "-":
            stream = nullcontext(sys.stdin.buffer)
        else:
            stream = open(filename, "rb")

        result = DecodeResult(filename)
        log.info("[%s]", filename)

        with stream as fp:
            try:
                self._decode(fp, result)
            except DecodeError as err:
                log.error("%s", err)
                result.status = FAILED
                result.error = err

        return result

    def decode_files(self, filenames) -> List[DecodeResult]:
        """Decode several input files in order. A failed file does not stop
        the batch: files that cannot be opened are reported as FAILED
        results with a :class:`StreamIOError`."""
        results = []

        for filename in filenames:
            try:
                result = self.decode_file(filename)
            except OSError as err:
                error = StreamIOError(
                    "Unable to open %s: %s" % (filename, err.strerror or err)
                )
                error.__cause__ = err
                log.error("%s", error)

                result = DecodeResult(filename)
                result.status = FAILED
                result.error = error

            results.append(result)

        return results

    def _decode(self, stream, result):
        reader = BoundedReader(stream)
        line_size = self.buffer_size

        first = reader.read_line(line_size - 2)
        if first.status is END_OF_INPUT:
            log.warning("Empty input, nothing to decode")
            result.status = EMPTY
            return
        if first.status is ERROR:
            raise _read_error(first, "reading boundary") from first.error

        boundary = strip_crlf(first.value)
        if boundary is None:
            raise MalformedInput("Boundary line is not terminated by CRLF")
        if not boundary:
            raise MalformedInput("Empty boundary")

        delimiter = CRLF + boundary
        if 2 * len(delimiter) >= self.buffer_size:
            raise MalformedInput(
                "Boundary too long for a %d byte buffer" % self.buffer_size
            )

        terminator = boundary + b"--"
        window = WindowBuffer(self.buffer_size)

        while True:
            headers, self.sequence = read_part_headers(
                reader, line_size, self.output_dir, self.list_only, self.sequence
            )
            result.parts.append(self._copy_part(reader, window, delimiter, headers))

            line = reader.read_line(line_size)
            if line.status is ERROR:
                raise _read_error(line, "looking for boundary") from line.error

            # The close delimiter may also end the input without a CRLF
            if line.status is DATA and line.value in (terminator + CRLF, terminator):
                result.status = COMPLETE
                return

            if line.status is DATA and not line.value.endswith(b"\n"):
                # Cut short by the end of input, or by the line length limit
                line = reader.read_line(line_size)
                if line.status is ERROR:
                    raise _read_error(line, "looking for boundary") from line.error
                if line.status is DATA:
                    raise MalformedInput(
                        "Boundary line longer than %d bytes" % (line_size - 1)
                    )

            if line.status is END_OF_INPUT:
                log.warning("Premature end of input when looking for boundary")
                result.status = TRUNCATED
                return

    def _copy_part(self, reader, window, delimiter, headers):
        target = headers.target

        if target.write:
            try:
                file = open(target.path, "wb")
            except OSError as err:
                raise StreamIOError(
                    "Unable to open %s for writing: %s" % (target.path, err)
                ) from err

            with file:
                size = copy_body(reader, window, delimiter, PartSink(target, file))
        else:
            size = copy_body(reader, window, delimiter, PartSink(target))

        if not target.discard:
            log.info("%s ... %d", target.path, size)

        return DecodedPart(headers.name, target.filename, target.path, size)
