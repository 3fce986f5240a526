from multipart import MultipartError

__all__ = ["DecodeError", "MalformedInput", "StreamIOError"]


class DecodeError(MultipartError):
    """Decoding of the current stream failed and was abandoned."""


class MalformedInput(DecodeError):
    """The stream violates the multipart/form-data structure."""


class StreamIOError(DecodeError):
    """
    Reading the input or writing a part failed.

    The original :class:`OSError` is available as ``__cause__``.
    """
