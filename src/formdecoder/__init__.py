from formdecoder.exceptions import *
from formdecoder.multipart import *

__all__ = [
    'DecodeError', 'MalformedInput', 'StreamIOError',
    'MultipartDecoder', 'DecodeResult', 'DecodedPart',
    'COMPLETE', 'EMPTY', 'TRUNCATED', 'FAILED',
]

__version__ = '1.0.0'
