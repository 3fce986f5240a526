from contextlib import contextmanager
import os
import shutil
import tempfile
import unittest

from io import BytesIO

from multipart import header_quote, to_bytes

from formdecoder import multipart
from formdecoder.exceptions import DecodeError


class BaseDecoderTest(unittest.TestCase):
    def setUp(self):
        self.data = BytesIO()
        self.boundary = '----foo'
        self.output_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.output_dir)

    def reset(self):
        self.data.seek(0)
        self.data.truncate()
        return self

    def write(self, *chunks):
        for chunk in chunks:
            self.data.write(to_bytes(chunk))
        return self

    def write_boundary(self):
        if self.data.tell() > 0:
            self.write(b'\r\n')
        self.write(to_bytes(self.boundary), b'\r\n')

    def write_end(self):
        if self.data.tell() > 0:
            self.write(b'\r\n')
        self.write(to_bytes(self.boundary), b'--\r\n')

    def write_header(self, header, value, **opts):
        line = to_bytes(header) + b': ' + to_bytes(value)
        for opt, val in opts.items():
            if val is not None:
                quoted = header_quote(val)
                # Only quoted option values are read back
                if not quoted.startswith('"'):
                    quoted = '"%s"' % quoted
                line += b'; ' + to_bytes(opt) + b'=' + to_bytes(quoted)
        self.write(line + b'\r\n')

    def write_field(self, name, data, filename=None, content_type=None):
        self.write_boundary()
        self.write_header("Content-Disposition", "form-data", name=name, filename=filename)
        if content_type:
            self.write_header("Content-Type", content_type)
        self.write(b"\r\n")
        self.write(data)

    def decoder(self, **kwargs):
        kwargs.setdefault("output_dir", self.output_dir)
        return multipart.MultipartDecoder(**kwargs)

    def decode(self, *lines, **kwargs):
        if lines:
            self.reset()
            self.write(*lines)
        self.data.seek(0)
        return self.decoder(**kwargs).decode(self.data)

    def input_file(self):
        """Store the current input in a file outside the output directory."""
        fd, path = tempfile.mkstemp(suffix='.bin')
        with os.fdopen(fd, 'wb') as fp:
            fp.write(self.data.getvalue())
        self.addCleanup(os.remove, path)
        return path

    def output_files(self):
        return sorted(os.listdir(self.output_dir))

    def read_output(self, name):
        with open(os.path.join(self.output_dir, name), 'rb') as fp:
            return fp.read()

    def assertDecoderFails(self, *a, **ka):
        self.assertRaises(DecodeError, self.decode, *a, **ka)

    @contextmanager
    def assertDecodeError(self, message: str = None):
        with self.assertRaises(DecodeError) as ex:
            yield
        if message:
            self.assertIn(message, str(ex.exception))
