import pytest
import logging

log = logging.getLogger(__name__)


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def write_input(tmp_path):
    """Store a captured request body and return its path as a string."""
    def _write_input(name, *chunks):
        path = tmp_path / name
        path.write_bytes(b"".join(chunks))
        log.debug("wrote %d bytes to %s", path.stat().st_size, path)
        return str(path)

    return _write_input


@pytest.fixture
def form_body():
    """Build a multipart body from (headers, body) pairs."""
    def _form_body(*parts, boundary=b"----X", end=b"--\r\n"):
        chunks = [boundary, b"\r\n"]
        for i, (headers, body) in enumerate(parts):
            if i:
                chunks += [b"\r\n", boundary, b"\r\n"]
            for header in headers:
                chunks += [header, b"\r\n"]
            chunks += [b"\r\n", body]
        chunks += [b"\r\n", boundary, end]
        return b"".join(chunks)

    return _form_body
