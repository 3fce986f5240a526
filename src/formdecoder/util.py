CRLF = b"\r\n"


def find_delimiter(window, needle, start=0, end=None):
    """Return the offset of the first occurrence of `needle` in `window`.

    Works on any bytes-like window, embedded NUL bytes included. Candidates
    are located by the needle's first byte and then verified in full; the
    scan resumes one byte past a failed candidate. Returns -1 if the needle
    does not occur in ``window[start:end]``.
    """
    if not needle:
        raise ValueError("Empty delimiter")

    if end is None or end > len(window):
        end = len(window)

    first = needle[:1]
    size = len(needle)
    pos = start

    while end - pos >= size:
        candidate = window.find(first, pos, end - size + 1)

        if candidate == -1:
            break
        if window[candidate : candidate + size] == needle:
            return candidate
        pos = candidate + 1

    return -1


def strip_crlf(line):
    """Strip one trailing CRLF, or return None if the line has none."""
    if not line.endswith(CRLF):
        return None

    return line[: -len(CRLF)]
