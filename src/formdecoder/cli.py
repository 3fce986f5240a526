import argparse
import logging
import os
import sys

from formdecoder import __version__
from formdecoder.multipart import DEFAULT_BUFFER_SIZE, MIN_BUFFER_SIZE, MultipartDecoder

log = logging.getLogger("formdecoder")


def buffer_size(value):
    try:
        size = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("invalid buffer size: %r" % value)
    if size < MIN_BUFFER_SIZE:
        raise argparse.ArgumentTypeError(
            "buffer size must be at least %d bytes" % MIN_BUFFER_SIZE
        )
    return size


def make_parser():
    parser = argparse.ArgumentParser(
        prog="form-file-decoder",
        description="Extract the files stored in captured multipart/form-data request bodies.",
    )

    parser.add_argument(
        "-l",
        "--list",
        action="store_true",
        default=False,
        help="list files without extracting them",
    )
    parser.add_argument(
        "-o",
        "--output-dir",
        default=".",
        metavar="DIR",
        help="store output files in specified directory",
    )
    parser.add_argument(
        "-b",
        "--buffer-size",
        type=buffer_size,
        default=DEFAULT_BUFFER_SIZE,
        metavar="SIZE",
        help="size of the read buffer in bytes (default: %(default)s)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="print debugging details"
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version="form-file-decoder %s" % __version__,
        help="program version",
    )
    parser.add_argument(
        "files", nargs="+", metavar="FILE", help="input files, '-' for standard input"
    )

    return parser


def main(argv=None):
    """Decode every input file in order. Failures to decode a file are
    reported but do not change the exit status."""

    args = make_parser().parse_args(argv)

    logging.basicConfig(
        stream=sys.stderr,
        format="%(message)s",
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    if not os.access(args.output_dir, os.W_OK):
        log.error("Output directory not writable: %s", args.output_dir)
        return 1

    decoder = MultipartDecoder(
        output_dir=args.output_dir,
        list_only=args.list,
        buffer_size=args.buffer_size,
    )

    for filename in args.files:
        try:
            decoder.decode_file(filename)
        except OSError as err:
            log.error("Unable to open %s: %s", filename, err.strerror or err)
            return 1

    return 0
