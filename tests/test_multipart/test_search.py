# -*- coding: utf-8 -*-
import unittest

from formdecoder.util import find_delimiter, strip_crlf


class TestFindDelimiter(unittest.TestCase):

    def test_found(self):
        self.assertEqual(find_delimiter(b'\r\n--foo', b'\r\n--foo'), 0)
        self.assertEqual(find_delimiter(b'abc\r\n--foo\r\n', b'\r\n--foo'), 3)
        self.assertEqual(find_delimiter(b'abc\r\n--foo', b'\r\n--foo'), 3)

    def test_not_found(self):
        self.assertEqual(find_delimiter(b'', b'\r\n--foo'), -1)
        self.assertEqual(find_delimiter(b'abc\r\n--fo', b'\r\n--foo'), -1)
        self.assertEqual(find_delimiter(b'\r\n--fo', b'\r\n--foo'), -1)
        self.assertEqual(find_delimiter(b'\n--foo\r\n--fox', b'\r\n--foo'), -1)

    def test_first_occurrence(self):
        self.assertEqual(find_delimiter(b'x--a--a', b'--a'), 1)

    def test_failed_candidates(self):
        self.assertEqual(find_delimiter(b'aaab', b'aab'), 1)
        self.assertEqual(find_delimiter(b'\r\r\n\r\n-\r\n--', b'\r\n--'), 6)

    def test_binary(self):
        window = b'\x00\x00\r\n\x00--foo\x00\r\n--foo'
        self.assertEqual(find_delimiter(window, b'\r\n--foo'), 11)
        self.assertEqual(find_delimiter(window, b'\x00\r\n'), 1)
        self.assertEqual(find_delimiter(bytearray(window), b'\r\n--foo'), 11)

    def test_bounds(self):
        window = b'--a--a--a'
        self.assertEqual(find_delimiter(window, b'--a', start=1), 3)
        self.assertEqual(find_delimiter(window, b'--a', end=2), -1)
        self.assertEqual(find_delimiter(window, b'--a', start=4, end=9), 6)
        self.assertEqual(find_delimiter(window, b'--a', end=100), 0)

    def test_needle_longer_than_window(self):
        self.assertEqual(find_delimiter(b'--', b'--foo'), -1)

    def test_empty_needle(self):
        self.assertRaises(ValueError, find_delimiter, b'abc', b'')


class TestStripCRLF(unittest.TestCase):

    def test_strip(self):
        self.assertEqual(strip_crlf(b'--foo\r\n'), b'--foo')
        self.assertEqual(strip_crlf(b'\r\n'), b'')
        self.assertEqual(strip_crlf(b'--foo\r\n\r\n'), b'--foo\r\n')

    def test_missing(self):
        self.assertIsNone(strip_crlf(b'--foo'))
        self.assertIsNone(strip_crlf(b'--foo\n'))
        self.assertIsNone(strip_crlf(b''))
