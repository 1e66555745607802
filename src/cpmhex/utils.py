# Copyright (c) 2013-2025, Andrea Zoppi
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

r"""Generic utility functions."""

import binascii
import io
import re
from typing import IO
from typing import Any
from typing import Iterable
from typing import Iterator
from typing import Mapping
from typing import Optional
from typing import Union

AnyBytes = Union[bytes, bytearray, memoryview]

SUFFIX_SCALE: Mapping[str, int] = {
    'k': 2**10,
    'm': 2**20,

    'kib': 2**10,
    'mib': 2**20,

    'kb': 10**3,
    'mb': 10**6,
}
r"""Integer suffix to scale factor."""

INT_REGEX = re.compile(r'^\s*(?P<sign>[+-]?)\s*'
                       r'(?P<prefix>(0x|0b|0o|0)?)'
                       r'(?P<value>[a-f0-9]+)'
                       r'(?P<suffix>h?)'
                       r'\s*(?P<scale>('
                       r'k|m|kib|mib|kb|mb'
                       r')?)\s*$')

HEX_DIGIT_VALUES: Mapping[int, int] = {
    **{c: c - 0x30 for c in b'0123456789'},
    **{c: c - 0x41 + 10 for c in b'ABCDEF'},
    **{c: c - 0x61 + 10 for c in b'abcdef'},
}
r"""ASCII character code to hexadecimal digit value."""

PADDING_CHARS: bytes = b' \t\r\n\0\x1A'
r"""Characters allowed after the last record of a file.

CP/M text files are padded with ``^Z`` up to the sector size, and some
transfer programs append NUL bytes.
"""


def checksum_ones(values: Iterable[int]) -> int:
    r"""Computes a one's complement checksum.

    Args:
        values (int iterable):
            Byte values to sum.

    Returns:
        int: Bitwise NOT of the lower byte of the sum.

    Examples:
        >>> checksum_ones([0x03, 0x01, 0x00])
        251
    """

    return ~sum(values) & 0xFF


def checksum_twos(values: Iterable[int]) -> int:
    r"""Computes a two's complement checksum.

    The sum of all the `values` plus the returned checksum is a multiple of
    256.

    Args:
        values (int iterable):
            Byte values to sum.

    Returns:
        int: Negated lower byte of the sum.

    Examples:
        >>> checksum_twos([0x00, 0x00, 0x00, 0x01])
        255
        >>> checksum_twos([0x03, 0x01, 0x00, 0x00, 0x3E, 0xFF, 0x87])
        56
    """

    return -sum(values) & 0xFF


def hexlify(
    bytestr: AnyBytes,
    upper: bool = True,
) -> bytes:
    r"""Converts raw bytes into a hexadecimal byte string.

    Args:
        bytestr (bytes):
            Source byte string.

        upper (bool):
            Uppercase hexadecimal string.

    Returns:
        bytes: Hexadecimal byte string.

    Examples:
        >>> from cpmhex.utils import hexlify
        >>> hexlify(b'\xAA\xBB\xCC')
        b'AABBCC'
        >>> hexlify(b'\xAA\xBB\xCC', upper=False)
        b'aabbcc'
    """

    hexstr = binascii.hexlify(bytestr)

    if upper:
        hexstr = hexstr.upper()

    return hexstr


def iter_chars(stream: IO) -> Iterator[int]:
    r"""Iterates over the characters of a byte stream.

    The stream is read one byte at a time, so that nothing is consumed
    past the character being processed.

    Args:
        stream (bytes IO):
            Byte stream to read.

    Yields:
        int: Character code.
    """

    while True:
        char = stream.read(1)
        if not char:
            return
        yield char[0]


def parse_int(
    value: Union[str, Any],
) -> Optional[int]:
    r"""Parses an integer.

    Args:
        value:
            A generic object to convert to integer.
            In case `value` is a :obj:`str` (case-insensitive), it can be
            either prefixed with ``0x`` or postfixed with ``h`` to convert
            from a hexadecimal representation, or prefixed with ``0b`` from
            binary; a prefix of only ``0`` converts from octal.
            A further suffix applies a scale factor as per
            :data:`SUFFIX_SCALE`.
            A ``None`` value evaluates as ``None``.
            Any other object class will call the standard :func:`int`.

    Returns:
        int: None if `value` is ``None``, its integer conversion otherwise.

    Examples:
        >>> parse_int('0x100')
        256

        >>> parse_int('100h')
        256

        >>> parse_int(None) is None
        True

        >>> parse_int(123)
        123
    """
    if value is None:
        return None

    elif isinstance(value, str):
        value = value.lower()
        m = INT_REGEX.match(value)
        if not m:
            raise ValueError(f'invalid syntax: {value!r}')
        g = m.groupdict()
        sign = g['sign']
        prefix = g['prefix']
        value = g['value']
        suffix = g['suffix']
        scale = g['scale']
        if prefix in ('0b', '0o') and suffix == 'h':
            raise ValueError(f'invalid syntax: {value!r}')

        if prefix == '0x' or suffix == 'h':
            i = int(value, 16)
        elif prefix == '0b':
            i = int(value, 2)
        elif prefix == '0' or prefix == '0o':
            i = int(value, 8)
        else:
            i = int(value, 10)

        i *= SUFFIX_SCALE.get((scale or '').lower(), 1)

        if sign == '-':
            i = -i

        return i

    else:
        return int(value)


def parse_nibble(char: int) -> int:
    r"""Converts a hexadecimal digit character into its value.

    Args:
        char (int):
            ASCII character code.

    Returns:
        int: Digit value, from 0 to 15.

    Raises:
        ValueError: Not a hexadecimal digit.

    Examples:
        >>> parse_nibble(ord('7'))
        7
        >>> parse_nibble(ord('c'))
        12
        >>> parse_nibble(ord('C'))
        12
        >>> parse_nibble(ord('G'))
        Traceback (most recent call last):
            ...
        ValueError: invalid hex digit: 0x47
    """

    try:
        return HEX_DIGIT_VALUES[char]
    except KeyError:
        raise ValueError(f'invalid hex digit: 0x{char:02X}') from None


def printable(bytestr: AnyBytes, replace: str = '.') -> str:
    r"""Makes a byte string printable.

    Args:
        bytestr (bytes):
            Source byte string.

        replace (str):
            Replacement for non-printable characters.

    Returns:
        str: Printable ASCII text.

    Examples:
        >>> printable(b':00\x07FF\r')
        ':00.FF.'
    """

    return ''.join(chr(c) if 0x20 <= c < 0x7F else replace for c in bytestr)


def read_chunks(stream: IO, size: int) -> Iterator[bytes]:
    r"""Reads a stream in chunks.

    Each chunk is exactly `size` bytes long, except the last one, which can
    be shorter. Short reads by the underlying stream are completed before
    yielding. No empty chunk is ever yielded.

    Args:
        stream (bytes IO):
            Byte stream to read.

        size (int):
            Chunk size.

    Yields:
        bytes: Chunk of data.
    """

    size = int(size)
    if size <= 0:
        raise ValueError('non-positive size')

    while True:
        chunk = stream.read(size)
        if not chunk:
            return

        while len(chunk) < size:
            more = stream.read(size - len(chunk))
            if not more:
                break
            chunk += more

        yield bytes(chunk)


def skip_padding(stream: IO, padding: AnyBytes = PADDING_CHARS) -> bool:
    r"""Skips trailing padding characters.

    The first character which is not padding is left unread, by stepping
    back if `stream` is seekable; otherwise it is consumed.

    Args:
        stream (bytes IO):
            Byte stream to read.

        padding (bytes):
            Characters considered as padding.

    Returns:
        bool: The end of the stream was reached; false if some other
        character was found.

    Examples:
        >>> import io
        >>> stream = io.BytesIO(b'\r\n\x1A\x1A:00')
        >>> skip_padding(stream)
        False
        >>> stream.read()
        b':00'
    """

    for char in iter_chars(stream):
        if char not in padding:
            if stream.seekable():
                stream.seek(-1, io.SEEK_CUR)
            return False
    return True
