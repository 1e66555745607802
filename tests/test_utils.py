import io
from typing import Any
from typing import Mapping
from typing import Type

import pytest

from cpmhex.utils import PADDING_CHARS
from cpmhex.utils import checksum_ones
from cpmhex.utils import checksum_twos
from cpmhex.utils import hexlify
from cpmhex.utils import iter_chars
from cpmhex.utils import parse_int
from cpmhex.utils import parse_nibble
from cpmhex.utils import printable
from cpmhex.utils import read_chunks
from cpmhex.utils import skip_padding

PARSE_INT_PASS: Mapping[Any, int] = {
    None: None,

    '123': 123,
    ' 123 ': 123,
    '\t123\t': 123,
    '+123': 123,
    '-123': -123,
    ' +123 ': 123,
    ' -123 ': -123,
    ' + 123 ': 123,
    ' - 123 ': -123,

    '0x100': 0x100,
    '0X100': 0x100,
    '100h': 0x100,
    '100H': 0x100,
    '0xDEADBEEF': 0xDEADBEEF,

    '0b101100111000': 0b101100111000,

    '01234567': 0o1234567,
    '0o1234567': 0o1234567,
    '0O1234567': 0o1234567,

    '1k': 2**10,
    '1M': 2**20,

    '1KiB': 2**10,
    '1 mib': 2**20,

    '1 KB': 10**3,
    '1MB': 10**6,

    b'456': 456,
    123: 123,
    135.7: 135,
}

PARSE_INT_FAIL: Mapping[Any, Type[BaseException]] = {
    Ellipsis: TypeError,
    'x': ValueError,
    '0b1h': ValueError,
    '0o1h': ValueError,
    (1,): TypeError,
}


class ShortReadIO(io.BytesIO):

    def read(self, size=-1):
        if size is None or size < 0:
            return super().read(size)
        return super().read(min(size, 3))


def test_checksum_ones():
    assert checksum_ones([]) == 0xFF
    assert checksum_ones([0x03, 0x00, 0x00]) == 0xFC
    assert checksum_ones([0x06, 0x00, 0x00, 0x3E, 0xFF, 0x87]) == 0x35
    assert checksum_ones([0xFF, 0x01]) == 0xFF


def test_checksum_twos():
    assert checksum_twos([]) == 0x00
    assert checksum_twos([0x00, 0x00, 0x00, 0x01]) == 0xFF
    assert checksum_twos([0x03, 0x01, 0x00, 0x00, 0x3E, 0xFF, 0x87]) == 0x38


def test_checksum_twos_sum_zero():
    values = [0x10, 0x01, 0x00, 0x00, *range(0x3E, 0x4E)]
    checksum = checksum_twos(values)
    assert (sum(values) + checksum) & 0xFF == 0


def test_hexlify_doctest():
    assert hexlify(b'\xAA\xBB\xCC') == b'AABBCC'
    assert hexlify(b'\xAA\xBB\xCC', upper=False) == b'aabbcc'
    assert hexlify(b'') == b''


def test_iter_chars():
    stream = io.BytesIO(b':0A\n')
    assert list(iter_chars(stream)) == [0x3A, 0x30, 0x41, 0x0A]
    assert stream.read() == b''


def test_iter_chars_lazy():
    stream = io.BytesIO(b'abc')
    chars = iter_chars(stream)
    assert next(chars) == ord('a')
    assert stream.read() == b'bc'


def test_parse_int_doctest():
    assert parse_int('0x100') == 256
    assert parse_int('100h') == 256
    assert parse_int(None) is None
    assert parse_int(123) == 123


def test_parse_int_fail():
    for value_in, raised_exception in PARSE_INT_FAIL.items():
        with pytest.raises(raised_exception):
            parse_int(value_in)


def test_parse_int_pass():
    for value_in, value_out in PARSE_INT_PASS.items():
        assert parse_int(value_in) == value_out


def test_parse_nibble():
    for value, char in enumerate(b'0123456789ABCDEF'):
        assert parse_nibble(char) == value
    for value, char in enumerate(b'abcdef', 10):
        assert parse_nibble(char) == value


def test_parse_nibble_raises():
    for char in b'gG:/ @\x00\r\n\x7F':
        with pytest.raises(ValueError, match='invalid hex digit'):
            parse_nibble(char)
    with pytest.raises(ValueError, match='invalid hex digit'):
        parse_nibble(0x130)


def test_printable():
    assert printable(b':00000001FF') == ':00000001FF'
    assert printable(b':00\x07FF\r') == ':00.FF.'
    assert printable(b'\x00\xFF', replace='?') == '??'


def test_read_chunks():
    chunks = list(read_chunks(io.BytesIO(bytes(range(40))), 16))
    assert chunks == [bytes(range(0, 16)), bytes(range(16, 32)), bytes(range(32, 40))]


def test_read_chunks_empty():
    assert list(read_chunks(io.BytesIO(b''), 16)) == []


def test_read_chunks_exact():
    chunks = list(read_chunks(io.BytesIO(bytes(32)), 16))
    assert chunks == [bytes(16), bytes(16)]


def test_read_chunks_short_reads():
    chunks = list(read_chunks(ShortReadIO(bytes(range(20))), 16))
    assert chunks == [bytes(range(0, 16)), bytes(range(16, 20))]


def test_read_chunks_raises():
    with pytest.raises(ValueError, match='non-positive size'):
        list(read_chunks(io.BytesIO(b'abc'), 0))


def test_skip_padding():
    stream = io.BytesIO(b' \t\r\n\x00\x1A\x1A\x1A')
    assert skip_padding(stream) is True
    assert stream.read() == b''


def test_skip_padding_empty():
    assert skip_padding(io.BytesIO(b'')) is True


def test_skip_padding_garbage():
    stream = io.BytesIO(b'\r\n\x1AXYZ')
    assert skip_padding(stream) is False
    assert stream.read() == b'XYZ'


def test_skip_padding_garbage_unseekable():
    class UnseekableIO(io.BytesIO):
        def seekable(self):
            return False

    stream = UnseekableIO(b'\r\n\x1AXYZ')
    assert skip_padding(stream) is False
    assert stream.read() == b'YZ'


def test_skip_padding_custom():
    assert skip_padding(io.BytesIO(b'...'), padding=b'.') is True
    assert skip_padding(io.BytesIO(b'\r\n'), padding=b'.') is False
    assert b'\x1A' in PADDING_CHARS
