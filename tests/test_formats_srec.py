import binascii
import io
import os
from pathlib import Path

import pytest
from test_base import BaseTestFile
from test_base import BaseTestRecord
from test_base import BaseTestTag

from cpmhex.formats.srec import SrecFile
from cpmhex.formats.srec import SrecRecord
from cpmhex.formats.srec import SrecTag


@pytest.fixture
def tmppath(tmpdir):  # pragma: no cover
    return Path(str(tmpdir))


@pytest.fixture(scope='module')
def datadir(request):
    dir_path, _ = os.path.splitext(request.module.__file__)
    assert os.path.isdir(str(dir_path))
    return dir_path


@pytest.fixture
def datapath(datadir):
    return Path(str(datadir))


def read_bytes(path) -> bytes:
    with open(str(path), 'rb') as stream:
        return stream.read()


class TestSrecTag(BaseTestTag):

    Tag = SrecTag

    def test_enum(self):
        assert SrecTag.DATA_16 == 1
        assert SrecTag.START_16 == 9
        assert SrecTag._DATA is SrecTag.DATA_16

    def test_is_data(self):
        DATA_TAGS = [SrecTag.DATA_16]
        for tag in SrecTag:
            assert tag.is_data() == (tag in DATA_TAGS)

    def test_is_file_termination(self):
        TERMINATORS = [SrecTag.START_16]
        for tag in SrecTag:
            assert tag.is_file_termination() == (tag in TERMINATORS)


class TestSrecRecord(BaseTestRecord):

    Record = SrecRecord

    def test_compute_checksum(self):
        vector = [
            (0x35, SrecRecord.create_data(0x0000, b'\x3E\xFF\x87')),
            (0x34, SrecRecord.create_data(0x0100, b'\x3E\xFF\x87')),
            (0xFC, SrecRecord.create_start(0x0000)),
            (0xFB, SrecRecord.create_start(0x0100)),
        ]
        for expected, record in vector:
            assert record.compute_checksum() == expected

    def test_compute_checksum_sum(self):
        record = SrecRecord.create_data(0xABCD, bytes(range(0x80, 0x90)))
        values = binascii.unhexlify(record.to_bytestr(end=b'')[2:])
        assert sum(values) & 0xFF == 0xFF

    def test_compute_checksum_raises(self):
        record = SrecRecord(SrecTag.DATA_16, count=None, checksum=None)
        with pytest.raises(ValueError, match='missing count'):
            record.compute_checksum()

    def test_compute_count(self):
        assert SrecRecord.create_data(0, b'').compute_count() == 3
        assert SrecRecord.create_data(0, b'abc').compute_count() == 6
        assert SrecRecord.create_start(0).compute_count() == 3

    def test_create_data(self):
        record = SrecRecord.create_data(0x0100, b'\x3E\xFF\x87')
        assert record.tag == SrecTag.DATA_16
        assert record.address == 0x0100
        assert record.data == b'\x3E\xFF\x87'
        assert record.count == 6
        assert record.checksum == 0x34

    def test_create_data_raises_address(self):
        with pytest.raises(ValueError, match='address overflow'):
            SrecRecord.create_data(-1, b'abc')
        with pytest.raises(ValueError, match='address overflow'):
            SrecRecord.create_data(0x10000, b'abc')

    def test_create_data_raises_size(self):
        SrecRecord.create_data(0, bytes(252))
        with pytest.raises(ValueError, match='data size overflow'):
            SrecRecord.create_data(0, bytes(253))

    def test_create_start(self):
        record = SrecRecord.create_start(0x0100)
        assert record.tag == SrecTag.START_16
        assert record.address == 0x0100
        assert record.data == b''
        assert record.count == 3
        assert record.checksum == 0xFB

    def test_create_start_raises(self):
        with pytest.raises(ValueError, match='address overflow'):
            SrecRecord.create_start(0x10000)

    def test_create_terminator(self):
        assert SrecRecord.create_terminator() == SrecRecord.create_start(0)
        assert SrecRecord.create_terminator(0x1234) == SrecRecord.create_start(0x1234)
        assert bytes(SrecRecord.create_terminator(0x0100)) == b'S9030100FB\n'

    def test_to_bytestr(self):
        record = SrecRecord.create_data(0x0000, b'\x3E\xFF\x87')
        assert record.to_bytestr() == b'S10600003EFF8735\n'
        assert record.to_bytestr(end=b'\r\n') == b'S10600003EFF8735\r\n'
        assert SrecRecord.create_start().to_bytestr() == b'S9030000FC\n'

    def test_to_tokens(self):
        record = SrecRecord.create_data(0x0100, b'\x3E\xFF\x87')
        tokens = record.to_tokens()
        assert tokens == {
            'begin': b'S',
            'tag': b'1',
            'count': b'06',
            'address': b'0100',
            'data': b'3EFF87',
            'checksum': b'34',
            'end': b'\n',
        }
        assert list(tokens.keys()) == ['begin', 'tag', 'count', 'address', 'data', 'checksum', 'end']

    def test_validate_raises_data_start(self):
        with pytest.raises(ValueError, match='unexpected data'):
            SrecRecord(SrecTag.START_16, data=b'abc')

    def test_validate_raises_data_size(self):
        record = SrecRecord(SrecTag.DATA_16, data=bytes(253), count=None, checksum=None,
                            validate=False)
        with pytest.raises(ValueError, match='data size overflow'):
            record.validate(count=False, checksum=False)


class TestSrecFile(BaseTestFile):

    File = SrecFile

    def test_attributes(self):
        assert SrecFile.DEFAULT_ADDRESS == 0x0000
        assert SrecFile.DEFAULT_DATALEN == 16
        assert SrecFile.MAX_DATALEN == 252
        assert '.s19' in SrecFile.FILE_EXT
        assert '.hex' not in SrecFile.FILE_EXT
        assert SrecFile.Record is SrecRecord

    def test_encode_example(self):
        actual = self.encode_bytes(b'\x3E\xFF\x87')
        assert actual == b'S10600003EFF8735\nS9030000FC\n'

    def test_encode_example_address(self):
        actual = self.encode_bytes(b'\x3E\xFF\x87', address=0x0100)
        assert actual == b'S10601003EFF8734\nS9030100FB\n'

    def test_encode_empty_start(self):
        assert self.encode_bytes(b'') == b'S9030000FC\n'

    def test_encode_hello(self, datapath):
        data = read_bytes(datapath / 'hello.com')
        actual = self.encode_bytes(data, address=0x0100)
        expected = read_bytes(datapath / 'hello.s19')
        assert actual == expected

    def test_encode_checksum_sums(self):
        actual = self.encode_bytes(bytes(range(256)), address=0x1234, maxdatalen=32)
        lines = actual.splitlines()
        assert len(lines) == 9
        for line in lines[:-1]:
            assert line.startswith(b'S1')
        assert lines[-1].startswith(b'S9')
        for line in lines:
            values = binascii.unhexlify(line[2:])
            assert values[0] == len(values) - 1
            assert sum(values) & 0xFF == 0xFF

    def test_encode_stream(self):
        writer = io.BytesIO()
        size = SrecFile.encode(io.BytesIO(bytes(20)), writer, address=0x8000, maxdatalen=10)
        assert writer.getvalue() == (b'S10D80000000000000000000000072\n'
                                     b'S10D800A0000000000000000000068\n'
                                     b'S90380007C\n')
        assert size == len(writer.getvalue())
