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

r"""Intel HEX format, 8-bit flavor.

Only *data* and *End Of File* records are supported, with 16-bit addresses,
as written and read by the CP/M-80 ``UNLOAD`` and ``LOAD`` commands.

See Also:
    `<https://en.wikipedia.org/wiki/Intel_HEX>`_
"""

import enum
import logging
from typing import IO
from typing import Any
from typing import Mapping
from typing import Optional
from typing import Sequence
from typing import Type
from typing import TypeVar
from typing import cast as _cast

from ..base import AnyBytes
from ..base import BaseFile
from ..base import BaseRecord
from ..base import BaseTag
from ..base import TypeAlias
from ..report import DecodeReport
from ..report import RecordOutcome
from ..report import RecordStatus
from ..utils import checksum_twos
from ..utils import hexlify
from ..utils import iter_chars
from ..utils import parse_nibble
from ..utils import skip_padding

try:
    from typing import Self
except ImportError:  # pragma: no cover
    Self: TypeAlias = Any  # Python < 3.11
__TYPING_HAS_SELF = Self is not Any

logger = logging.getLogger(__name__)

BLANKS: bytes = b' \t'
LINE_ENDS: bytes = b'\r\n'
NUL: int = 0x00
START: int = ord(':')


class IhexTag(BaseTag, enum.IntEnum):
    r"""Intel HEX tag."""

    DATA = 0
    r"""Binary data."""

    END_OF_FILE = 1
    r"""End Of File."""

    _DATA = DATA

    def is_data(self) -> bool:

        return self == self.DATA

    def is_eof(self) -> bool:
        r"""Tells whether this is an End Of File record tag.

        Returns:
            bool: This is an End Of File record tag.

        Examples:
            >>> from cpmhex import IhexFile
            >>> IhexTag = IhexFile.Record.Tag
            >>> IhexTag.END_OF_FILE.is_eof()
            True
            >>> IhexTag.DATA.is_eof()
            False
        """

        return self == self.END_OF_FILE

    def is_file_termination(self) -> bool:

        return self.is_eof()


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='IhexRecord')


class IhexRecord(BaseRecord):
    r"""Intel HEX record object."""

    Tag: Type[IhexTag] = IhexTag

    def compute_checksum(self) -> int:

        if self.count is None:
            raise ValueError('missing count')

        count = self.count & 0xFF
        address = self.address & 0xFFFF
        tag = _cast(IhexTag, self.tag) & 0xFF
        return checksum_twos((count, address >> 8, address & 0xFF, tag, *self.data))

    def compute_count(self) -> int:

        return len(self.data)

    def compute_legacy_checksum(self) -> int:
        r"""Computes the checksum field value, without the record tag.

        Some historical tools, like early releases of the CP/M-80 ``UNLOAD``
        command, leave the record tag out of the checksum.
        This makes a difference only for the *End Of File* record, as the
        *data* tag is zero.

        Returns:
            int: Computed checksum value.

        Examples:
            >>> from cpmhex import IhexFile
            >>> record = IhexFile.Record.create_end_of_file()
            >>> record.compute_checksum()
            255
            >>> record.compute_legacy_checksum()
            0
        """

        if self.count is None:
            raise ValueError('missing count')

        count = self.count & 0xFF
        address = self.address & 0xFFFF
        return checksum_twos((count, address >> 8, address & 0xFF, *self.data))

    @classmethod
    def create_data(
        cls,
        address: int,
        data: AnyBytes,
    ) -> Self:
        r"""Creates a data record.

        Args:
            address (int):
                Record address.

            data (bytes):
                Record byte data.

        Returns:
            :class:`IhexRecord`: Data record object.

        Examples:
            >>> from cpmhex import IhexFile
            >>> record = IhexFile.Record.create_data(0x0100, b'\x3E\xFF\x87')
            >>> str(record)
            ':030100003EFF8738\n'
        """

        address = address.__index__()
        if not 0 <= address <= 0xFFFF:
            raise ValueError('address overflow')

        size = len(data)
        if size > 0xFF:
            raise ValueError('data size overflow')

        record = cls(cls.Tag.DATA, address=address, data=data)
        return record

    @classmethod
    def create_end_of_file(cls) -> Self:
        r"""Creates an End Of File record.

        Returns:
            :class:`IhexRecord`: End Of File record object.

        Examples:
            >>> from cpmhex import IhexFile
            >>> record = IhexFile.Record.create_end_of_file()
            >>> str(record)
            ':00000001FF\n'
        """

        record = cls(cls.Tag.END_OF_FILE)
        return record

    @classmethod
    def create_terminator(cls, address: int = 0) -> Self:
        r"""Creates the record terminating a file.

        The *End Of File* record address is always zero, regardless of
        `address`.

        Args:
            address (int):
                Ignored.

        Returns:
            :class:`IhexRecord`: End Of File record object.
        """

        return cls.create_end_of_file()

    def is_checksum_valid(self, legacy: bool = True) -> bool:
        r"""Tells whether the checksum field is valid.

        Args:
            legacy (bool):
                An *End Of File* record is also valid with the checksum
                computed without the record tag
                (see :meth:`compute_legacy_checksum`).

        Returns:
            bool: The checksum field is valid.

        Examples:
            >>> from cpmhex import IhexFile
            >>> Tag = IhexFile.Record.Tag
            >>> record = IhexFile.Record(Tag.END_OF_FILE, checksum=0x00)
            >>> record.is_checksum_valid()
            True
            >>> record.is_checksum_valid(legacy=False)
            False
        """

        if self.checksum == self.compute_checksum():
            return True

        if legacy and _cast(IhexTag, self.tag) == IhexTag.END_OF_FILE:
            return self.checksum == self.compute_legacy_checksum()

        return False

    def to_bytestr(self, end: AnyBytes = b'\n') -> bytes:

        self.validate(checksum=False, count=False)

        bytestr = b':%02X%04X%02X%s%02X%s' % (
            (self.count or 0) & 0xFF,
            self.address & 0xFFFF,
            _cast(IhexTag, self.tag) & 0xFF,
            hexlify(self.data),
            (self.checksum or 0) & 0xFF,
            end,
        )
        return bytestr

    def to_tokens(self, end: AnyBytes = b'\n') -> Mapping[str, bytes]:

        self.validate(checksum=False, count=False)
        return {
            'begin': b':',
            'count': b'%02X' % ((self.count or 0) & 0xFF),
            'address': b'%04X' % (self.address & 0xFFFF),
            'tag': b'%02X' % (_cast(IhexTag, self.tag) & 0xFF),
            'data': hexlify(self.data),
            'checksum': b'%02X' % ((self.checksum or 0) & 0xFF),
            'end': end,
        }

    def validate(
        self,
        checksum: bool = True,
        count: bool = True,
        legacy: bool = True,
    ) -> Self:
        r"""Validates consistency of attribute values.

        Args:
            checksum (bool):
                Check the consistency of the :attr:`checksum` attribute.

            count (bool):
                Check the consistency of the :attr:`count` attribute.

            legacy (bool):
                Accept the legacy *End Of File* checksum
                (see :meth:`is_checksum_valid`).

        Returns:
            :class:`IhexRecord`: *self*.

        Raises:
            ValueError: Some targeted attributes are inconsistent.

        Examples:
            >>> from cpmhex import IhexFile
            >>> record = IhexFile.Record.create_end_of_file()
            >>> _ = record.validate()
            >>> record.data = b'abc'
            >>> _ = record.update_count().update_checksum().validate()
            Traceback (most recent call last):
                ...
            ValueError: unexpected data
        """

        super().validate(checksum=False, count=count)

        if checksum and self.checksum is not None and self.count is not None:
            if not self.is_checksum_valid(legacy=legacy):
                raise ValueError('wrong checksum')

        if len(self.data) > 0xFF:
            raise ValueError('data size overflow')

        tag = _cast(IhexTag, self.tag)
        if tag.is_eof() and self.data:
            raise ValueError('unexpected data')

        return self


class IhexState(enum.IntEnum):
    r"""Intel HEX record scanner state.

    Each state but :attr:`SEEK_START` and :attr:`TRAILER` accumulates a
    record field, in positional order.
    """

    SEEK_START = 0
    r"""Waiting for ``:`` at the start of a line."""

    COUNT = 1
    r"""Accumulating the count field (2 digits)."""

    ADDRESS = 2
    r"""Accumulating the address field (4 digits)."""

    TAG = 3
    r"""Accumulating the record type field (2 digits)."""

    DATA = 4
    r"""Accumulating data bytes, then the checksum (2 digits each)."""

    TRAILER = 5
    r"""Checksum read, waiting for the end of the line."""


FIELD_DIGITS: Mapping[IhexState, int] = {
    IhexState.COUNT: 2,
    IhexState.ADDRESS: 4,
    IhexState.TAG: 2,
    IhexState.DATA: 2,
}
r"""Number of hexadecimal digits per field."""


class IhexAccumulator:
    r"""Intel HEX record accumulator.

    This is the character-level state machine decoding a record stream.
    It finds record boundaries, accumulates hexadecimal digits into the
    record fields, and validates each record as soon as its line ends.

    A record starts with ``:`` right after a line break, or at the very start
    of the stream.
    Any character which is not a hexadecimal digit within the record fields
    invalidates the record; scanning resumes at the next record start.

    Characters are fed one at a time via :meth:`feed`; the end of the stream
    is signaled via :meth:`finish`.
    Both return a :class:`RecordOutcome` whenever a record is complete.

    Args:
        legacy (bool):
            Accept *End Of File* records with the checksum computed without
            the record tag.

    Attributes:
        state (:class:`IhexState`):
            Current state.

        lineno (int):
            Current line number, counting from 1.

        last (int):
            Last character fed, except for NUL characters leading a line.
    """

    Record: Type[IhexRecord] = IhexRecord
    r"""Record type, owning the checksum rules."""

    def __init__(self, legacy: bool = True):

        self.legacy: bool = legacy
        self.state: IhexState = IhexState.SEEK_START
        self.lineno: int = 1
        self.last: int = LINE_ENDS[-1]

        self.address: int = 0
        self.count: int = 0
        self.tag: int = 0
        self.remaining: int = 0
        self.actual: Optional[int] = None
        self.data: bytearray = bytearray()
        self.text: bytearray = bytearray()
        self.extra: bool = False
        self.start_lineno: int = 0
        self._value: int = 0
        self._digits: int = 0

    def _close_field(self) -> None:

        state = self.state
        value = self._value
        self._value = 0
        self._digits = 0

        if state == IhexState.COUNT:
            self.count = value
            self.remaining = value
            self.state = IhexState.ADDRESS

        elif state == IhexState.ADDRESS:
            self.address = value
            self.state = IhexState.TAG

        elif state == IhexState.TAG:
            self.tag = value
            self.state = IhexState.DATA

        elif self.remaining:
            self.data.append(value)
            self.remaining -= 1

        else:
            self.actual = value
            self.state = IhexState.TRAILER

    def _fail(self, status: RecordStatus) -> RecordOutcome:

        state = self.state
        outcome = RecordOutcome(
            status,
            lineno=self.start_lineno,
            text=self.text,
            count=(self.count if state > IhexState.COUNT else None),
            address=(self.address if state > IhexState.ADDRESS else None),
            tag=(self.tag if state > IhexState.TAG else None),
        )
        self.state = IhexState.SEEK_START
        return outcome

    def _validate(self) -> RecordOutcome:

        record = self.to_record()
        expected = record.compute_checksum()
        actual = self.actual

        if self.extra:
            status = RecordStatus.UNEXPECTED_DATA

        elif record.is_checksum_valid(legacy=self.legacy):
            if actual != expected:
                logger.debug(f'line {self.start_lineno}: legacy end of file checksum')
            status = RecordStatus.OK

        else:
            status = RecordStatus.CHECKSUM_MISMATCH

        outcome = RecordOutcome(
            status,
            lineno=self.start_lineno,
            text=self.text,
            count=self.count,
            address=self.address,
            tag=self.tag,
            data=self.data,
            expected=expected,
            actual=actual,
        )
        self.state = IhexState.SEEK_START
        return outcome

    def feed(self, char: int) -> Optional[RecordOutcome]:
        r"""Feeds a character.

        Args:
            char (int):
                Character code.

        Returns:
            :class:`RecordOutcome`: Outcome of the record completed by
            `char`; ``None`` if no record was completed.

        Examples:
            >>> from cpmhex.formats.ihex import IhexAccumulator
            >>> accumulator = IhexAccumulator()
            >>> outcomes = [accumulator.feed(c) for c in b':00000001FF\n']
            >>> outcomes[-1].status
            <RecordStatus.OK: 'ok'>
            >>> accumulator.feed(ord(':')) is None
            True
            >>> accumulator.state
            <IhexState.COUNT: 1>
        """

        outcome = None
        state = self.state

        if char in LINE_ENDS:
            outcome = self.finish()
            if char == LINE_ENDS[-1]:
                self.lineno += 1

        elif state == IhexState.SEEK_START:
            if char == START and self.last in LINE_ENDS:
                self.reset()
                self.text.append(char)
                self.state = IhexState.COUNT

        elif state == IhexState.TRAILER:
            if char not in BLANKS and not self.extra:
                self.text.append(char)
                self.extra = True

        else:
            self.text.append(char)
            try:
                nibble = parse_nibble(char)
            except ValueError:
                outcome = self._fail(RecordStatus.MALFORMED_DIGIT)
            else:
                self._value = (self._value << 4) | nibble
                self._digits += 1
                if self._digits == FIELD_DIGITS[state]:
                    self._close_field()

        if char != NUL or self.last not in LINE_ENDS:
            self.last = char

        return outcome

    def finish(self) -> Optional[RecordOutcome]:
        r"""Terminates the current record.

        This is called by :meth:`feed` at each line break, and should be
        called by the user at the end of the stream.

        Returns:
            :class:`RecordOutcome`: Outcome of the pending record; ``None`` if
            no record was pending.
        """

        state = self.state

        if state == IhexState.SEEK_START:
            return None

        if state == IhexState.TRAILER:
            return self._validate()

        return self._fail(RecordStatus.PREMATURE_END)

    def reset(self) -> None:
        r"""Resets the record fields."""

        self.address = 0
        self.count = 0
        self.tag = 0
        self.remaining = 0
        self.actual = None
        self.data = bytearray()
        self.text = bytearray()
        self.extra = False
        self.start_lineno = self.lineno
        self._value = 0
        self._digits = 0

    def to_record(self) -> IhexRecord:
        r"""Builds a record object from the accumulated fields.

        The record is not validated; its checksum is the one read from the
        stream, if any.
        Unsupported record types are kept as plain integers.

        Returns:
            :class:`IhexRecord`: Accumulated record.

        Examples:
            >>> from cpmhex.formats.ihex import IhexAccumulator
            >>> accumulator = IhexAccumulator()
            >>> _ = [accumulator.feed(c) for c in b':030100003EFF8737']
            >>> record = accumulator.to_record()
            >>> record.checksum, record.compute_checksum()
            (55, 56)
        """

        try:
            tag = self.Record.Tag(self.tag)
        except ValueError:
            tag = self.tag

        record = self.Record(tag,
                             address=self.address,
                             data=bytes(self.data),
                             count=self.count,
                             checksum=self.actual,
                             validate=False)
        return record


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='IhexFile')


class IhexFile(BaseFile):
    r"""Intel HEX file object."""

    Accumulator: Type[IhexAccumulator] = IhexAccumulator
    r"""Record accumulator type."""

    DEFAULT_ADDRESS: int = 0x0100
    r"""Default base address, where CP/M-80 loads programs."""

    FILE_EXT: Sequence[str] = [
        # https://en.wikipedia.org/wiki/Intel_HEX
        '.hex', '.ihex', '.ihe', '.ihx',
        # Platform specific:
        '.h80',
    ]

    MAX_DATALEN: int = 0xFF

    Record: Type[IhexRecord] = IhexRecord

    @classmethod
    def _commit(
        cls,
        outcome: RecordOutcome,
        writer: IO,
        report: DecodeReport,
        address: int,
        fill: Optional[int],
    ) -> None:

        report.append(outcome)
        lineno = outcome.lineno

        if not outcome.ok:
            logger.info(f'line {lineno}: {outcome}')
            return

        logger.debug(f'line {lineno}: {outcome}')
        tag = outcome.tag
        data = outcome.data

        if tag == IhexTag.DATA:
            if not data:
                # CP/M-80 ASM ends its files with a zero-length data record
                report.terminated = True
                return

            offset = address + report.written
            if outcome.address != offset & 0xFFFF:
                if fill is not None and outcome.address > offset:
                    gap = outcome.address - offset
                    writer.write(bytes([fill]) * gap)
                    report.written += gap
                else:
                    logger.debug(f'line {lineno}: address 0x{outcome.address:04X} '
                                 f'appended at 0x{offset:04X}')

            writer.write(data)
            report.written += len(data)

        elif tag == IhexTag.END_OF_FILE:
            report.terminated = True

        else:
            logger.info(f'line {lineno}: unsupported record type 0x{tag:02X} ignored')

    @classmethod
    def decode(
        cls,
        reader: IO,
        writer: IO,
        address: Optional[int] = None,
        fill: Optional[int] = None,
        legacy: bool = True,
    ) -> DecodeReport:
        r"""Decodes records into binary data.

        The `reader` stream is scanned for records, one character at a time.
        Each record is validated on its own: an invalid record is reported,
        then scanning resumes with the next one.

        The data of each valid *data* record is written to `writer` as soon
        as the record is validated, in stream order.
        Invalid records write nothing.

        Decoding stops after the first valid *End Of File* record (or
        zero-length *data* record).
        Any trailing padding (blanks, line breaks, NUL, ``^Z``) is skipped;
        anything else is left unread if `reader` is seekable.

        Args:
            reader (bytes IO):
                Input record stream.

            writer (bytes IO):
                Output binary stream.

            address (int):
                Address of the first byte of the output stream.
                If ``None``, :attr:`DEFAULT_ADDRESS` is used.

            fill (int):
                If not ``None``, a *data* record starting beyond the current
                output address is preceded by this byte value, up to its
                address.

            legacy (bool):
                Accept *End Of File* records with the checksum computed
                without the record tag.

        Returns:
            :class:`DecodeReport`: Outcome of each record.

        Raises:
            ValueError: Invalid `address` or `fill`.

        Examples:
            >>> import io
            >>> from cpmhex import IhexFile
            >>> reader = io.BytesIO(b':030100003EFF8738\n:00000001FF\n')
            >>> writer = io.BytesIO()
            >>> report = IhexFile.decode(reader, writer)
            >>> writer.getvalue()
            b'>\xff\x87'
            >>> report.statuses
            [<RecordStatus.OK: 'ok'>, <RecordStatus.OK: 'ok'>]
        """

        if address is None:
            address = cls.DEFAULT_ADDRESS
        address = address.__index__()
        if not 0 <= address <= 0xFFFF:
            raise ValueError('address overflow')

        if fill is not None:
            fill = fill.__index__()
            if not 0 <= fill <= 0xFF:
                raise ValueError('invalid fill byte')

        report = DecodeReport()
        accumulator = cls.Accumulator(legacy=legacy)

        for char in iter_chars(reader):
            outcome = accumulator.feed(char)
            if outcome is not None:
                cls._commit(outcome, writer, report, address, fill)
                if report.terminated:
                    break

        if report.terminated:
            report.consumed = skip_padding(reader)
            if not report.consumed:
                logger.info(f'line {accumulator.lineno}: data after end of file ignored')
        else:
            outcome = accumulator.finish()
            if outcome is not None:
                cls._commit(outcome, writer, report, address, fill)
            report.consumed = True

        writer.flush()
        logger.debug(f'decoded {len(report)} records, {len(report.errors)} errors, '
                     f'{report.written} bytes written')
        return report
