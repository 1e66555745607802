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

r"""Decoding outcomes.

Decoding never raises for an invalid record: each record gets its own
:class:`RecordOutcome`, collected in order by a :class:`DecodeReport`.
"""

import enum
import sys
from typing import IO
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Optional

import colorama

from .utils import AnyBytes
from .utils import printable


class RecordStatus(enum.Enum):
    r"""Record decoding status."""

    OK = 'ok'
    r"""Valid record."""

    CHECKSUM_MISMATCH = 'checksum'
    r"""The transmitted checksum does not match the record contents."""

    MALFORMED_DIGIT = 'digit'
    r"""A field contains a character which is not a hexadecimal digit."""

    PREMATURE_END = 'premature'
    r"""The line ends before the checksum field."""

    UNEXPECTED_DATA = 'extra'
    r"""Something follows the checksum field on the same line."""


STATUS_LABELS: Mapping[RecordStatus, str] = {
    RecordStatus.OK: 'Ok',
    RecordStatus.CHECKSUM_MISMATCH: 'Checksum error',
    RecordStatus.MALFORMED_DIGIT: 'Malformed digit',
    RecordStatus.PREMATURE_END: 'Premature end of record',
    RecordStatus.UNEXPECTED_DATA: 'Unexpected extra data',
}
r"""Human readable status labels."""

STATUS_COLOR_CODES: Mapping[bool, str] = {
    True: colorama.Fore.GREEN,
    False: colorama.Fore.RED,
}
r"""ANSI color codes for valid and invalid record labels."""


class RecordOutcome:
    r"""Outcome of a decoded record.

    Attributes:
        status (:class:`RecordStatus`):
            Decoding status.

        lineno (int):
            Line number where the record starts, counting from 1.

        text (bytes):
            Characters of the record, as read.

        address (int):
            Address field; ``None`` if not decoded.

        count (int):
            Count field; ``None`` if not decoded.

        tag (int):
            Record type field; ``None`` if not decoded.

        data (bytes):
            Decoded data bytes; empty unless the record is complete.

        expected (int):
            Checksum computed from the record contents; ``None`` if not
            decoded.

        actual (int):
            Transmitted checksum; ``None`` if not decoded.
    """

    def __eq__(self, other: 'RecordOutcome') -> bool:

        if not isinstance(other, RecordOutcome):
            return NotImplemented
        return self.get_meta() == other.get_meta()

    def __init__(
        self,
        status: RecordStatus,
        lineno: int = 0,
        text: AnyBytes = b'',
        address: Optional[int] = None,
        count: Optional[int] = None,
        tag: Optional[int] = None,
        data: AnyBytes = b'',
        expected: Optional[int] = None,
        actual: Optional[int] = None,
    ):

        self.status: RecordStatus = status
        self.lineno: int = lineno
        self.text: bytes = bytes(text)
        self.address: Optional[int] = address
        self.count: Optional[int] = count
        self.tag: Optional[int] = tag
        self.data: bytes = bytes(data)
        self.expected: Optional[int] = expected
        self.actual: Optional[int] = actual

    def __repr__(self) -> str:

        meta = self.get_meta()
        text = f'<{self.__class__!s} @0x{id(self):08X} '
        text += ' '.join(f'{key!s}:={value!r}' for key, value in meta.items())
        text += '>'
        return text

    def __str__(self) -> str:

        return self.format()

    def format(self, color: bool = False) -> str:
        r"""Formats the outcome as a line of text.

        The record text is echoed, followed by the status label, as the
        CP/M ``LOAD`` command does.

        Args:
            color (bool):
                The status label is colorized.

        Returns:
            str: Formatted outcome.

        Examples:
            >>> from cpmhex.report import RecordOutcome, RecordStatus
            >>> outcome = RecordOutcome(RecordStatus.OK, 1, b':00000001FF\n')
            >>> outcome.format()
            ':00000001FF - Ok'
            >>> outcome = RecordOutcome(RecordStatus.CHECKSUM_MISMATCH, 2,
            ...                         b':00000001FE', expected=0xFF, actual=0xFE)
            >>> outcome.format()
            ':00000001FE - Checksum error (expected FF)'
        """

        label = STATUS_LABELS[self.status]
        if self.status == RecordStatus.CHECKSUM_MISMATCH:
            label += f' (expected {self.expected:02X})'
        if color:
            label = f'{STATUS_COLOR_CODES[self.ok]}{label}{colorama.Style.RESET_ALL}'

        text = printable(self.text.rstrip())
        return f'{text} - {label}'

    def get_meta(self) -> Mapping[str, object]:
        r"""Gets meta information.

        Returns:
            dict: Attribute values.
        """

        return {
            'status': self.status,
            'lineno': self.lineno,
            'text': self.text,
            'address': self.address,
            'count': self.count,
            'tag': self.tag,
            'data': self.data,
            'expected': self.expected,
            'actual': self.actual,
        }

    @property
    def ok(self) -> bool:
        r"""bool: The record is valid."""

        return self.status == RecordStatus.OK


class DecodeReport:
    r"""Report of a decoding pass.

    Attributes:
        outcomes (list of :class:`RecordOutcome`):
            Outcome of each record, in stream order.

        consumed (bool):
            The input stream was read up to its end.

        terminated (bool):
            A valid termination record was found.

        written (int):
            Number of bytes written to the output stream.
    """

    def __init__(self):

        self.outcomes: List[RecordOutcome] = []
        self.consumed: bool = False
        self.terminated: bool = False
        self.written: int = 0

    def __iter__(self) -> Iterator[RecordOutcome]:

        yield from self.outcomes

    def __len__(self) -> int:

        return len(self.outcomes)

    def append(self, outcome: RecordOutcome) -> None:
        r"""Appends a record outcome.

        Args:
            outcome (:class:`RecordOutcome`):
                Record outcome to append.
        """

        self.outcomes.append(outcome)

    @property
    def errors(self) -> List[RecordOutcome]:
        r"""list of :class:`RecordOutcome`: Outcomes of invalid records."""

        return [outcome for outcome in self.outcomes if not outcome.ok]

    def format_lines(self, color: bool = False) -> List[str]:
        r"""Formats each outcome as a line of text.

        Args:
            color (bool):
                Status labels are colorized.

        Returns:
            list of str: Formatted outcomes, without line terminators.
        """

        return [outcome.format(color=color) for outcome in self.outcomes]

    @property
    def ok(self) -> bool:
        r"""bool: All the records are valid."""

        return all(outcome.ok for outcome in self.outcomes)

    def print(
        self,
        stream: Optional[IO] = None,
        color: bool = False,
    ) -> None:
        r"""Prints the outcomes.

        Args:
            stream (text IO):
                The text stream where the outcomes are printed.
                If ``None``, *stdout* is selected.

            color (bool):
                Status labels are colorized.
        """

        if stream is None:
            stream = sys.stdout
        for line in self.format_lines(color=color):
            stream.write(line + '\n')

    @property
    def statuses(self) -> List[RecordStatus]:
        r"""list of :class:`RecordStatus`: Status of each record."""

        return [outcome.status for outcome in self.outcomes]

    def summary(self) -> str:
        r"""Summarizes the report.

        Returns:
            str: One line summary.

        Examples:
            >>> from cpmhex.report import DecodeReport
            >>> DecodeReport().summary()
            '0 records, 0 errors, 0 bytes written, missing end of file record'
        """

        text = f'{len(self.outcomes)} records, {len(self.errors)} errors, {self.written} bytes written'
        if not self.terminated:
            text += ', missing end of file record'
        return text
