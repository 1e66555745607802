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

r"""Motorola S-record format, 16-bit addresses.

Only *data* records (``S1``) and the *start address* record (``S9``)
terminating them are supported.
This format is write-only.

See Also:
    `<https://en.wikipedia.org/wiki/SREC_(file_format)>`_
"""

import enum
from typing import Any
from typing import Mapping
from typing import Sequence
from typing import Type
from typing import TypeVar
from typing import cast as _cast

from ..base import AnyBytes
from ..base import BaseFile
from ..base import BaseRecord
from ..base import BaseTag
from ..base import TypeAlias
from ..utils import checksum_ones
from ..utils import hexlify

try:
    from typing import Self
except ImportError:  # pragma: no cover
    Self: TypeAlias = Any  # Python < 3.11
__TYPING_HAS_SELF = Self is not Any


class SrecTag(BaseTag, enum.IntEnum):
    r"""Motorola S-record tag."""

    DATA_16 = 1
    r"""16-bit address data record."""

    START_16 = 9
    r"""16-bit start address. Terminates :attr:`DATA_16`."""

    _DATA = DATA_16

    def is_data(self) -> bool:

        return self == self.DATA_16

    def is_file_termination(self) -> bool:

        return self == self.START_16


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='SrecRecord')


class SrecRecord(BaseRecord):
    r"""Motorola S-record record object.

    The count field covers the address, the data, and the checksum; the
    checksum is the one's complement of the sum of the count, address, and
    data bytes.
    """

    Tag: Type[SrecTag] = SrecTag

    def compute_checksum(self) -> int:
        r"""Computes the checksum field value.

        Returns:
            int: Computed checksum value.

        Examples:
            >>> from cpmhex import SrecFile
            >>> record = SrecFile.Record.create_data(0x0000, b'\x3E\xFF\x87')
            >>> hex(record.compute_checksum())
            '0x35'
        """

        if self.count is None:
            raise ValueError('missing count')

        count = self.count & 0xFF
        address = self.address & 0xFFFF
        return checksum_ones((count, address >> 8, address & 0xFF, *self.data))

    def compute_count(self) -> int:

        return len(self.data) + 3

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
            :class:`SrecRecord`: Data record object.

        Examples:
            >>> from cpmhex import SrecFile
            >>> record = SrecFile.Record.create_data(0x0100, b'\x3E\xFF\x87')
            >>> str(record)
            'S10601003EFF8734\n'
        """

        address = address.__index__()
        if not 0 <= address <= 0xFFFF:
            raise ValueError('address overflow')

        if len(data) > 0xFF - 3:
            raise ValueError('data size overflow')

        record = cls(cls.Tag.DATA_16, address=address, data=data)
        return record

    @classmethod
    def create_start(cls, address: int = 0) -> Self:
        r"""Creates a start address record.

        Args:
            address (int):
                Start address.

        Returns:
            :class:`SrecRecord`: Start address record object.

        Examples:
            >>> from cpmhex import SrecFile
            >>> str(SrecFile.Record.create_start())
            'S9030000FC\n'
            >>> str(SrecFile.Record.create_start(0x0100))
            'S9030100FB\n'
        """

        address = address.__index__()
        if not 0 <= address <= 0xFFFF:
            raise ValueError('address overflow')

        record = cls(cls.Tag.START_16, address=address)
        return record

    @classmethod
    def create_terminator(cls, address: int = 0) -> Self:

        return cls.create_start(address)

    def to_bytestr(self, end: AnyBytes = b'\n') -> bytes:

        self.validate(checksum=False, count=False)

        bytestr = b'S%d%02X%04X%s%02X%s' % (
            _cast(SrecTag, self.tag) & 0xF,
            (self.count or 0) & 0xFF,
            self.address & 0xFFFF,
            hexlify(self.data),
            (self.checksum or 0) & 0xFF,
            end,
        )
        return bytestr

    def to_tokens(self, end: AnyBytes = b'\n') -> Mapping[str, bytes]:

        self.validate(checksum=False, count=False)
        return {
            'begin': b'S',
            'tag': b'%d' % (_cast(SrecTag, self.tag) & 0xF),
            'count': b'%02X' % ((self.count or 0) & 0xFF),
            'address': b'%04X' % (self.address & 0xFFFF),
            'data': hexlify(self.data),
            'checksum': b'%02X' % ((self.checksum or 0) & 0xFF),
            'end': end,
        }

    def validate(
        self,
        checksum: bool = True,
        count: bool = True,
    ) -> Self:

        super().validate(checksum=checksum, count=count)

        if len(self.data) > 0xFF - 3:
            raise ValueError('data size overflow')

        tag = _cast(SrecTag, self.tag)
        if tag.is_file_termination() and self.data:
            raise ValueError('unexpected data')

        return self


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='SrecFile')


class SrecFile(BaseFile):
    r"""Motorola S-record file object.

    Examples:
        >>> import io
        >>> from cpmhex import SrecFile
        >>> writer = io.BytesIO()
        >>> _ = SrecFile.encode(io.BytesIO(b'\x3E\xFF\x87'), writer)
        >>> print(writer.getvalue().decode(), end='')
        S10600003EFF8735
        S9030000FC
    """

    DEFAULT_ADDRESS: int = 0x0000

    FILE_EXT: Sequence[str] = [
        # https://en.wikipedia.org/wiki/SREC_(file_format)
        '.s19', '.srec', '.s', '.mot', '.mxt', '.exo', '.sx',
    ]

    MAX_DATALEN: int = 0xFF - 3

    Record: Type[SrecRecord] = SrecRecord
