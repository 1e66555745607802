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

r""" Base types and classes."""

import abc
import enum
import logging
import os
from typing import IO
from typing import TYPE_CHECKING
from typing import Any
from typing import Mapping
from typing import MutableMapping
from typing import Optional
from typing import Sequence
from typing import Type
from typing import TypeVar
from typing import Union
from typing import cast as _cast

import colorama

from .utils import AnyBytes
from .utils import read_chunks

if TYPE_CHECKING:  # pragma: no cover
    from .report import DecodeReport

try:
    from typing import TypeAlias
except ImportError:  # pragma: no cover
    TypeAlias = Any  # Python < 3.10

try:
    from typing import Self
except ImportError:  # pragma: no cover
    Self: TypeAlias = Any  # Python < 3.11
__TYPING_HAS_SELF = Self is not Any

logger = logging.getLogger(__name__)

file_types: MutableMapping[str, Type['BaseFile']] = {}
r"""Registered record file types, by dialect name.

This is an ordered mapping, where the first item has top priority."""

TOKEN_COLOR_CODES: Mapping[str, bytes] = {
    '':         colorama.Style.RESET_ALL.encode(),
    '<':        colorama.Style.RESET_ALL.encode(),
    '>':        colorama.Style.RESET_ALL.encode(),
    'address':  colorama.Fore.RED.encode(),
    'begin':    colorama.Fore.YELLOW.encode(),
    'checksum': colorama.Fore.MAGENTA.encode(),
    'count':    colorama.Fore.BLUE.encode(),
    'data':     colorama.Fore.CYAN.encode(),
    'dataalt':  colorama.Fore.LIGHTCYAN_EX.encode(),
    'end':      colorama.Style.RESET_ALL.encode(),
    'tag':      colorama.Fore.GREEN.encode(),
}
r"""ANSI color codes for each possible token type."""


class Dialect(str, enum.Enum):
    r"""Record file dialect.

    The dialect selects the record syntax, the checksum rule, and the default
    base address.
    Each dialect is served by the record file type registered with the same
    name into :data:`file_types`.
    """

    IHEX = 'ihex'
    r"""Intel HEX, 8-bit (16-bit addresses)."""

    SREC = 'srec'
    r"""Motorola S-record, 16-bit addresses (``S1`` and ``S9``)."""

    @property
    def file_type(self) -> Type['BaseFile']:
        r"""type: Record file type serving this dialect.

        Examples:
            >>> from cpmhex import Dialect
            >>> Dialect.IHEX.file_type
            <class 'cpmhex.formats.ihex.IhexFile'>
        """

        return file_types[self.value]

    @property
    def default_address(self) -> int:
        r"""int: Default base address.

        Examples:
            >>> from cpmhex import Dialect
            >>> hex(Dialect.IHEX.default_address)
            '0x100'
            >>> hex(Dialect.SREC.default_address)
            '0x0'
        """

        return self.file_type.DEFAULT_ADDRESS


def colorize_tokens(
    tokens: Mapping[str, bytes],
    altdata: bool = True,
) -> Mapping[str, bytes]:
    r"""Prepends ANSI color codes to record field tokens.

    For each token within `tokens`, its key is used to look up the ANSI color
    code from :data:`TOKEN_COLOR_CODES`.
    The retrieved code (byte string) is prepended to the token.
    All the modified tokens are then collected and returned.

    Args:
        tokens (dict):
            A mapping of each token key name to token byte string.

        altdata (bool):
            If true, it alternates each byte (two hex digits) between the ANSI
            color codes mapped with keys ``data`` (even byte index) and
            ``dataalt`` (odd byte index).
            If false, only the ``data`` code is prepended.

    Returns:
        dict: `tokens` with prepended ANSI color codes.
    """

    codes = TOKEN_COLOR_CODES
    colorized = {}
    colorized.setdefault('<', codes['<'])

    for key, value in tokens.items():
        if key not in codes:
            key = ''
        if value:
            code = codes[key]

            if key == 'data' and altdata:
                altcode = codes['dataalt']
                buffer = bytearray()
                length = len(value)
                i = 0

                for i in range(0, length - 1, 2):
                    buffer.extend(altcode if i & 2 else code)
                    buffer.append(value[i])
                    buffer.append(value[i + 1])

                if length & 1:
                    buffer.extend(code if i & 2 else altcode)
                    buffer.append(value[length - 1])

                colorized[key] = bytes(buffer)
            else:
                colorized[key] = code + value

    colorized.setdefault('>', codes['>'])
    return colorized


def decode(
    reader: IO,
    writer: IO,
    address: Optional[int] = None,
    **decode_kwargs: Any,
) -> 'DecodeReport':
    r"""Decodes an Intel HEX record stream into binary data.

    This is a simple helper function forwarding to the Intel HEX file type
    registered into :data:`file_types`.

    Args:
        reader (bytes IO):
            Input record stream.

        writer (bytes IO):
            Output binary stream.

        address (int):
            Base address of the output binary stream.
            If ``None``, the dialect default is used.

        decode_kwargs:
            Forwarded to :meth:`cpmhex.formats.ihex.IhexFile.decode`.

    Returns:
        :class:`cpmhex.report.DecodeReport`: Status of each record.

    Examples:
        >>> import io
        >>> from cpmhex import decode
        >>> writer = io.BytesIO()
        >>> report = decode(io.BytesIO(b':030100003EFF8738\n:00000001FF\n'), writer)
        >>> writer.getvalue()
        b'>\xff\x87'
        >>> report.ok
        True
    """

    file_type = file_types[Dialect.IHEX.value]
    return file_type.decode(reader, writer, address=address, **decode_kwargs)


def encode(
    reader: IO,
    writer: IO,
    dialect: Union[Dialect, str] = Dialect.IHEX,
    address: Optional[int] = None,
    **encode_kwargs: Any,
) -> int:
    r"""Encodes binary data into a record stream.

    This is a simple helper function forwarding to the record file type
    registered into :data:`file_types` for the selected `dialect`.

    Args:
        reader (bytes IO):
            Input binary stream.

        writer (bytes IO):
            Output record stream.

        dialect (:class:`Dialect`):
            Record file dialect.

        address (int):
            Base address of the first data byte.
            If ``None``, the dialect default is used.

        encode_kwargs:
            Forwarded to :meth:`BaseFile.encode`.

    Returns:
        int: Number of bytes written to `writer`.

    Examples:
        >>> import io
        >>> from cpmhex import encode
        >>> writer = io.BytesIO()
        >>> encode(io.BytesIO(b'\x3E\xFF\x87'), writer, 'ihex', 0x0100)
        30
        >>> print(writer.getvalue().decode(), end='')
        :030100003EFF8738
        :00000001FF
    """

    try:
        dialect = Dialect(dialect)
    except ValueError:
        raise ValueError(f'unknown dialect: {dialect!r}') from None

    return dialect.file_type.encode(reader, writer, address=address, **encode_kwargs)


def guess_format_name(file_path: str) -> str:
    r"""Guesses the record format name.

    It analyzes the file extension by `file_path` against all the record
    formats registered into :data:`file_types`.
    The first record format to match the extension within its own
    :attr:`BaseFile.FILE_EXT` is returned.

    Args:
        file_path (str):
            File path to analyze.

    Returns:
        str: Record format registered within :data:`file_types`.

    Raises:
        ValueError: Cannot guess record file format.

    Examples:
        >>> from cpmhex import guess_format_name
        >>> guess_format_name('simple.hex')
        'ihex'
        >>> guess_format_name('SIMPLE.HEX')
        'ihex'
        >>> guess_format_name('simple.s19')
        'srec'
    """

    file_ext = os.path.splitext(file_path)[1].lower()
    names_found = []

    for name in file_types.keys():
        file_type = file_types[name]

        if file_ext in file_type.FILE_EXT:
            names_found.append(name)

    if not names_found:
        raise ValueError(f'extension not found: {file_ext!r}')

    return names_found[0]


class BaseTag:
    r"""Record tag.

    The *record tag* indicates the *nature* of a record.
    The record tag class usually enumerates all the possible natures of a
    record within a *record file format*.
    """

    @abc.abstractmethod
    def is_data(self) -> bool:
        r"""Tells whether this is a data record tag.

        Returns:
            bool: This is a data record tag.
        """
        ...

    # noinspection PyMethodMayBeStatic
    def is_file_termination(self) -> bool:
        r"""Tells whether this is record tag terminates a record file.

        This is usually the case for *End Of File* or *start address* records,
        depending on the specific file *format*.

        Returns:
            bool: This is a file termination tag.
        """

        return False


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='BaseRecord')


class BaseRecord(abc.ABC):
    r"""Record.

    A *record* is a line of text carrying a chunk of binary data in
    hexadecimal representation, the *address* where it is loaded into the
    target system, and some fields for *consistency checks*, such as the
    amount of data within the record (*count*), and its *checksum*.

    Records are transient: the encoder builds one per data chunk, writes it,
    and drops it.

    Attributes:
        tag (:class:`BaseTag`):
            The mandatory *tag*, indicating the *nature* of the record.

        address (int):
            Load address of :attr:`data`, or start address for termination
            records of some formats.

        data (bytes):
            Chunk of binary data.

        count (int):
            Count field, as serialized.

        checksum (int):
            Checksum field, as serialized.

    Args:
        tag (:class:`BaseTag`):
            See :attr:`tag` attribute.

        address (int):
            See :attr:`address` attribute.

        data (bytes):
            See :attr:`data` attribute.

        count (int):
            See :attr:`count` attribute.
            ``Ellipsis`` initializes :attr:`count` via :meth:`compute_count`.
            ``None`` assigns ``None``, skipping further validation.

        checksum (int):
            See :attr:`checksum` attribute.
            ``Ellipsis`` initializes :attr:`checksum` via
            :meth:`compute_checksum`.
            ``None`` assigns ``None``, skipping further validation.

        validate (bool):
            If true, :meth:`validate` is called upon initialization.
    """

    EQUALITY_KEYS: Sequence[str] = [
        'address',
        'checksum',
        'count',
        'data',
        'tag',
    ]
    r"""Meta keys for equality checks."""

    META_KEYS: Sequence[str] = [
        'address',
        'checksum',
        'count',
        'data',
        'tag',
    ]
    r"""Meta keys."""

    Tag: Type[BaseTag] = None  # override
    r"""Tag object type."""

    def __bytes__(self) -> bytes:

        return self.to_bytestr()

    def __eq__(self, other: 'BaseRecord') -> bool:

        return not self != other

    def __init__(
        self,
        tag: BaseTag,
        address: int = 0,
        data: AnyBytes = b'',
        count: Optional[Union[int, type(Ellipsis)]] = Ellipsis,
        checksum: Optional[Union[int, type(Ellipsis)]] = Ellipsis,
        validate: bool = True,
    ):

        self.address: int = address.__index__()
        self.checksum: Optional[int] = None
        self.count: Optional[int] = None
        self.data: AnyBytes = data
        self.tag: BaseTag = tag

        if count is Ellipsis:
            self.update_count()
        elif count is not None:
            self.count = count.__index__()

        if checksum is Ellipsis:
            self.update_checksum()
        elif checksum is not None:
            self.checksum = checksum.__index__()

        if validate:
            _count = count is not None
            _checksum = checksum is not None and _count
            self.validate(checksum=_checksum, count=_count)

    def __ne__(self, other: 'BaseRecord') -> bool:

        for key in self.EQUALITY_KEYS:
            if not hasattr(other, key):
                return True
            self_value = getattr(self, key)
            other_value = getattr(other, key)
            if self_value != other_value:
                return True

        return False

    def __repr__(self) -> str:

        meta = self.get_meta()
        text = f'<{self.__class__!s} @0x{id(self):08X} '
        text += ' '.join(f'{key!s}:={value!r}' for key, value in meta.items())
        text += '>'
        return text

    def __str__(self) -> str:

        return self.to_bytestr().decode()

    @abc.abstractmethod
    def compute_checksum(self) -> int:
        r"""Computes the checksum field value.

        Returns:
            int: Computed checksum value.
        """
        ...

    @abc.abstractmethod
    def compute_count(self) -> int:
        r"""Compute the count field value.

        Returns:
            int: Computed count value.
        """
        ...

    @classmethod
    @abc.abstractmethod
    def create_data(cls, address: int, data: AnyBytes) -> Self:
        r"""Creates a data record.

        Args:
            address (int):
                Record address.

            data (bytes):
                Record byte data.

        Returns:
            :class:`BaseRecord`: Data record object.
        """
        ...

    @classmethod
    @abc.abstractmethod
    def create_terminator(cls, address: int = 0) -> Self:
        r"""Creates the record terminating a file.

        Args:
            address (int):
                Start address, for the formats carrying it.

        Returns:
            :class:`BaseRecord`: Termination record object.
        """
        ...

    def get_meta(self) -> MutableMapping[str, Any]:
        r"""Gets meta information.

        Returns:
             dict: Attribute values listed by :attr:`META_KEYS`.
        """

        meta = {key: getattr(self, key) for key in self.META_KEYS}
        return meta

    def serialize(
        self,
        stream: IO,
        end: AnyBytes = b'\n',
        color: bool = False,
    ) -> int:
        r"""Serializes onto a stream.

        The record is converted into tokens (eventually colorized), then
        joined and written with a single call to ``stream.write``, so that
        no partial line is ever written.

        Args:
            stream (bytes IO):
                Stream to write.

            end (bytes):
                Line termination.

            color (bool):
                Tokens are colorized before writing.

        Returns:
            int: Number of bytes written.

        Examples:
            >>> import io
            >>> from cpmhex import IhexFile
            >>> record = IhexFile.Record.create_data(0x1234, b'abc')
            >>> stream = io.BytesIO()
            >>> record.serialize(stream)
            18
            >>> stream.getvalue()
            b':0312340061626391\n'
        """

        tokens = self.to_tokens(end=end)
        if color:
            tokens = colorize_tokens(tokens)
        line = b''.join(tokens.values())
        stream.write(line)
        return len(line)

    @abc.abstractmethod
    def to_bytestr(self, end: AnyBytes = b'\n') -> bytes:
        r"""Converts into a byte string.

        Args:
            end (bytes):
                Line termination.

        Returns:
            bytes: Byte string representation.
        """
        ...

    @abc.abstractmethod
    def to_tokens(self, end: AnyBytes = b'\n') -> Mapping[str, bytes]:
        r"""Converts into byte string tokens.

        Args:
            end (bytes):
                Line termination.

        Returns:
            bytes: Mapping of token keys to token byte strings.
        """
        ...

    def update_checksum(self) -> Self:
        r"""Updates the checksum field.

        Returns:
            :class:`BaseRecord`: *self*.
        """

        self.checksum = self.compute_checksum()
        return self

    def update_count(self) -> Self:
        r"""Updates the count field.

        Returns:
            :class:`BaseRecord`: *self*.
        """

        self.count = self.compute_count()
        return self

    def validate(
        self,
        checksum: bool = True,
        count: bool = True,
    ) -> Self:
        r"""Validates consistency of attribute values.

        Args:
            checksum (bool):
                Check the consistency of the :attr:`checksum` attribute.

            count (bool):
                Check the consistency of the :attr:`count` attribute.

        Returns:
            :class:`BaseRecord`: *self*.

        Raises:
            ValueError: Some targeted attributes are inconsistent.
        """

        if not 0 <= self.address <= 0xFFFF:
            raise ValueError('address overflow')

        if self.checksum is not None:
            if not 0 <= self.checksum <= 0xFF:
                raise ValueError('checksum overflow')

            if checksum:
                if self.checksum != self.compute_checksum():
                    raise ValueError('wrong checksum')

        if self.count is not None:
            if not 0 <= self.count <= 0xFF:
                raise ValueError('count overflow')

            if count:
                if self.count != self.compute_count():
                    raise ValueError('wrong count')

        TagType = _cast(Any, self.Tag)
        TagType(self.tag)

        return self


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='BaseFile')


class BaseFile(abc.ABC):
    r"""Record file.

    A *record file* is the serialized sequence of *records*
    (:class:`BaseRecord`) carrying some binary data, usually an executable
    program, across systems.

    The :class:`BaseFile` class provides the encoding loop shared by all the
    dialects: the binary stream is split into chunks of :attr:`maxdatalen`
    bytes, each one becoming a *data* record, followed by a single
    *termination* record.
    """

    DEFAULT_ADDRESS: int = 0
    r"""Default base address."""

    DEFAULT_DATALEN: int = 16
    r"""Default maximum data length per record."""

    FILE_EXT: Sequence[str] = []
    r"""File extension(s), lowercase, with the dot."""

    MAX_DATALEN: int = 0xFF
    r"""Maximum data length allowed per record."""

    Record: Type[BaseRecord] = None  # override
    r"""Record object type."""

    @classmethod
    def encode(
        cls,
        reader: IO,
        writer: IO,
        address: Optional[int] = None,
        maxdatalen: Optional[int] = None,
        end: AnyBytes = b'\n',
        color: bool = False,
    ) -> int:
        r"""Encodes binary data into records.

        The `reader` stream is read in chunks of `maxdatalen` bytes, until
        its end; only the last chunk can be shorter.
        Each chunk is written as a *data* record, at the address following
        the previous chunk.
        A single *termination* record is written last.

        Addresses wrap around at 64 KiB.

        Args:
            reader (bytes IO):
                Input binary stream.

            writer (bytes IO):
                Output record stream.

            address (int):
                Address of the first data byte.
                If ``None``, :attr:`DEFAULT_ADDRESS` is used.

            maxdatalen (int):
                Maximum data length per record.
                If ``None``, :attr:`DEFAULT_DATALEN` is used.

            end (bytes):
                Line termination.

            color (bool):
                Records are colorized for terminal display.

        Returns:
            int: Number of bytes written to `writer`.

        Raises:
            ValueError: Invalid `address` or `maxdatalen`.
        """

        if address is None:
            address = cls.DEFAULT_ADDRESS
        address = address.__index__()
        if not 0 <= address <= 0xFFFF:
            raise ValueError('address overflow')

        if maxdatalen is None:
            maxdatalen = cls.DEFAULT_DATALEN
        maxdatalen = maxdatalen.__index__()
        if not 1 <= maxdatalen <= cls.MAX_DATALEN:
            raise ValueError('invalid maximum data length')

        Record = cls.Record
        offset = 0
        size = 0
        count = 0
        wrapped = False

        for chunk in read_chunks(reader, maxdatalen):
            chunk_address = address + offset
            if not wrapped and chunk_address + len(chunk) > 0x10000:
                logger.warning(f'data at offset 0x{offset:X} wraps around to address 0x0000')
                wrapped = True

            record = Record.create_data(chunk_address & 0xFFFF, chunk)
            size += record.serialize(writer, end=end, color=color)
            offset += len(chunk)
            count += 1

        record = Record.create_terminator(address)
        size += record.serialize(writer, end=end, color=color)
        writer.flush()

        logger.debug(f'encoded {offset} bytes into {count + 1} records ({size} bytes)')
        return size
