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

"""
Module that contains the command line app.

Why does this file exist, and why not put this in __main__?

  You might be tempted to import things from __main__ later, but that will cause
  problems: the code will get executed twice:

  - When you run `python -m cpmhex` python will execute
    ``__main__.py`` as a script. That means there won't be any
    ``cpmhex.__main__`` in ``sys.modules``.
  - When you import __main__ it will get executed again (as a module) because
    there's no ``cpmhex.__main__`` in ``sys.modules``.

  Also see (1) from https://click.palletsprojects.com/en/stable/setuptools/#setuptools-integration
"""

import contextlib
import io
import logging
import os
from typing import IO
from typing import Iterator
from typing import Optional
from typing import Sequence

import click

from .__init__ import __version__
from .__init__ import file_types
from .base import Dialect
from .base import decode
from .base import encode
from .base import guess_format_name
from .report import DecodeReport
from .utils import parse_int


class BasedIntParamType(click.ParamType):
    name = 'integer'

    def convert(self, value, param, ctx):
        try:
            return parse_int(value)
        except ValueError:
            self.fail(f'invalid integer: {value!r}', param, ctx)


class ByteIntParamType(click.ParamType):
    name = 'byte'

    def convert(self, value, param, ctx):
        try:
            b = parse_int(value)
            if not 0 <= b <= 0xFF:
                raise ValueError()
            return b
        except ValueError:
            self.fail(f'invalid byte: {value!r}', param, ctx)


class AddressIntParamType(click.ParamType):
    name = 'address'

    def convert(self, value, param, ctx):
        try:
            a = parse_int(value)
            if not 0 <= a <= 0xFFFF:
                raise ValueError()
            return a
        except ValueError:
            self.fail(f'invalid address: {value!r}', param, ctx)


ADDRESS_INT = AddressIntParamType()
BASED_INT = BasedIntParamType()
BYTE_INT = ByteIntParamType()

FILE_PATH_IN = click.Path(dir_okay=False, allow_dash=True, readable=True, exists=True)
FILE_PATH_OUT = click.Path(dir_okay=False, allow_dash=True, writable=True)

DIALECT_CHOICE = click.Choice(list(sorted(file_types.keys())))

LOAD_INPUT_EXT: str = '.hex'
LOAD_OUTPUT_EXT: str = '.com'


# ----------------------------------------------------------------------------

def derive_output_path(input_path: str) -> str:
    r"""Derives the binary file path from the record file path.

    The ``.hex`` extension (case insensitive) is replaced by ``.com``, as the
    CP/M-80 ``LOAD`` command does.

    Raises:
        click.BadParameter: Unsupported file type.
    """

    root, ext = os.path.splitext(input_path)
    if input_path == '-' or ext.lower() != LOAD_INPUT_EXT:
        raise click.BadParameter(f'invalid filetype: {input_path!r}', param_hint='INFILES')
    return root + LOAD_OUTPUT_EXT


def guess_dialect(output_path: Optional[str]) -> Dialect:

    if output_path is None or output_path == '-':
        return Dialect.IHEX
    try:
        return Dialect(guess_format_name(output_path))
    except ValueError:
        return Dialect.IHEX


@contextlib.contextmanager
def open_stream(path: Optional[str], mode: str) -> Iterator[IO]:
    r"""Opens a binary file, or a standard stream for ``-``.

    Standard streams are not closed on exit.
    """

    if path is None or path == '-':
        yield click.get_binary_stream('stdin' if 'r' in mode else 'stdout')
    else:
        with open(path, mode) as stream:
            yield stream


def print_report(report: DecodeReport, err: bool = False, color: bool = False) -> None:

    for line in report.format_lines(color=color):
        click.echo(line, err=err, color=color)


def print_version(ctx, _, value):

    if not value or ctx.resilient_parsing:
        return

    click.echo(str(__version__))
    ctx.exit()


# ============================================================================

@click.group()
@click.option('-v', '--verbose', is_flag=True, help="""
    Logs each record on the standard error.
""")
@click.option('-V', '--version', is_flag=True, is_eager=True,
              expose_value=False, callback=print_version, help="""
    Prints the package version number.
""")
def main(verbose: bool) -> None:
    """
    Command line utilities to convert CP/M-80 programs into Intel HEX records
    and back.

    Being built with `Click <https://click.palletsprojects.com/en/stable/>`_, all the
    commands follow POSIX-like syntax rules, as well as reserving the virtual
    file path ``-`` for command chaining via standard output/input buffering.
    """

    logging.basicConfig(level=(logging.DEBUG if verbose else logging.WARNING),
                        format='%(levelname)s: %(message)s')


# ----------------------------------------------------------------------------

@main.command()
@click.option('-a', '--address', type=ADDRESS_INT, help="""
    Address of the first byte of each output file.
    By default it is 0100h, the CP/M-80 program start.
""")
@click.option('-o', '--outfile', type=FILE_PATH_OUT, help="""
    Path of the output file; single input file only.
    Set to ``-`` to write to standard output.
    By default it is the input file path, with the ``.hex`` extension
    replaced by ``.com``.
""")
@click.option('--fill', type=BYTE_INT, help="""
    Byte value filling the gaps between records.
    By default records are appended as they come.
""")
@click.option('--strict', is_flag=True, help="""
    Rejects End Of File records with the legacy checksum (record type
    excluded).
""")
@click.option('-q', '--quiet', is_flag=True, help="""
    Prints only invalid records.
""")
@click.option('--color', is_flag=True, help="""
    Colorizes the record status.
""")
@click.argument('infiles', type=FILE_PATH_IN, nargs=-1, required=True)
@click.pass_context
def load(
    ctx: click.Context,
    address: Optional[int],
    outfile: Optional[str],
    fill: Optional[int],
    strict: bool,
    quiet: bool,
    color: bool,
    infiles: Sequence[str],
) -> None:
    r"""Converts Intel HEX files into binary files.

    ``INFILES`` are the paths of the input files.
    Set to ``-`` to read from standard input; output file required.

    Each record is printed along with its status.
    Invalid records are skipped; the command fails if any is found.
    """

    if outfile and len(infiles) > 1:
        raise click.UsageError('--outfile requires a single input file')

    output_paths = [outfile or derive_output_path(infile) for infile in infiles]
    failed = False

    for infile, output_path in zip(infiles, output_paths):
        err = output_path == '-'

        if len(infiles) > 1:
            click.echo(infile, err=err)

        with open_stream(infile, 'rb') as reader, open_stream(output_path, 'wb') as writer:
            report = decode(reader, writer, address=address, fill=fill, legacy=not strict)

        if quiet:
            for outcome in report.errors:
                click.echo(outcome.format(color=color), err=err, color=color)
        else:
            print_report(report, err=err, color=color)

        if not report.terminated:
            click.echo(f'{infile}: missing end of file record', err=True)

        if not report.ok:
            failed = True

    if failed:
        ctx.exit(1)


# ----------------------------------------------------------------------------

@main.command()
@click.option('-f', '--format', 'dialect', type=DIALECT_CHOICE, help="""
    Forces the output record format.
    By default it is guessed from the output file extension,
    falling back to Intel HEX.
""")
@click.option('-a', '--address', type=ADDRESS_INT, help="""
    Address of the first input byte.
    By default it is 0100h for Intel HEX, 0000h for Motorola S-record.
""")
@click.option('-w', '--width', type=BASED_INT, help="""
    Sets the length of the record data field, in bytes.
    By default it is 16.
""")
@click.option('--crlf', is_flag=True, help="""
    Terminates lines with CR+LF, as CP/M-80 text files do.
""")
@click.option('--color', is_flag=True, help="""
    Colorizes the record fields.
""")
@click.option('-o', '--outfile', type=FILE_PATH_OUT, help="""
    Path of the output file.
    Set to ``-`` or leave empty to write to standard output.
""")
@click.argument('infiles', type=FILE_PATH_IN, nargs=-1, required=True)
def unload(
    dialect: Optional[str],
    address: Optional[int],
    width: Optional[int],
    crlf: bool,
    color: bool,
    outfile: Optional[str],
    infiles: Sequence[str],
) -> None:
    r"""Converts binary files into records.

    ``INFILES`` are the paths of the input files.
    Set to ``-`` to read from standard input.

    Each input file is converted in turn into the same output, with its
    own terminator record.
    """

    dialect = Dialect(dialect) if dialect else guess_dialect(outfile)

    if width is not None and not 1 <= width <= dialect.file_type.MAX_DATALEN:
        raise click.BadParameter(f'invalid width: {width}', param_hint='--width')

    end = b'\r\n' if crlf else b'\n'

    with open_stream(outfile, 'wb') as writer:
        for infile in infiles:
            with open_stream(infile, 'rb') as reader:
                encode(reader, writer, dialect=dialect, address=address,
                       maxdatalen=width, end=end, color=color)


# ----------------------------------------------------------------------------

@main.command()
@click.option('--strict', is_flag=True, help="""
    Rejects End Of File records with the legacy checksum (record type
    excluded).
""")
@click.option('--color', is_flag=True, help="""
    Colorizes the record status.
""")
@click.argument('infile', type=FILE_PATH_IN)
@click.pass_context
def validate(
    ctx: click.Context,
    strict: bool,
    color: bool,
    infile: str,
) -> None:
    r"""Checks an Intel HEX file.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.

    Each record is printed along with its status, followed by a summary.
    The command fails if any record is invalid, or if the End Of File record
    is missing.
    """

    with open_stream(infile, 'rb') as reader:
        report = decode(reader, io.BytesIO(), legacy=not strict)

    print_report(report, color=color)
    click.echo(report.summary())

    if not report.ok or not report.terminated:
        ctx.exit(1)
