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

r"""CP/M-80 Intel HEX record codec.

Converts binary files into Intel HEX (or Motorola S-record) text records, and
Intel HEX records back into binary files, as the CP/M-80 ``UNLOAD`` and
``LOAD`` commands do.
"""

__version__ = '0.1.0'

from .base import Dialect
from .base import decode
from .base import encode
from .base import file_types
from .base import guess_format_name
from .formats.ihex import IhexFile
from .formats.srec import SrecFile
from .report import DecodeReport
from .report import RecordOutcome
from .report import RecordStatus


def _register_default_file_types():

    defaults = {
        # Intel HEX comes first, being the only decodable format
        'ihex': IhexFile,
        'srec': SrecFile,
    }

    for key, value in defaults.items():
        file_types.setdefault(key, value)


_register_default_file_types()
