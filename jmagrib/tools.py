# Copyright (c) 2025 Nathan Wendt.
# Distributed under the terms of the BSD 3-Clause License.
# SPDX-License-Identifier: BSD-3-Clause
"""Tools for reading GRIB2 files."""

from collections import namedtuple
from datetime import datetime, timezone
import io
import struct

from jmagrib.common import ReadError, UnexpectedFormatError


def sign_magnitude(value, bits=32):
    """Convert an unsigned integer holding a sign bit and a magnitude.

    GRIB2 stores signed quantities (forecast time, latitudes) with the top
    bit as a sign flag rather than as two's complement.
    """
    sign_bit = 1 << (bits - 1)
    magnitude = value & (sign_bit - 1)
    return -magnitude if value & sign_bit else magnitude


class NamedStruct(struct.Struct):
    """Parse bytes using `Struct` but provide named fields.

    Class from MetPy.
    """

    def __init__(self, info, prefmt='>', tuple_name=None):
        """Initialize the NamedStruct."""
        if tuple_name is None:
            tuple_name = 'NamedStruct'
        names, fmts = zip(*((i[0], i[1]) for i in info))
        self.converters = {}
        conv_off = 0
        for ind, i in enumerate(info):
            if len(i) > 2:
                self.converters[ind - conv_off] = i[-1]
            elif not i[0]:  # Skip items with no name
                conv_off += 1
        self._tuple = namedtuple(tuple_name, ' '.join(n for n in names if n))
        super().__init__(prefmt + ''.join(f for f in fmts if f))

    @property
    def tuple_type(self):
        """Return the namedtuple class produced by this structure."""
        return self._tuple

    @property
    def fields(self):
        """Return the names of the decoded fields."""
        return self._tuple._fields

    def _create(self, items):
        if self.converters:
            items = list(items)
            for ind, conv in self.converters.items():
                items[ind] = conv(items[ind])
        return self.make_tuple(*items)

    def make_tuple(self, *args, **kwargs):
        """Construct the underlying tuple from values."""
        return self._tuple(*args, **kwargs)

    def unpack(self, s):
        """Parse bytes and return a namedtuple."""
        return self._create(super().unpack(s))


class FileCursor:
    """Sequential big-endian reads over a seekable binary file.

    Adapted from the MetPy ``IOBuffer``. Rather than holding the whole file
    in memory, every read goes straight to the (buffered) file object so that
    bulk payloads can be skipped without ever being loaded.

    ``bytes_read`` counts every byte read or skipped so that callers can
    compare what a section consumed against its declared length.
    """

    def __init__(self, fobj):
        """Initialize the cursor at the current position of ``fobj``."""
        self._fobj = fobj
        self.bytes_read = 0
        start = fobj.tell()
        self._size = fobj.seek(0, io.SEEK_END)
        fobj.seek(start)

    def tell(self):
        """Return the absolute position of the cursor in the file."""
        return self._fobj.tell()

    def _seek(self, position, name):
        if position < 0 or position > self._size:
            raise ReadError(f'Unable to seek past {name}: position {position} is outside '
                            f'the file (size {self._size}).')
        try:
            self._fobj.seek(position)
        except OSError as e:
            raise ReadError(f'Unable to seek past {name}: {e}') from e

    def read(self, num_bytes, name='bytes'):
        """Read and return exactly ``num_bytes`` bytes."""
        try:
            data = self._fobj.read(num_bytes)
        except OSError as e:
            raise ReadError(f'Unable to read {name}: {e}') from e
        if len(data) != num_bytes:
            raise ReadError(f'Unable to read {name}: expected {num_bytes} bytes '
                            f'but only {len(data)} remain.')
        self.bytes_read += num_bytes
        return data

    def peek(self, num_bytes):
        """Get the next bytes in the file without moving the cursor."""
        try:
            position = self._fobj.tell()
            data = self._fobj.read(num_bytes)
            self._fobj.seek(position)
        except OSError as e:
            raise ReadError(f'Unable to peek at the next {num_bytes} bytes: {e}') from e
        return data

    def skip(self, num_bytes, name='bytes'):
        """Jump ahead the specified bytes in the file."""
        self._seek(self.tell() + num_bytes, name)
        self.bytes_read += num_bytes

    def read_struct(self, struct_class, name=None):
        """Parse and return a structure from the current position."""
        if name is None:
            name = getattr(struct_class, 'tuple_type', struct_class).__name__
        return struct_class.unpack(self.read(struct_class.size, name))

    def read_int(self, size, name, signed=False):
        """Parse the next ``size`` bytes as a big-endian integer."""
        return int.from_bytes(self.read(size, name), 'big', signed=signed)

    def read_u8(self, name):
        """Read an unsigned 8-bit integer."""
        return self.read_int(1, name)

    def read_u16(self, name):
        """Read an unsigned 16-bit integer."""
        return self.read_int(2, name)

    def read_u32(self, name):
        """Read an unsigned 32-bit integer."""
        return self.read_int(4, name)

    def read_u64(self, name):
        """Read an unsigned 64-bit integer."""
        return self.read_int(8, name)

    def read_i16(self, name):
        """Read a two's complement signed 16-bit integer."""
        return self.read_int(2, name, signed=True)

    def read_i32_sign_magnitude(self, name):
        """Read a 32-bit integer whose top bit is a sign flag."""
        return sign_magnitude(self.read_u32(name))

    def read_exact_string(self, num_bytes, name='string'):
        """Return the specified bytes as ascii-formatted text."""
        data = self.read(num_bytes, name)
        try:
            return data.decode('ascii')
        except UnicodeDecodeError as e:
            raise UnexpectedFormatError(f'{name} is not valid text: {data!r}') from e

    def _validate(self, value, expected, name):
        if value != expected:
            raise UnexpectedFormatError(f'{name} must be {expected} but was {value}.')
        return value

    def validate_u8(self, expected, name):
        """Read an unsigned 8-bit integer and check it against ``expected``."""
        return self._validate(self.read_u8(name), expected, name)

    def validate_u16(self, expected, name):
        """Read an unsigned 16-bit integer and check it against ``expected``."""
        return self._validate(self.read_u16(name), expected, name)

    def validate_u32(self, expected, name):
        """Read an unsigned 32-bit integer and check it against ``expected``."""
        return self._validate(self.read_u32(name), expected, name)

    def validate_string(self, num_bytes, expected, name):
        """Read text and check it against ``expected``."""
        return self._validate(self.read_exact_string(num_bytes, name), expected, name)

    def read_datetime(self, name):
        """Read a 7 byte GRIB2 date and time as a UTC datetime."""
        year = self.read_u16(name)
        month, day, hour, minute, second = self.read(5, name)
        if not 1 <= month <= 12:
            raise UnexpectedFormatError(f'{name}: month must be in 1..12 but was {month}.')
        try:
            return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
        except ValueError as e:
            raise UnexpectedFormatError(
                f'{name}: {year:04d}-{month:02d}-{day:02d} '
                f'{hour:02d}:{minute:02d}:{second:02d} is not a valid date and time.'
            ) from e

    def __str__(self):
        """Return a string representation of the FileCursor."""
        return 'Size: {} Offset: {}'.format(self._size, self.tell())
