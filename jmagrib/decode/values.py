# Copyright (c) 2025 Nathan Wendt.
# Distributed under the terms of the BSD 3-Clause License.
# SPDX-License-Identifier: BSD-3-Clause
"""Lazy decoding of run-length compressed grid values."""

from collections import namedtuple
import logging
from pathlib import Path

from jmagrib.common import (MICRO_DEGREES, MISSING_LEVEL, NotFoundError, ReadError,
                            UnexpectedFormatError)

logger = logging.getLogger(__name__)

GridValue = namedtuple('GridValue', ['lat', 'lon', 'level', 'value'])
GridValue.__doc__ = """A decoded grid point.

Latitude and longitude are in degrees. ``value`` is ``None`` when the
level is 0 (missing).
"""


class GridGeometry(namedtuple('GridGeometry', ['number_of_points', 'lat_first', 'lon_first',
                                               'lon_last', 'lat_increment',
                                               'lon_increment'])):
    """Traversal parameters of a regular latitude/longitude grid in 10e-6 degree units."""

    __slots__ = ()

    @classmethod
    def from_section3(cls, section3):
        """Build the geometry from a parsed Section 3."""
        return cls(section3.number_of_data_points, section3.lat_of_first_grid_point,
                   section3.lon_of_first_grid_point, section3.lon_of_last_grid_point,
                   section3.j_direction_increment, section3.i_direction_increment)


def expand_run_length(values, maxv, lngu):
    """Decode one run-length group into a level and its repeat count.

    Parameters
    ----------
    values : sequence of int
        The level symbol followed by zero or more run-length digit symbols.

    maxv : int
        Largest level value used by the payload. Larger symbols are digits.

    lngu : int
        Number of distinct digit symbols, ``2**nbit - 1 - maxv``.

    Returns
    -------
    tuple
        ``(level, count)``

    Examples
    --------
    >>> expand_run_length([0, 13, 12], maxv=10, lngu=5)
    (0, 8)
    """
    level = values[0]
    count = 1 + sum(lngu ** i * (digit - (maxv + 1))
                    for i, digit in enumerate(values[1:]))
    return level, count


class GridValueIterator:
    """Forward-only iterator over the values of one run-length payload.

    The iterator owns ``fobj``, which must be positioned at the first byte of
    the compressed payload, and closes it once the grid is exhausted or an
    error is raised. Values are produced west to east, then north to south.
    """

    def __init__(self, fobj, total_bytes, geometry, nbit, maxv, level_values):
        """Initialize the iterator."""
        if not 1 <= nbit <= 8:
            fobj.close()
            raise UnexpectedFormatError(f'Bits per value must be in 1..8 but was {nbit}.')
        if maxv >= 2 ** nbit - 1:
            fobj.close()
            raise UnexpectedFormatError(
                f'Maximum level value {maxv} leaves no run-length digits '
                f'for {nbit} bits per value.'
            )

        self._fobj = fobj
        self.total_bytes = total_bytes
        self.geometry = geometry
        self.nbit = nbit
        self.maxv = maxv
        self.lngu = 2 ** nbit - 1 - maxv
        self.level_values = tuple(level_values)

        self.read_bytes = 0
        self.number_of_reads = 0
        self._pending = None
        self._lat = geometry.lat_first
        self._lon = geometry.lon_first
        self._level = MISSING_LEVEL
        self._value = None
        self._remaining = 0

    def __iter__(self):
        return self

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def closed(self):
        """Whether the underlying file has been released."""
        return self._fobj is None

    def close(self):
        """Release the underlying file."""
        if self._fobj is not None:
            self._fobj.close()
            self._fobj = None

    def _read_symbol(self):
        if self._pending is not None:
            symbol, self._pending = self._pending, None
            return symbol
        if self.read_bytes >= self.total_bytes:
            return None

        data = self._fobj.read(1)
        if not data:
            raise ReadError(f'Unable to read run length data: {self.read_bytes} of '
                            f'{self.total_bytes} bytes read before end of file.')
        self.read_bytes += 1
        symbol = data[0]
        if symbol >> self.nbit:
            raise UnexpectedFormatError(
                f'Run length symbol {symbol} does not fit in {self.nbit} bits '
                f'(byte {self.read_bytes} of the payload).'
            )
        return symbol

    def _read_group(self):
        """Read the symbols of the next run-length group."""
        level = self._read_symbol()
        if level is None:
            return None
        if level > self.maxv:
            raise UnexpectedFormatError(
                f'Run length group starts with digit {level} instead of a level '
                f'(maximum level value {self.maxv}).'
            )
        group = [level]
        while True:
            symbol = self._read_symbol()
            if symbol is None:
                break
            if symbol <= self.maxv:
                self._pending = symbol
                break
            group.append(symbol)
        return group

    def _physical_value(self, level):
        if level == MISSING_LEVEL:
            return None
        try:
            return self.level_values[level - 1]
        except IndexError:
            raise UnexpectedFormatError(
                f'Level {level} is outside the level table of '
                f'{len(self.level_values)} values.'
            ) from None

    def _next_run(self):
        group = self._read_group()
        if group is None:
            raise UnexpectedFormatError(
                f'Run length data ended after {self.number_of_reads} values; '
                f'Section 3 declares {self.geometry.number_of_points} data points.'
            )
        level, count = expand_run_length(group, self.maxv, self.lngu)
        remaining_points = self.geometry.number_of_points - self.number_of_reads
        if count > remaining_points:
            raise UnexpectedFormatError(
                f'Run of {count} values at point {self.number_of_reads} exceeds the '
                f'{remaining_points} points left in the grid.'
            )
        self._level = level
        self._value = self._physical_value(level)
        self._remaining = count

    def _finish(self):
        unread = self.total_bytes - self.read_bytes + (self._pending is not None)
        if unread:
            logger.warning('%d bytes of run length data follow the last grid point.', unread)
        self.close()

    def _advance(self):
        self._lon += self.geometry.lon_increment
        if self._lon > self.geometry.lon_last:
            self._lat -= self.geometry.lat_increment
            self._lon = self.geometry.lon_first

    def __next__(self):
        if self.closed:
            raise StopIteration
        if self.number_of_reads >= self.geometry.number_of_points:
            self._finish()
            raise StopIteration

        try:
            if self._remaining == 0:
                self._next_run()
        except Exception:
            self.close()
            raise

        item = GridValue(self._lat / MICRO_DEGREES, self._lon / MICRO_DEGREES, self._level,
                         self._value)
        self._remaining -= 1
        self.number_of_reads += 1
        self._advance()
        return item


def open_value_stream(path, offset, length, geometry, nbit, maxv, level_values):
    """Open a new handle on ``path`` and iterate the run-length payload at ``offset``.

    Each call opens its own file so several streams over the same file can be
    consumed at the same time.

    Parameters
    ----------
    path : str or `pathlib.Path`
        GRIB2 file to open.

    offset : int
        Absolute position of the run-length payload.

    length : int
        Size of the payload in bytes.

    geometry : GridGeometry
        Grid traversal parameters.

    nbit : int
        Bits per run-length symbol.

    maxv : int
        Largest level value used by the payload.

    level_values : sequence of int
        Physical value for each level starting at level 1.

    Returns
    -------
    GridValueIterator
    """
    path = Path(path)
    try:
        fobj = open(path, 'rb')  # noqa: SIM115
    except OSError as e:
        raise NotFoundError(f'Unable to open {path}: {e}') from e

    try:
        fobj.seek(offset)
    except (OSError, ValueError) as e:
        fobj.close()
        raise ReadError(f'Unable to seek to run length data at {offset} in {path}: {e}') from e

    logger.debug('Opened value stream on %s at offset %d (%d bytes).', path, offset, length)
    return GridValueIterator(fobj, length, geometry, nbit, maxv, level_values)
