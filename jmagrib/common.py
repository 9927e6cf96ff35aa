# Copyright (c) 2025 Nathan Wendt.
# Distributed under the terms of the BSD 3-Clause License.
# SPDX-License-Identifier: BSD-3-Clause
"""GRIB2 common data definitions and structures."""

from enum import Enum, IntEnum

GRIB_MAGIC = 'GRIB'
EDITION_NUMBER = 2
END_MARKER = '7777'
MISSING_LEVEL = 0
SECTION0_BYTES = 16
SECTION1_BYTES = 21
SECTION6_BYTES = 6
SECTION8_BYTES = 4
NO_BITMAP = 255

# Bytes preceding the template payload in the variable-length sections.
SECTION3_HEADER_BYTES = 14
SECTION4_HEADER_BYTES = 9
SECTION5_HEADER_BYTES = 12
SECTION7_HEADER_BYTES = 5

# Latitudes and longitudes are stored in units of 10e-6 degree.
MICRO_DEGREES = 1_000_000


class GridTemplate(IntEnum):
    """Grid definition template numbers (Section 3)."""

    lat_lon = 0


class ProductTemplate(IntEnum):
    """Product definition template numbers (Section 4)."""

    default = 0
    processed = 50000
    radar_analysis = 50008
    radar_forecast = 50009


class RepresentationTemplate(IntEnum):
    """Data representation template numbers (Sections 5 and 7)."""

    run_length = 200


class SwiTank(Enum):
    """Soil water index tanks."""

    all = 0
    first = 1
    second = 2


class Grib2Error(Exception):
    """Base class for errors raised while reading GRIB2 files."""


class NotFoundError(Grib2Error, FileNotFoundError):
    """The GRIB2 file could not be opened."""


class ReadError(Grib2Error, OSError):
    """A field or byte range could not be read from the file."""


class UnexpectedFormatError(Grib2Error, ValueError):
    """Bytes were read but do not form the expected GRIB2 product."""
