# Copyright (c) 2025 Nathan Wendt.
# Distributed under the terms of the BSD 3-Clause License.
# SPDX-License-Identifier: BSD-3-Clause
"""Shared fixtures that assemble synthetic GRIB2 files."""

import struct
from types import SimpleNamespace

import pytest

# 2x2 grid centered on Tokyo: two rows (36.0N, 35.9N) of two columns (139.0E, 139.1E).
LAT_FIRST = 36_000_000
LAT_LAST = 35_900_000
LON_FIRST = 139_000_000
LON_LAST = 139_100_000
INCREMENT = 100_000

# NBIT=3, MAXV=3 (LNGU=4): groups [1], [0, 5] (2 missing) and [2].
PAYLOAD = b'\x01\x00\x05\x02'


def sign_magnitude(value):
    """Encode a signed integer with a leading sign bit."""
    return (-value | 0x80000000) if value < 0 else value


def section0(total_length, magic=b'GRIB', edition=2):
    return struct.pack('>4sHBBQ', magic, 0, 0, edition, total_length)


def section1(referenced_at=(2020, 7, 4, 3, 0, 0), length=21):
    return struct.pack('>IBHHBBBHBBBBBBB', length, 1, 34, 0, 2, 1, 0,
                       *referenced_at, 0, 2)


def section2(local_use=b''):
    return struct.pack('>IB', 5 + len(local_use), 2) + local_use


def section3(ni=2, nj=2, lat_first=LAT_FIRST, lon_first=LON_FIRST, lat_last=LAT_LAST,
             lon_last=LON_LAST, i_inc=INCREMENT, j_inc=INCREMENT, number_of_points=None,
             shape=4, scanning_mode=0, template_number=0, extra=b''):
    if number_of_points is None:
        number_of_points = ni * nj
    template = struct.pack('>BBIBIBIIIIIIIBIIIIB', shape, 0, 0, 0, 0, 0, 0, ni, nj, 0,
                           0xFFFFFFFF, sign_magnitude(lat_first), lon_first, 0x30,
                           sign_magnitude(lat_last), lon_last, i_inc, j_inc,
                           scanning_mode) + extra
    return struct.pack('>IBBIBBH', 14 + len(template), 3, 0, number_of_points, 0, 0,
                       template_number) + template


def product_fields(category=1, number=200, forecast_time=0):
    return struct.pack('>BBBBBHBBIBBIBBI', category, number, 0, 0, 153, 0, 0, 0,
                       sign_magnitude(forecast_time), 1, 0, 0, 255, 0, 0)


def statistics_fields(end=(2020, 7, 4, 3, 0, 0), stat_length=30):
    return (struct.pack('>HBBBBB', *end)
            + struct.pack('>BIBBBIBIQQQ', 1, 0, 1, 2, 0, stat_length, 255, 0,
                          0x0102030405060708, 0, 0xFFFF))


def section4(template_number=0, forecast_time=0, ratios=(), number_of_areas=None,
             **kwargs):
    template = product_fields(forecast_time=forecast_time, **kwargs)
    if template_number == 50000:
        template += struct.pack('>BHBBHB', 1, 2, 30, 2, 3, 0)
    elif template_number in (50008, 50009):
        template += statistics_fields()
    if template_number == 50009:
        if number_of_areas is None:
            number_of_areas = len(ratios)
        template += struct.pack(f'>HB{len(ratios)}H', number_of_areas, 2, *ratios)
    return struct.pack('>IBHH', 9 + len(template), 4, 0, template_number) + template


def section5(levels=(10, 20, 30), nbit=3, maxv=3, number_of_values=4, signed=False,
             template_number=200, decimal_scale_factor=1, extra=b''):
    table = struct.pack(f'>{len(levels)}{"h" if signed else "H"}', *levels)
    template = struct.pack('>HHB', maxv, len(levels), decimal_scale_factor) + table + extra
    return struct.pack('>IBIHB', 12 + len(template), 5, number_of_values, template_number,
                       nbit) + template


def section6(indicator=255):
    return struct.pack('>IBB', 6, 6, indicator)


def section7(payload=PAYLOAD):
    return struct.pack('>IB', 5 + len(payload), 7) + bytes(payload)


def section8(marker=b'7777'):
    return marker


def product(template_number=0, payload=PAYLOAD, levels=(10, 20, 30),
            signed=False, number_of_values=4, **kwargs):
    """Assemble Sections 4 through 7 of one product."""
    return (section4(template_number, **kwargs)
            + section5(levels, number_of_values=number_of_values, signed=signed)
            + section6() + section7(payload))


def message(*products, grid=None, local_use=None, end=None, total_length=None,
            magic=b'GRIB', edition=2):
    """Assemble a complete GRIB2 message around the given products."""
    body = section1()
    if local_use is not None:
        body += section2(local_use)
    body += section3() if grid is None else grid
    body += b''.join(products)
    body += section8() if end is None else end
    if total_length is None:
        total_length = 16 + len(body)
    return section0(total_length, magic, edition) + body


@pytest.fixture
def grib2():
    """Provide the GRIB2 section builders."""
    return SimpleNamespace(
        section0=section0, section1=section1, section2=section2, section3=section3,
        section4=section4, section5=section5, section6=section6, section7=section7,
        section8=section8, product=product, message=message,
        lat_first=LAT_FIRST, lat_last=LAT_LAST, lon_first=LON_FIRST, lon_last=LON_LAST,
        increment=INCREMENT, payload=PAYLOAD,
    )


@pytest.fixture
def write_file(tmp_path):
    """Write bytes to a temporary file and return its path."""
    def _write(data, name='sample.bin'):
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write
