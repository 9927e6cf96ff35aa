# Copyright (c) 2025 Nathan Wendt.
# Distributed under the terms of the BSD 3-Clause License.
# SPDX-License-Identifier: BSD-3-Clause
"""Tests for reading JMA GRIB2 products."""

import io

import numpy as np
import pytest

from jmagrib import (AnalysisRainfall, LandslideWarning, NotFoundError,
                     PrecipitationForecast, SoilWaterIndex, SoilWaterIndexForecast, SwiTank,
                     UnexpectedFormatError)


def test_analysis_rainfall(grib2, write_file):
    """Test reading a radar/rain gauge analysis."""
    rain = AnalysisRainfall(write_file(grib2.message(grib2.product(50008))))

    assert rain.section0.total_length == rain.path.stat().st_size
    assert rain.section3.number_of_data_points == 4
    assert list(rain.products) == [None]
    assert rain.product().section4.stat_proc_time_length == 30

    values = list(rain.values())
    assert [v.value for v in values] == [10, None, None, 20]
    assert (values[0].lat, values[0].lon) == (36.0, 139.0)
    assert (values[-1].lat, values[-1].lon) == (35.9, 139.1)


def test_landslide_warning_signed_levels(grib2, write_file):
    """Test that the landslide warning level table is signed."""
    data = grib2.message(grib2.product(50000, levels=(-1, 1, 2), signed=True))
    warning = LandslideWarning(write_file(data))

    assert warning.product().section5.level_values == (-1, 1, 2)
    assert [v.value for v in warning.values()] == [-1, None, None, 1]


def test_soil_water_index(grib2, write_file):
    """Test selecting soil water index tanks."""
    payloads = [b'\x01\x00\x05\x02', b'\x03\x06\x01', b'\x02\x07']
    data = grib2.message(*(grib2.product(0, payload=p) for p in payloads))
    swi = SoilWaterIndex(write_file(data))

    assert list(swi.products) == [SwiTank.all, SwiTank.first, SwiTank.second]
    assert [v.value for v in swi.values(SwiTank.all)] == [10, None, None, 20]
    assert [v.value for v in swi.values(1)] == [30, 30, 30, 10]
    assert [v.value for v in swi.values(SwiTank.second)] == [20] * 4


def test_soil_water_index_forecast(grib2, write_file):
    """Test the hour and tank keys of the soil water index forecast."""
    products = []
    for hour in range(1, 7):
        for tank in range(3):
            payload = b'\x03\x06\x01' if (hour, tank) == (6, 2) else grib2.payload
            products.append(grib2.product(0, payload=payload, forecast_time=hour * 60))
    swi = SoilWaterIndexForecast(write_file(grib2.message(*products)))

    assert len(swi.products) == 18
    assert swi.product((3, SwiTank.first)).section4.forecast_time == 180
    assert [v.value for v in swi.values((6, 2))] == [30, 30, 30, 10]


def test_precipitation_forecast(grib2, write_file):
    """Test reading six hours of precipitation forecasts."""
    products = [grib2.product(50009, ratios=(100, 90), forecast_time=hour * 60)
                for hour in range(1, 7)]
    fcst = PrecipitationForecast(write_file(grib2.message(*products)))

    info = fcst.prodinfo()
    assert [i.key for i in info] == [1, 2, 3, 4, 5, 6]
    assert [i.forecast_time for i in info] == [60, 120, 180, 240, 300, 360]
    assert info[0].product_definition_template_number == 50009
    assert info[0].max_level_value == 3
    assert fcst.product(4).section4.combined_ratios_of_forecast_areas == (100, 90)


def test_interleaved_products(grib2, write_file):
    """Test consuming two products of one file at the same time."""
    data = grib2.message(grib2.product(0), grib2.product(0, payload=b'\x03\x06\x01'),
                         grib2.product(0))
    swi = SoilWaterIndex(write_file(data))

    with swi.values(SwiTank.all) as first, swi.values(SwiTank.first) as second:
        pairs = [(a.level, b.level) for a, b in zip(first, second)]

    assert pairs == [(1, 3), (0, 3), (0, 3), (2, 1)]


def test_unknown_key(grib2, write_file):
    """Test that unknown products raise KeyError."""
    data = grib2.message(*(grib2.product(0) for _ in range(3)))
    swi = SoilWaterIndex(write_file(data))

    with pytest.raises(KeyError):
        swi.values(5)
    with pytest.raises(KeyError):
        swi.values()


def test_wrong_product_template(grib2, write_file):
    """Test that a reader rejects another product's template."""
    with pytest.raises(UnexpectedFormatError, match='must be 50008 but was 0'):
        AnalysisRainfall(write_file(grib2.message(grib2.product(0))))


def test_point_count_mismatch(grib2, write_file):
    """Test that Sections 3 and 5 must agree on the number of points."""
    data = grib2.message(grib2.product(50008, number_of_values=5))

    with pytest.raises(UnexpectedFormatError, match='Section 3 declares 4 data points'):
        AnalysisRainfall(write_file(data))


def test_point_count_mismatch_any_product(grib2, write_file):
    """Test the point count check on a later product of a file."""
    data = grib2.message(grib2.product(0), grib2.product(0),
                         grib2.product(0, number_of_values=6))

    with pytest.raises(UnexpectedFormatError, match='second tank'):
        SoilWaterIndex(write_file(data))


@pytest.mark.parametrize('kwargs,match', [
    ({'magic': b'GRIC'}, 'GRIB'),
    ({'edition': 1}, 'edition number'),
    ({'end': b'7778'}, 'end marker'),
])
def test_format_constants(grib2, write_file, kwargs, match):
    """Test that altered format constants are rejected."""
    data = grib2.message(grib2.product(50008), **kwargs)

    with pytest.raises(UnexpectedFormatError, match=match):
        AnalysisRainfall(write_file(data))


def test_total_length(grib2, write_file):
    """Test that the total length of Section 0 is checked."""
    data = grib2.message(grib2.product(50008), total_length=10)

    with pytest.raises(UnexpectedFormatError, match='total length of 10'):
        AnalysisRainfall(write_file(data))


def test_truncated_file(grib2, write_file):
    """Test that a file cut short raises OSError."""
    data = grib2.message(grib2.product(50008))

    with pytest.raises(OSError):
        AnalysisRainfall(write_file(data[:-10]))


def test_missing_file(tmp_path):
    """Test opening a file that does not exist."""
    with pytest.raises(NotFoundError):
        AnalysisRainfall(tmp_path / 'missing.bin')


def test_local_use_section(grib2, write_file):
    """Test a file with a local use section."""
    rain = AnalysisRainfall(write_file(grib2.message(grib2.product(50008),
                                                     local_use=b'JMA')))

    assert rain.section2.local_use == b'JMA'
    assert len(list(rain.values())) == 4


def test_to_dataframe(grib2, write_file):
    """Test converting values to a DataFrame."""
    rain = AnalysisRainfall(write_file(grib2.message(grib2.product(50008))))
    df = rain.to_dataframe()

    assert list(df.columns) == ['lat', 'lon', 'level', 'value']
    np.testing.assert_allclose(df['lat'], [36.0, 36.0, 35.9, 35.9])
    np.testing.assert_allclose(df['lon'], [139.0, 139.1, 139.0, 139.1])
    np.testing.assert_equal(df['level'].to_numpy(), [1, 0, 0, 2])
    np.testing.assert_equal(df['value'].to_numpy(), [10.0, np.nan, np.nan, 20.0])


def test_to_xarray(grib2, write_file):
    """Test converting values to a gridded DataArray."""
    rain = AnalysisRainfall(write_file(grib2.message(grib2.product(50008))))
    da = rain.to_xarray()

    assert da.dims == ('lat', 'lon')
    assert da.name == 'precipitation'
    np.testing.assert_allclose(da['lat'], [36.0, 35.9])
    np.testing.assert_allclose(da['lon'], [139.0, 139.1])
    np.testing.assert_equal(da.values, [[10.0, np.nan], [np.nan, 20.0]])
    assert da.attrs['reference_time'] == '2020-07-04T03:00:00+00:00'
    assert da.attrs['grid_mapping_name'] == 'latitude_longitude'


def test_to_xarray_grid_shape(grib2, write_file):
    """Test that the grid dimensions must match the number of points."""
    grid = grib2.section3(ni=3, nj=2, number_of_points=4)
    rain = AnalysisRainfall(write_file(grib2.message(grib2.product(50008), grid=grid)))

    with pytest.raises(UnexpectedFormatError, match='3 by 2'):
        rain.to_xarray()


@pytest.mark.parametrize('shape,expected', [(0, 6367470.0), (6, 6371229.0)])
def test_spherical_crs(grib2, write_file, shape, expected):
    """Test the CRS of spherical earth shapes."""
    grid = grib2.section3(shape=shape)
    rain = AnalysisRainfall(write_file(grib2.message(grib2.product(50008), grid=grid)))

    assert rain.crs.ellipsoid.semi_major_metre == pytest.approx(expected)


def test_ellipsoid_crs(grib2, write_file):
    """Test the CRS of the GRS80 earth shape."""
    rain = AnalysisRainfall(write_file(grib2.message(grib2.product(50008))))

    assert rain.crs.ellipsoid.semi_major_metre == pytest.approx(6378137.0)
    assert rain.crs.ellipsoid.inverse_flattening == pytest.approx(298.257222101)


def test_unknown_earth_shape(grib2, write_file):
    """Test an earth shape without a CRS."""
    grid = grib2.section3(shape=3)
    rain = AnalysisRainfall(write_file(grib2.message(grib2.product(50008), grid=grid)))

    with pytest.raises(NotImplementedError):
        rain.crs  # noqa: B018


def test_debug_info(grib2, write_file):
    """Test dumping every section of a file."""
    data = grib2.message(*(grib2.product(0) for _ in range(3)))
    out = io.StringIO()
    SoilWaterIndex(write_file(data)).debug_info(out)
    text = out.getvalue()

    assert text.startswith('Section 0: Indicator Section\n')
    assert 'first tank:\n' in text
    assert text.count('Section 7: Data Section') == 3
    assert text.rstrip().endswith('End marker: 7777')
