# Copyright (c) 2025 Nathan Wendt.
# Distributed under the terms of the BSD 3-Clause License.
# SPDX-License-Identifier: BSD-3-Clause
"""Readers for JMA run-length compressed GRIB2 products."""

from collections import namedtuple
import contextlib
import logging
from pathlib import Path
import sys

import numpy as np
import pandas as pd
import pyproj
import xarray as xr

from jmagrib.common import (MICRO_DEGREES, NotFoundError, ProductTemplate, SwiTank,
                            UnexpectedFormatError)
from jmagrib.decode.sections import (debug_info, parse_section0, parse_section1,
                                     parse_section2, parse_section3, parse_section4,
                                     parse_section5, parse_section6, parse_section7,
                                     parse_section8)
from jmagrib.decode.values import GridGeometry, GridValue, open_value_stream
from jmagrib.tools import FileCursor

logger = logging.getLogger(__name__)

FORECAST_HOURS = range(1, 7)

# Spherical earth radii (m) for the shapes of the earth in Code Table 3.2.
EARTH_RADII = {0: 6367470.0, 6: 6371229.0}
EARTH_ELLIPSOIDS = {4: 'GRS80', 5: 'WGS84'}

ProductSections = namedtuple('ProductSections', ['section4', 'section5', 'section6',
                                                 'section7'])

ProductInfo = namedtuple('ProductInfo', ['key', 'product_definition_template_number',
                                         'parameter_category', 'parameter_number',
                                         'forecast_time', 'number_of_values',
                                         'bits_per_value', 'max_level_value',
                                         'decimal_scale_factor'])


class Grib2File:
    """Base class for JMA GRIB2 files.

    Parses every section of the file up front. A file holds one or more
    products, each a group of Sections 4 through 7 sharing the grid of
    Section 3. The run-length payloads are not read until values are
    requested.

    Subclasses declare the product definition template, whether the level
    table is signed and the keys identifying each product in file order.
    """

    product_template = None
    signed_levels = False
    product_keys = (None,)
    name = 'value'

    def __init__(self, file):
        """Instantiate a reader from a file path."""
        self.path = Path(file)
        try:
            fobj = open(self.path, 'rb')  # noqa: SIM115
        except OSError as e:
            raise NotFoundError(f'Unable to open {self.path}: {e}') from e

        with contextlib.closing(fobj):
            cursor = FileCursor(fobj)
            self.section0 = parse_section0(cursor)
            self.section1 = parse_section1(cursor)
            self.section2 = parse_section2(cursor)
            self.section3 = parse_section3(cursor)

            self.products = {}
            for key in self.product_keys:
                self.products[key] = self._read_product(cursor, key)

            self.section8 = parse_section8(cursor)
            consumed = cursor.tell()

        if consumed != self.section0.total_length:
            raise UnexpectedFormatError(
                f'Section 0 declares a total length of {self.section0.total_length} bytes '
                f'but {consumed} bytes were read.'
            )

        self.geometry = GridGeometry.from_section3(self.section3)
        logger.debug('Read %d products from %s.', len(self.products), self.path)

    def _read_product(self, cursor, key):
        """Parse Sections 4 through 7 of one product."""
        section4 = parse_section4(cursor, self.product_template)
        section5 = parse_section5(cursor, signed_levels=self.signed_levels)
        section6 = parse_section6(cursor)
        section7 = parse_section7(cursor, section5.data_representation_template_number)

        if self.section3.number_of_data_points != section5.number_of_values:
            raise UnexpectedFormatError(
                f'Section 3 declares {self.section3.number_of_data_points} data points '
                f'but Section 5 of product {self._describe_key(key)} declares '
                f'{section5.number_of_values} values.'
            )

        return ProductSections(section4, section5, section6, section7)

    def _normalize_key(self, key):
        return key

    def _describe_key(self, key):
        return 'value' if key is None else str(key)

    def product(self, key=None):
        """Return the sections of the product identified by ``key``.

        ``key`` may be omitted for files holding a single product.
        """
        if key is None and len(self.products) == 1:
            key = next(iter(self.products))
        try:
            return self.products[self._normalize_key(key)]
        except (KeyError, TypeError, ValueError):
            raise KeyError(f'No product matching {key!r} in {self.path}.') from None

    def prodinfo(self):
        """Return product information."""
        info = []
        for key, sections in self.products.items():
            info.append(ProductInfo(key, sections.section4.product_definition_template_number,
                                    sections.section4.parameter_category,
                                    sections.section4.parameter_number,
                                    sections.section4.forecast_time,
                                    sections.section5.number_of_values,
                                    sections.section5.bits_per_value,
                                    sections.section5.max_level_value,
                                    sections.section5.decimal_scale_factor))
        return info

    def values(self, key=None):
        """Iterate over the decoded values of a product.

        Every call opens a new handle on the file, so several iterators may be
        consumed at the same time.

        Parameters
        ----------
        key : optional
            Product key. May be omitted for files holding a single product.

        Returns
        -------
        GridValueIterator
            Iterator of `GridValue` in west to east, north to south order.
        """
        sections = self.product(key)
        return open_value_stream(self.path,
                                 sections.section7.run_length_position,
                                 sections.section7.run_length_bytes,
                                 self.geometry,
                                 sections.section5.bits_per_value,
                                 sections.section5.max_level_value,
                                 sections.section5.level_values)

    def to_dataframe(self, key=None):
        """Decode a product into a `pandas.DataFrame`.

        Latitude and longitude are in degrees. Missing values are NaN.
        """
        with self.values(key) as stream:
            df = pd.DataFrame(list(stream), columns=GridValue._fields)
        df['value'] = df['value'].astype('float64')
        return df

    def to_xarray(self, key=None):
        """Decode a product onto its latitude/longitude grid.

        Returns
        -------
        xarray.DataArray
            Values with dimensions ``(lat, lon)``; missing values are NaN.
        """
        ni = self.section3.number_of_along_lat_points
        nj = self.section3.number_of_along_lon_points
        if ni * nj != self.geometry.number_of_points:
            raise UnexpectedFormatError(
                f'A grid of {ni} by {nj} points does not hold the '
                f'{self.geometry.number_of_points} data points of Section 3.'
            )

        sections = self.product(key)
        with self.values(key) as stream:
            data = np.fromiter((np.nan if v.value is None else v.value for v in stream),
                               dtype=np.float64, count=self.geometry.number_of_points)

        lat = (self.geometry.lat_first
               - np.arange(nj) * self.geometry.lat_increment) / MICRO_DEGREES
        lon = (self.geometry.lon_first
               + np.arange(ni) * self.geometry.lon_increment) / MICRO_DEGREES

        return xr.DataArray(
            data=data.reshape((nj, ni)),
            coords={'lat': lat, 'lon': lon},
            dims=['lat', 'lon'],
            name=self.name,
            attrs={
                **self.crs.to_cf(),
                'reference_time': self.section1.referenced_at.isoformat(),
                'parameter_category': sections.section4.parameter_category,
                'parameter_number': sections.section4.parameter_number,
                'forecast_time': sections.section4.forecast_time,
                'decimal_scale_factor': sections.section5.decimal_scale_factor,
            }
        )

    @property
    def crs(self):
        """Geographic CRS for the shape of the earth in Section 3."""
        shape = self.section3.shape_of_earth
        if shape in EARTH_RADII:
            return pyproj.CRS.from_dict({'proj': 'longlat', 'R': EARTH_RADII[shape]})
        if shape == 1:
            radius = (self.section3.scaled_value_of_radius_of_spherical_earth
                      / 10 ** self.section3.scale_factor_of_radius_of_spherical_earth)
            return pyproj.CRS.from_dict({'proj': 'longlat', 'R': radius})
        if shape in EARTH_ELLIPSOIDS:
            return pyproj.CRS.from_dict({'proj': 'longlat',
                                         'ellps': EARTH_ELLIPSOIDS[shape]})
        raise NotImplementedError(f'Shape of the earth {shape} not implemented.')

    def debug_info(self, file=None):
        """Write every section of the file in readable form."""
        if file is None:
            file = sys.stdout
        for section in (self.section0, self.section1, self.section2, self.section3):
            debug_info(section, file)
            print(file=file)
        for key, sections in self.products.items():
            print(f'{self._describe_key(key)}:', file=file)
            for section in sections:
                debug_info(section, file)
                print(file=file)
        debug_info(self.section8, file)


class AnalysisRainfall(Grib2File):
    """Radar/rain gauge analyzed precipitation."""

    product_template = ProductTemplate.radar_analysis
    name = 'precipitation'


class LandslideWarning(Grib2File):
    """Landslide warning judgement mesh."""

    product_template = ProductTemplate.processed
    signed_levels = True
    name = 'landslide_warning'


class SoilWaterIndex(Grib2File):
    """Soil water index analysis for all tanks, the first tank and the second tank."""

    product_template = ProductTemplate.default
    product_keys = tuple(SwiTank)
    name = 'soil_water_index'

    def _normalize_key(self, key):
        return SwiTank(key)

    def _describe_key(self, key):
        return f'{key.name} tank'


class SoilWaterIndexForecast(Grib2File):
    """Soil water index forecast for 1 through 6 hours ahead.

    Products are keyed by ``(hour, tank)``.
    """

    product_template = ProductTemplate.default
    product_keys = tuple((hour, tank) for hour in FORECAST_HOURS for tank in SwiTank)
    name = 'soil_water_index'

    def _normalize_key(self, key):
        hour, tank = key
        return hour, SwiTank(tank)

    def _describe_key(self, key):
        hour, tank = key
        return f'{hour} hour forecast, {tank.name} tank'


class PrecipitationForecast(Grib2File):
    """Short range precipitation forecast for 1 through 6 hours ahead."""

    product_template = ProductTemplate.radar_forecast
    product_keys = tuple(FORECAST_HOURS)
    name = 'precipitation'

    def _describe_key(self, key):
        return f'{key} hour forecast'
