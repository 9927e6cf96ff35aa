# Copyright (c) 2025 Nathan Wendt.
# Distributed under the terms of the BSD 3-Clause License.
# SPDX-License-Identifier: BSD-3-Clause
"""Tools for reading JMA run-length compressed GRIB2 data."""

from .common import Grib2Error, NotFoundError, ReadError, SwiTank, UnexpectedFormatError
from .decode import (AnalysisRainfall, GridValue, LandslideWarning, open_value_stream,
                     PrecipitationForecast, SoilWaterIndex, SoilWaterIndexForecast)

__version__ = '0.1.0'
