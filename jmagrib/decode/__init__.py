# Copyright (c) 2025 Nathan Wendt.
# Distributed under the terms of the BSD 3-Clause License.
# SPDX-License-Identifier: BSD-3-Clause
"""Decoders for GRIB2 sections, run-length values and products."""

from .products import (AnalysisRainfall, Grib2File, LandslideWarning, PrecipitationForecast,
                       SoilWaterIndex, SoilWaterIndexForecast)
from .values import GridValue, GridValueIterator, open_value_stream
