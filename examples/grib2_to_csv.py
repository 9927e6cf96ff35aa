# Copyright (c) 2025 Nathan Wendt.
# Distributed under the terms of the BSD 3-Clause License.
# SPDX-License-Identifier: BSD-3-Clause
"""Write the values of a JMA GRIB2 product to CSV.

Example::

    python grib2_to_csv.py analysis_rainfall.bin rainfall.csv
    python grib2_to_csv.py --product swi --key 1 swi.bin first_tank.csv
"""

import argparse
import logging
import sys

from jmagrib import (AnalysisRainfall, Grib2Error, LandslideWarning, PrecipitationForecast,
                     SoilWaterIndex)

READERS = {
    'arf': AnalysisRainfall,
    'lswj': LandslideWarning,
    'swi': SoilWaterIndex,
    'srpf': PrecipitationForecast,
}


def _build_parser():
    parser = argparse.ArgumentParser(
        description='Convert a JMA run-length compressed GRIB2 product to CSV.'
    )
    parser.add_argument('input', help='GRIB2 file to read')
    parser.add_argument('output', help='CSV file to write')
    parser.add_argument('-p', '--product', choices=sorted(READERS), default='arf',
                        help='Product stored in the file (default: arf)')
    parser.add_argument('-k', '--key', type=int, default=None,
                        help='Tank (swi) or forecast hour (srpf) to convert')
    parser.add_argument('--keep-missing', action='store_true',
                        help='Write grid points without a value')
    parser.add_argument('-v', '--verbose', action='store_true')
    return parser


def main(argv=None):
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        reader = READERS[args.product](args.input)
        df = reader.to_dataframe(args.key)
    except (Grib2Error, KeyError) as e:
        print(f'Error: {e}', file=sys.stderr)  # noqa: T201
        return 1

    if not args.keep_missing:
        df = df.dropna(subset=['value'])
    df[['lon', 'lat', 'value']].to_csv(args.output, index=False,
                                       header=['longitude', 'latitude', 'value'],
                                       float_format='%.6f')
    return 0


if __name__ == '__main__':
    sys.exit(main())
