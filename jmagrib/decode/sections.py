# Copyright (c) 2025 Nathan Wendt.
# Distributed under the terms of the BSD 3-Clause License.
# SPDX-License-Identifier: BSD-3-Clause
"""Readers for the sections and templates of JMA GRIB2 files.

Every ``parse_section*`` function takes a :class:`~jmagrib.tools.FileCursor`
positioned at the start of the section and returns an immutable record.
Sections 3, 4, 5 and 7 carry a template payload whose layout is selected by a
template number; unknown template numbers are rejected.
"""

from collections import namedtuple
import logging
import sys

from jmagrib.common import (EDITION_NUMBER, END_MARKER, GRIB_MAGIC, GridTemplate, NO_BITMAP,
                            ProductTemplate, RepresentationTemplate, SECTION1_BYTES,
                            SECTION3_HEADER_BYTES, SECTION4_HEADER_BYTES,
                            SECTION5_HEADER_BYTES, SECTION6_BYTES, SECTION7_HEADER_BYTES,
                            SECTION8_BYTES, UnexpectedFormatError)
from jmagrib.tools import NamedStruct, sign_magnitude

logger = logging.getLogger(__name__)

lat_lon_grid_fmt = [('shape_of_earth', 'B'),
                    ('scale_factor_of_radius_of_spherical_earth', 'B'),
                    ('scaled_value_of_radius_of_spherical_earth', 'I'),
                    ('scale_factor_of_earth_major_axis', 'B'),
                    ('scaled_value_of_earth_major_axis', 'I'),
                    ('scale_factor_of_earth_minor_axis', 'B'),
                    ('scaled_value_of_earth_minor_axis', 'I'),
                    ('number_of_along_lat_points', 'I'),
                    ('number_of_along_lon_points', 'I'),
                    ('basic_angle_of_initial_product_domain', 'I'),
                    ('subdivisions_of_basic_angle', 'I'),
                    ('lat_of_first_grid_point', 'I', sign_magnitude),
                    ('lon_of_first_grid_point', 'I'),
                    ('resolution_and_component_flags', 'B'),
                    ('lat_of_last_grid_point', 'I', sign_magnitude),
                    ('lon_of_last_grid_point', 'I'),
                    ('i_direction_increment', 'I'),
                    ('j_direction_increment', 'I'),
                    ('scanning_mode', 'B')]

product_fmt = [('parameter_category', 'B'), ('parameter_number', 'B'),
               ('type_of_generating_process', 'B'), ('background_process', 'B'),
               ('generating_process_identifier', 'B'), ('hours_after_data_cutoff', 'H'),
               ('minutes_after_data_cutoff', 'B'), ('indicator_of_unit_of_time_range', 'B'),
               ('forecast_time', 'I', sign_magnitude),
               ('type_of_first_fixed_surface', 'B'),
               ('scale_factor_of_first_fixed_surface', 'B'),
               ('scaled_value_of_first_fixed_surface', 'I'),
               ('type_of_second_fixed_surface', 'B'),
               ('scale_factor_of_second_fixed_surface', 'B'),
               ('scaled_value_of_second_fixed_surface', 'I')]

source_documents_fmt = [('source_document1', 'B'), ('hours_from_source_document1', 'H'),
                        ('minutes_from_source_document1', 'B'),
                        ('source_document2', 'B'), ('hours_from_source_document2', 'H'),
                        ('minutes_from_source_document2', 'B')]

statistics_fmt = [('number_of_time_range_specs', 'B'), ('number_of_missing_values', 'I'),
                  ('type_of_stat_proc', 'B'), ('type_of_stat_proc_time_increment', 'B'),
                  ('stat_proc_time_unit', 'B'), ('stat_proc_time_length', 'I'),
                  ('successive_time_unit', 'B'), ('successive_time_increment', 'I'),
                  ('radar_info1', 'Q'), ('radar_info2', 'Q'), ('rain_gauge_info', 'Q')]

combined_ratio_fmt = [('number_of_calculation_areas', 'H'),
                      ('scale_factor_of_combined_ratio', 'B')]

run_length_fmt = [('max_level_value', 'H'), ('number_of_level_values', 'H'),
                  ('decimal_scale_factor', 'B')]

LAT_LON_GRID = NamedStruct(lat_lon_grid_fmt, '>', 'LatLonGrid')
DEFAULT_PRODUCT = NamedStruct(product_fmt, '>', 'DefaultProduct')
PROCESSED_PRODUCT = NamedStruct(product_fmt + source_documents_fmt, '>', 'ProcessedProduct')
STATISTICS = NamedStruct(statistics_fmt, '>', 'Statistics')
COMBINED_RATIO = NamedStruct(combined_ratio_fmt, '>', 'CombinedRatio')
RUN_LENGTH = NamedStruct(run_length_fmt, '>', 'RunLength')

LatLonGrid = LAT_LON_GRID.tuple_type
DefaultProduct = DEFAULT_PRODUCT.tuple_type
ProcessedProduct = PROCESSED_PRODUCT.tuple_type
RadarAnalysisProduct = namedtuple(
    'RadarAnalysisProduct',
    DEFAULT_PRODUCT.fields + ('end_of_all_time_intervals',) + STATISTICS.fields
)
RadarForecastProduct = namedtuple(
    'RadarForecastProduct',
    RadarAnalysisProduct._fields + COMBINED_RATIO.fields
    + ('combined_ratios_of_forecast_areas',)
)
RunLengthRepresentation = namedtuple('RunLengthRepresentation',
                                     RUN_LENGTH.fields + ('level_values',))
RunLengthData = namedtuple('RunLengthData', ['run_length_position', 'run_length_bytes'])


class _TemplateSection:
    """Expose the fields of a section's template as attributes of the section."""

    __slots__ = ()

    def __getattr__(self, name):
        if name.startswith('_') or name == 'template':
            raise AttributeError(name)
        return getattr(self.template, name)


Section0 = namedtuple('Section0', ['grib', 'reserved', 'discipline', 'edition_number',
                                   'total_length'])

Section1 = namedtuple('Section1', ['section_bytes', 'center', 'sub_center', 'table_version',
                                   'local_table_version', 'significance_of_reference_time',
                                   'referenced_at', 'production_status_of_processed_data',
                                   'type_of_processed_data'])

Section2 = namedtuple('Section2', ['section_bytes', 'local_use'])


class Section3(_TemplateSection,
               namedtuple('Section3', ['section_bytes', 'source_of_grid_definition',
                                       'number_of_data_points',
                                       'number_of_octets_for_number_of_points',
                                       'interpretation_of_number_of_points',
                                       'grid_definition_template_number', 'template'])):
    """Grid definition section."""

    __slots__ = ()


class Section4(_TemplateSection,
               namedtuple('Section4', ['section_bytes', 'number_of_after_template_points',
                                       'product_definition_template_number', 'template'])):
    """Product definition section."""

    __slots__ = ()


class Section5(_TemplateSection,
               namedtuple('Section5', ['section_bytes', 'number_of_values',
                                       'data_representation_template_number',
                                       'bits_per_value', 'template'])):
    """Data representation section."""

    __slots__ = ()


Section6 = namedtuple('Section6', ['section_bytes', 'bitmap_indicator'])


class Section7(_TemplateSection, namedtuple('Section7', ['section_bytes', 'template'])):
    """Data section."""

    __slots__ = ()


Section8 = namedtuple('Section8', ['end_marker'])


def _remaining_bytes(section_bytes, header_bytes, number):
    """Return the template size implied by a declared section length."""
    remaining = section_bytes - header_bytes
    if remaining < 0:
        raise UnexpectedFormatError(
            f'Section {number}: declared length {section_bytes} is shorter than '
            f'its {header_bytes} byte header.'
        )
    return remaining


def _check_section_length(cursor, start, section_bytes, number):
    """Verify that a section consumed exactly its declared length."""
    consumed = cursor.bytes_read - start
    if consumed != section_bytes:
        raise UnexpectedFormatError(
            f'Section {number}: declared length is {section_bytes} bytes '
            f'but {consumed} bytes were read.'
        )


def _dispatch(templates, template_number, name):
    """Select the reader registered for a template number."""
    try:
        return templates[template_number]
    except KeyError:
        raise UnexpectedFormatError(
            f'{name} {template_number} is not supported '
            f'(expected one of {sorted(int(n) for n in templates)}).'
        ) from None


def parse_section0(cursor):
    """Read Section 0 (indicator section)."""
    grib = cursor.validate_string(4, GRIB_MAGIC, 'Section 0: GRIB')
    reserved = cursor.read_u16('Section 0: reserved')
    discipline = cursor.read_u8('Section 0: discipline')
    edition_number = cursor.validate_u8(EDITION_NUMBER, 'Section 0: edition number')
    total_length = cursor.read_u64('Section 0: total length')

    return Section0(grib, reserved, discipline, edition_number, total_length)


def parse_section1(cursor):
    """Read Section 1 (identification section)."""
    section_bytes = cursor.validate_u32(SECTION1_BYTES, 'Section 1: section length')
    cursor.validate_u8(1, 'Section 1: section number')
    center = cursor.read_u16('Section 1: originating center')
    sub_center = cursor.read_u16('Section 1: originating sub-center')
    table_version = cursor.read_u8('Section 1: master table version')
    local_table_version = cursor.read_u8('Section 1: local table version')
    significance = cursor.read_u8('Section 1: significance of reference time')
    referenced_at = cursor.read_datetime('Section 1: reference time')
    production_status = cursor.read_u8('Section 1: production status')
    data_type = cursor.read_u8('Section 1: type of processed data')

    return Section1(section_bytes, center, sub_center, table_version, local_table_version,
                    significance, referenced_at, production_status, data_type)


def parse_section2(cursor):
    """Read Section 2 (local use section) if the file carries one.

    The section is optional. When the next section is not numbered 2 nothing
    is consumed and an empty section is returned.
    """
    header = cursor.peek(5)
    if len(header) < 5 or header[4] != 2:
        return Section2(0, b'')

    start = cursor.bytes_read
    section_bytes = cursor.read_u32('Section 2: section length')
    cursor.validate_u8(2, 'Section 2: section number')
    local_use = cursor.read(_remaining_bytes(section_bytes, 5, 2), 'Section 2: local use')
    _check_section_length(cursor, start, section_bytes, 2)

    return Section2(section_bytes, local_use)


def _read_lat_lon_grid(cursor, template_bytes):
    return cursor.read_struct(LAT_LON_GRID, 'Section 3: template 3.0')


GRID_TEMPLATES = {
    GridTemplate.lat_lon: _read_lat_lon_grid,
}


def parse_section3(cursor):
    """Read Section 3 (grid definition section)."""
    start = cursor.bytes_read
    section_bytes = cursor.read_u32('Section 3: section length')
    cursor.validate_u8(3, 'Section 3: section number')
    source = cursor.read_u8('Section 3: source of grid definition')
    number_of_data_points = cursor.read_u32('Section 3: number of data points')
    octets = cursor.read_u8('Section 3: number of octets for optional list')
    interpretation = cursor.read_u8('Section 3: interpretation of optional list')
    template_number = cursor.read_u16('Section 3: grid definition template number')
    reader = _dispatch(GRID_TEMPLATES, template_number,
                       'Section 3: grid definition template number')
    template = reader(cursor, _remaining_bytes(section_bytes, SECTION3_HEADER_BYTES, 3))
    _check_section_length(cursor, start, section_bytes, 3)

    if template.scanning_mode != 0:
        logger.warning('Scanning mode 0x%02X is not supported; values are traversed '
                       'west to east and north to south.', template.scanning_mode)

    return Section3(section_bytes, source, number_of_data_points, octets, interpretation,
                    template_number, template)


def _read_default_product(cursor, template_bytes):
    return cursor.read_struct(DEFAULT_PRODUCT, 'Section 4: template 4.0')


def _read_processed_product(cursor, template_bytes):
    return cursor.read_struct(PROCESSED_PRODUCT, 'Section 4: template 4.50000')


def _read_statistical_fields(cursor, name):
    """Read the product fields shared by the radar analysis and forecast templates."""
    product = cursor.read_struct(DEFAULT_PRODUCT, name)
    end_of_all_time_intervals = cursor.read_datetime(f'{name}: end of all time intervals')
    statistics = cursor.read_struct(STATISTICS, name)
    return product + (end_of_all_time_intervals,) + statistics


def _read_radar_analysis_product(cursor, template_bytes):
    return RadarAnalysisProduct(
        *_read_statistical_fields(cursor, 'Section 4: template 4.50008')
    )


def _read_radar_forecast_product(cursor, template_bytes):
    name = 'Section 4: template 4.50009'
    start = cursor.bytes_read
    fields = _read_statistical_fields(cursor, name)
    ratio = cursor.read_struct(COMBINED_RATIO, name)

    remaining = template_bytes - (cursor.bytes_read - start)
    if remaining != 2 * ratio.number_of_calculation_areas:
        raise UnexpectedFormatError(
            f'{name}: {ratio.number_of_calculation_areas} combined ratios need '
            f'{2 * ratio.number_of_calculation_areas} bytes but the section declares '
            f'{remaining} remaining bytes.'
        )
    ratios = tuple(cursor.read_u16(f'{name}: combined ratio {n + 1}')
                   for n in range(ratio.number_of_calculation_areas))

    return RadarForecastProduct(*fields, *ratio, ratios)


PRODUCT_TEMPLATES = {
    ProductTemplate.default: _read_default_product,
    ProductTemplate.processed: _read_processed_product,
    ProductTemplate.radar_analysis: _read_radar_analysis_product,
    ProductTemplate.radar_forecast: _read_radar_forecast_product,
}


def parse_section4(cursor, expected_template=None):
    """Read Section 4 (product definition section).

    Parameters
    ----------
    cursor : FileCursor
        Cursor positioned at the start of the section.

    expected_template : int, optional
        Product definition template number the caller requires. Any other
        template number is an error.

    Returns
    -------
    Section4
    """
    start = cursor.bytes_read
    section_bytes = cursor.read_u32('Section 4: section length')
    cursor.validate_u8(4, 'Section 4: section number')
    after_template_points = cursor.read_u16('Section 4: number of coordinate values')
    template_number = cursor.read_u16('Section 4: product definition template number')
    if expected_template is not None and template_number != expected_template:
        raise UnexpectedFormatError(
            f'Section 4: product definition template number must be '
            f'{int(expected_template)} but was {template_number}.'
        )
    reader = _dispatch(PRODUCT_TEMPLATES, template_number,
                       'Section 4: product definition template number')
    template = reader(cursor, _remaining_bytes(section_bytes, SECTION4_HEADER_BYTES, 4))
    _check_section_length(cursor, start, section_bytes, 4)

    return Section4(section_bytes, after_template_points, template_number, template)


def _read_run_length_representation(cursor, template_bytes, signed_levels=False):
    name = 'Section 5: template 5.200'
    header = cursor.read_struct(RUN_LENGTH, name)
    table_bytes = template_bytes - RUN_LENGTH.size
    if table_bytes < 0 or table_bytes % 2:
        raise UnexpectedFormatError(
            f'{name}: {table_bytes} bytes cannot hold a table of 2 byte level values.'
        )
    read_level = cursor.read_i16 if signed_levels else cursor.read_u16
    level_values = tuple(read_level(f'{name}: value of level {m}')
                         for m in range(1, table_bytes // 2 + 1))

    return RunLengthRepresentation(*header, level_values)


REPRESENTATION_TEMPLATES = {
    RepresentationTemplate.run_length: _read_run_length_representation,
}


def parse_section5(cursor, signed_levels=False):
    """Read Section 5 (data representation section).

    ``signed_levels`` reads the level value table as signed 16-bit integers,
    which some products (landslide warning judgement) use.
    """
    start = cursor.bytes_read
    section_bytes = cursor.read_u32('Section 5: section length')
    cursor.validate_u8(5, 'Section 5: section number')
    number_of_values = cursor.read_u32('Section 5: number of values')
    template_number = cursor.read_u16('Section 5: data representation template number')
    bits_per_value = cursor.read_u8('Section 5: bits per value')
    reader = _dispatch(REPRESENTATION_TEMPLATES, template_number,
                       'Section 5: data representation template number')
    template = reader(cursor, _remaining_bytes(section_bytes, SECTION5_HEADER_BYTES, 5),
                      signed_levels=signed_levels)
    _check_section_length(cursor, start, section_bytes, 5)

    return Section5(section_bytes, number_of_values, template_number, bits_per_value,
                    template)


def parse_section6(cursor):
    """Read Section 6 (bitmap section)."""
    section_bytes = cursor.validate_u32(SECTION6_BYTES, 'Section 6: section length')
    cursor.validate_u8(6, 'Section 6: section number')
    bitmap_indicator = cursor.read_u8('Section 6: bitmap indicator')
    if bitmap_indicator != NO_BITMAP:
        logger.warning('Bitmap indicator %d found; bitmaps are not applied.',
                       bitmap_indicator)

    return Section6(section_bytes, bitmap_indicator)


def _read_run_length_data(cursor, template_bytes):
    # Only the location of the payload is kept; the bytes are decoded lazily.
    run_length_position = cursor.tell()
    cursor.skip(template_bytes, 'Section 7: run length data')
    return RunLengthData(run_length_position, template_bytes)


DATA_TEMPLATES = {
    RepresentationTemplate.run_length: _read_run_length_data,
}


def parse_section7(cursor, template_number=RepresentationTemplate.run_length):
    """Read Section 7 (data section).

    The data template is not stored in the section itself; ``template_number``
    is the data representation template number from the matching Section 5.
    """
    start = cursor.bytes_read
    section_bytes = cursor.read_u32('Section 7: section length')
    cursor.validate_u8(7, 'Section 7: section number')
    reader = _dispatch(DATA_TEMPLATES, template_number,
                       'Section 7: data representation template number')
    template = reader(cursor, _remaining_bytes(section_bytes, SECTION7_HEADER_BYTES, 7))
    _check_section_length(cursor, start, section_bytes, 7)

    return Section7(section_bytes, template)


def parse_section8(cursor):
    """Read Section 8 (end section)."""
    end_marker = cursor.validate_string(SECTION8_BYTES, END_MARKER, 'Section 8: end marker')

    return Section8(end_marker)


SECTION_TITLES = {
    'Section0': (0, 'Indicator Section'),
    'Section1': (1, 'Identification Section'),
    'Section2': (2, 'Local Use Section'),
    'Section3': (3, 'Grid Definition Section'),
    'Section4': (4, 'Product Definition Section'),
    'Section5': (5, 'Data Representation Section'),
    'Section6': (6, 'Bit-Map Section'),
    'Section7': (7, 'Data Section'),
    'Section8': (8, 'End Section'),
}

FIELD_FORMATS = {
    'section_bytes': '0x{:04X}',
    'total_length': '0x{:08X}',
    'radar_info1': '0x{:016X}',
    'radar_info2': '0x{:016X}',
    'rain_gauge_info': '0x{:016X}',
    'run_length_position': '0x{:08X}',
    'run_length_bytes': '0x{:08X}',
    'scanning_mode': '0x{:02X}',
    'resolution_and_component_flags': '0x{:02X}',
}

SERIAL_LABELS = {
    'level_values': 'level {}',
    'combined_ratios_of_forecast_areas': 'area {}',
}


def _field_label(name):
    return name.replace('_', ' ').capitalize()


def _write_fields(record, file, indent):
    pad = ' ' * indent
    for name, value in zip(record._fields, record):
        if name == 'template':
            print(f'{pad}Template ({type(value).__name__}):', file=file)
            _write_fields(value, file, indent + 4)
        elif name in SERIAL_LABELS:
            print(f'{pad}{_field_label(name)}:', file=file)
            for n, item in enumerate(value, start=1):
                print(f'{pad}    {SERIAL_LABELS[name].format(n)}: {item}', file=file)
        elif name == 'local_use':
            print(f'{pad}{_field_label(name)}: {len(value)} bytes', file=file)
        else:
            fmt = FIELD_FORMATS.get(name, '{}')
            print(f'{pad}{_field_label(name)}: {fmt.format(value)}', file=file)


def debug_info(section, file=None):
    """Write a human readable dump of a section record.

    Parameters
    ----------
    section : namedtuple
        Any record returned by the ``parse_section*`` functions.

    file : file-like, optional
        Destination for the text. Defaults to standard output.
    """
    if file is None:
        file = sys.stdout
    number, title = SECTION_TITLES[type(section).__name__]
    print(f'Section {number}: {title}', file=file)
    _write_fields(section, file, 4)
