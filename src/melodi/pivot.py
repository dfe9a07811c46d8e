#!/usr/bin/env python3
"""Pivot a long-format Melodi CSV into a wide table.

Each output row is one combination of the kept columns (geography + period
by default); each output column is one combination of pivot concept values.
Observations landing in the same cell are summed:

    GEO;TIME_PERIOD;SEXE;OBS_VALUE
    FR;2021;M;10                  ->      geo;time_period;f;m
    FR;2021;F;20                          "FR";2021;20;10
"""

import re
import time
import unicodedata
from decimal import Decimal, InvalidOperation
from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.csv as pa_csv

from . import config
from .errors import CsvFormatError, MissingColumnError
from .log import should_report_progress
from .schema import generate_pivot_schema, geo_columns, value_labels


DELIMITER = ';'
OBS_COLUMN = 'OBS_VALUE'
DEFAULT_COLUMN = 'value'
DEFAULT_TITLE = 'Valeur'
TRAILING_CONCEPT_MARKERS = ('age', 'sex')  # 'sex' also matches 'sexe'

_COMBINING_MARKS = re.compile('[\u0300-\u036f]')
_NON_ALNUM = re.compile('[^a-z0-9]')


# === Functional Core (Pure Functions - No I/O) ===

def build_labels_map(range_table):
    """Index range-table labels by concept then value code.

    Returns:
        Dict like {'SEXE': {'M': 'Hommes'}, 'AGE': {'Y15': '15 ans'}}
    """
    return {
        dim['concept']['code']: value_labels(dim)
        for dim in (range_table or [])
    }


def is_trailing_concept(concept):
    """Age and sex breakdowns always form the last segments of column names."""
    lowered = concept.lower()
    return any(marker in lowered for marker in TRAILING_CONCEPT_MARKERS)


def sort_pivot_concepts(pivot_concepts):
    """Move age/sex concepts after the others, keeping relative order."""
    return sorted(pivot_concepts, key=is_trailing_concept)


def clean_pivot_value(value):
    """Lowercase, strip accents and keep only [a-z0-9]: 'Île-de-France' -> 'iledefrance'."""
    decomposed = unicodedata.normalize('NFD', value.lower())
    return _NON_ALNUM.sub('', _COMBINING_MARKS.sub('', decomposed))


def skip_blank_rows(row):
    """Invalid-row handler: drop whitespace-only lines, reject any other malformed row."""
    return 'skip' if not (row.text or '').strip() else 'error'


def create_parse_options():
    """Create PyArrow ParseOptions for Melodi ';'-delimited exports."""
    return pa_csv.ParseOptions(
        delimiter=DELIMITER,
        ignore_empty_lines=True,
        invalid_row_handler=skip_blank_rows
    )


def create_read_options():
    """Create PyArrow ReadOptions with UTF-8 encoding."""
    return pa_csv.ReadOptions(encoding='utf8')


def create_column_type_map(column_names):
    """Map each column name to pa.string() so no value is type-converted."""
    return {col: pa.string() for col in column_names}


def column_index_map(column_names):
    """Map each column name to its first position in the header (BOM and spaces trimmed)."""
    col_indices = {}
    for i, name in enumerate(column_names):
        col_indices.setdefault(name.lstrip('\ufeff').strip(), i)
    return col_indices


def batch_rows(batch):
    """Yield the rows of a RecordBatch as lists of whitespace-trimmed strings."""
    columns = [batch.column(i).to_pylist() for i in range(batch.num_columns)]
    for values in zip(*columns):
        yield ['' if value is None else str(value).strip() for value in values]


def field_at(cols, idx):
    if idx is None or idx >= len(cols):
        return ''
    return cols[idx]


def pivot_column(cols, col_indices, sorted_concepts, labels_map):
    """Compute the output column of a row from its pivot concept values.

    Args:
        cols: Cleaned row fields
        col_indices: Dict of header name -> position
        sorted_concepts: Pivot concepts, already ordered by sort_pivot_concepts
        labels_map: Labels from build_labels_map

    Returns:
        Tuple of (column_key, column_title), ('value', 'Valeur') when no
        pivot concept is present in the header
    """
    key_parts = []
    title_parts = []
    for concept in sorted_concepts:
        idx = col_indices.get(concept)
        if idx is None:
            continue
        value = field_at(cols, idx)
        key_parts.append(clean_pivot_value(value))
        title_parts.append(labels_map.get(concept, {}).get(value) or value)

    if not key_parts:
        return DEFAULT_COLUMN, DEFAULT_TITLE
    return ''.join(key_parts), ' - '.join(title_parts)


def parse_number(value):
    """Parse an observation value with either ',' or '.' as decimal separator.

    Args:
        value: Raw observation (str or None)

    Returns:
        Decimal value, 0 for empty or unparseable input
    """
    if not value:
        return Decimal(0)
    try:
        number = Decimal(value.strip().replace(',', '.'))
    except InvalidOperation:
        return Decimal(0)
    return number if number.is_finite() else Decimal(0)


def format_number(number):
    """Render a Decimal without exponent: Decimal('10') -> '10'."""
    text = format(number, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text if text not in ('', '-0') else '0'


def accumulate(buffer, row_key, keep_values, column, value):
    """Add an observation to the (row_key, column) cell of the pivot buffer.

    The kept values of a row key are captured on first sight only.

    Args:
        buffer: Dict of row_key -> {'keep': [...], 'cells': {column: str}}
        row_key: '|'-joined kept values
        keep_values: Kept column values of the current row
        column: Synthesized column key
        value: Raw observation value
    """
    record = buffer.get(row_key)
    if record is None:
        record = {'keep': list(keep_values), 'cells': {}}
        buffer[row_key] = record

    previous = parse_number(record['cells'].get(column, '0'))
    record['cells'][column] = format_number(previous + parse_number(value))


def format_output_row(record, quoted_positions, dynamic_columns):
    """Render one wide row: kept values, then one cell per dynamic column ('0' if absent)."""
    row = []
    for i, value in enumerate(record['keep']):
        row.append(f'"{value}"' if i in quoted_positions and value != '' else value)
    for column in dynamic_columns:
        row.append(record['cells'].get(column, '0'))
    return DELIMITER.join(row)


# === I/O Layer ===

def read_header(csv_path):
    """Read the column names of a ';'-delimited CSV without loading its rows.

    Raises:
        MissingColumnError: If the file holds no header at all
    """
    try:
        df_header = pd.read_csv(csv_path, sep=DELIMITER, nrows=0, encoding='utf-8-sig')
    except pd.errors.EmptyDataError as e:
        raise MissingColumnError(f"Missing required column {OBS_COLUMN}: source is empty") from e
    return df_header.columns.tolist()


def pivot_csv(source_csv_path, dest_dir, resource_id, pivot_concepts, range_table, log,
              nb_lines=None, columns_to_keep=('GEO', 'TIME_PERIOD'), clock=time.monotonic):
    """Pivot a flat CSV into '<dest_dir>/<resource_id>_export.csv'.

    The source is streamed in record batches with every column read as a
    string, so codes like '01' keep their leading zeros. The source file is
    a temporary intermediate and is always deleted. The output is removed if
    the transformation fails.

    Args:
        source_csv_path: Flat ';'-delimited CSV with an OBS_VALUE column
        dest_dir: Directory receiving the pivoted CSV
        resource_id: Dataset identifier, used as output file name
        pivot_concepts: Columns whose values become output columns
        range_table: Range-table entries used for labels and geo detection
        log: Logger exposing task(), progress() and error()
        nb_lines: Expected number of rows, for progress reporting only
        columns_to_keep: Columns identifying an output row, in output order
        clock: Monotonic clock used to throttle progress reports

    Returns:
        Tuple of (output_path, schema)

    Raises:
        MissingColumnError: If the source has no OBS_VALUE column
        CsvFormatError: If a row is malformed or the source is not UTF-8
    """
    source_csv_path = Path(source_csv_path)
    output_path = Path(dest_dir) / f"{resource_id}_export.csv"
    columns_to_keep = list(columns_to_keep)
    task_name = f"pivot {resource_id}"

    labels_map = build_labels_map(range_table)
    sorted_concepts = sort_pivot_concepts(pivot_concepts)

    buffer = {}
    dynamic_headers = {}

    log.task(task_name, 'Transforming...', nb_lines)
    rows_read = 0
    last_reported = clock()

    try:
        column_names = read_header(source_csv_path)
        if OBS_COLUMN not in column_index_map(column_names):
            raise MissingColumnError(
                f"Missing required column {OBS_COLUMN} in header: {column_names}"
            )

        convert_options = pa_csv.ConvertOptions(
            column_types=create_column_type_map(column_names),
            strings_can_be_null=False
        )
        with pa_csv.open_csv(
            source_csv_path,
            parse_options=create_parse_options(),
            convert_options=convert_options,
            read_options=create_read_options()
        ) as reader:
            col_indices = column_index_map(reader.schema.names)
            keep_indices = [col_indices.get(c) for c in columns_to_keep]
            obs_index = col_indices[OBS_COLUMN]

            for batch in reader:
                for cols in batch_rows(batch):
                    keep_values = [field_at(cols, idx) for idx in keep_indices]
                    column, title = pivot_column(cols, col_indices, sorted_concepts, labels_map)
                    accumulate(buffer, '|'.join(keep_values), keep_values, column,
                               field_at(cols, obs_index))
                    dynamic_headers.setdefault(column, title)

                rows_read += batch.num_rows
                now = clock()
                if should_report_progress(now, last_reported, config.PROGRESS_INTERVAL):
                    last_reported = now
                    log.progress(task_name, rows_read, nb_lines)

        dynamic_columns = sorted(dynamic_headers)
        geo = geo_columns(range_table, columns_to_keep)
        quoted_positions = {i for i, c in enumerate(columns_to_keep) if c in geo}

        with output_path.open('w', encoding='utf-8', newline='') as out:
            header = [c.lower() for c in columns_to_keep] + dynamic_columns
            out.write(DELIMITER.join(header) + '\n')
            for record in buffer.values():
                out.write(format_output_row(record, quoted_positions, dynamic_columns) + '\n')

        log.progress(task_name, nb_lines or rows_read, nb_lines or rows_read)
    except (pa.ArrowInvalid, UnicodeDecodeError) as e:
        output_path.unlink(missing_ok=True)
        log.error(f"Pivot failed for {resource_id}: {e}")
        raise CsvFormatError(f"Unreadable CSV source for {resource_id}: {e}") from e
    except BaseException as e:
        output_path.unlink(missing_ok=True)
        log.error(f"Pivot failed for {resource_id}: {e}")
        raise
    finally:
        source_csv_path.unlink(missing_ok=True)

    schema = generate_pivot_schema(columns_to_keep, dynamic_headers, range_table)
    return output_path, schema
