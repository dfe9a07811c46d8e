#!/usr/bin/env python3
"""Stream Melodi CSV exports line by line, filtering rows and normalizing quotes.

Melodi exports are ';'-delimited with optional double quotes. The output
quotes every non-empty text field exactly once and leaves numeric columns
(TIME_PERIOD, OBS_VALUE) and empty fields bare:

    "GEO";TIME_PERIOD;"SEXE";OBS_VALUE
    "FR";2021;"M";10
"""

import io
import time
from pathlib import Path

from . import config
from .archive import open_largest_entry
from .errors import ArchiveError, MissingColumnError
from .log import should_report_progress


DELIMITER = ';'
NUMERIC_COLUMNS = {'TIME_PERIOD', 'OBS_VALUE'}


# === Functional Core (Pure Functions - No I/O) ===

def clean_field(value):
    """Strip every double quote and surrounding whitespace from a field."""
    return value.replace('"', '').strip()


def build_filter_sets(filters):
    """Convert a concept -> values mapping into concept -> set of cleaned values.

    Args:
        filters: Dict like {'GEO': ['FR', ' "DE" ']}

    Returns:
        Dict like {'GEO': {'FR', 'DE'}}
    """
    return {
        concept: {clean_field(v) for v in values}
        for concept, values in (filters or {}).items()
    }


def format_field(value, numeric):
    """Quote a cleaned field unless it is empty or numeric."""
    if value == '':
        return ''
    if numeric:
        return value
    return f'"{value}"'


def transform_header(line, filter_sets):
    """Parse the header line and compute the column indices used per row.

    Args:
        line: Raw header line
        filter_sets: Dict of concept -> allowed values

    Returns:
        Tuple of (output_line, filter_indices, numeric_indices) where
        filter_indices maps each filtered column name to its position

    Raises:
        MissingColumnError: If TIME_PERIOD or OBS_VALUE is absent
    """
    names = [clean_field(c) for c in line.split(DELIMITER)]
    missing = sorted(NUMERIC_COLUMNS.difference(names))
    if missing:
        raise MissingColumnError(f"Missing required column(s) {missing} in header: {names}")

    filter_indices = {}
    numeric_indices = set()
    for i, name in enumerate(names):
        if name in filter_sets and name not in filter_indices:
            filter_indices[name] = i
        if name in NUMERIC_COLUMNS:
            numeric_indices.add(i)

    header = DELIMITER.join(
        name if i in numeric_indices else f'"{name}"'
        for i, name in enumerate(names)
    )
    return header, filter_indices, numeric_indices


def row_matches_filters(fields, filter_indices, filter_sets):
    """Check that every filtered column holds an allowed value.

    Args:
        fields: Raw (uncleaned) row fields
        filter_indices: Dict of column name -> position
        filter_sets: Dict of column name -> allowed values

    Returns:
        True if the row passes all filters (always True without filters)
    """
    for name, idx in filter_indices.items():
        value = clean_field(fields[idx]) if idx < len(fields) else ''
        if value not in filter_sets[name]:
            return False
    return True


def transform_row(fields, numeric_indices):
    """Rewrite a row with normalized quoting."""
    return DELIMITER.join(
        format_field(clean_field(col), i in numeric_indices)
        for i, col in enumerate(fields)
    )


def filter_csv_lines(lines, filter_sets):
    """Filter and normalize an iterable of CSV lines.

    The first non-empty line is the header; blank lines are skipped.
    Output preserves input order.

    Args:
        lines: Iterable of text lines (trailing newlines allowed)
        filter_sets: Dict of concept -> allowed values (see build_filter_sets)

    Yields:
        Output lines without trailing newline, header first

    Raises:
        MissingColumnError: If the header lacks TIME_PERIOD or OBS_VALUE
            (before any yield)
    """
    header_seen = False
    filter_indices = {}
    numeric_indices = set()

    for line in lines:
        line = line.rstrip('\r\n')
        if not line.strip():
            continue

        if not header_seen:
            header, filter_indices, numeric_indices = transform_header(line, filter_sets)
            header_seen = True
            yield header
            continue

        fields = line.split(DELIMITER)
        if row_matches_filters(fields, filter_indices, filter_sets):
            yield transform_row(fields, numeric_indices)

    if not header_seen:
        raise MissingColumnError("CSV source has no header line")


# === I/O Layer ===

def write_filtered_csv(lines, filter_sets, dest_path, log, label, clock=time.monotonic):
    """Write filtered lines to `dest_path`; the file is removed on failure.

    Args:
        lines: Iterable of input text lines
        filter_sets: Dict of concept -> allowed values
        dest_path: Output CSV path
        log: Logger exposing task() and progress()
        label: Name used for the progress task
        clock: Monotonic clock used to throttle progress reports

    Returns:
        Tuple of (dest_path, rows_written) where rows_written excludes the header
    """
    dest_path = Path(dest_path)
    task_name = f"filter {label}"
    log.task(task_name, 'Filtering...', None)

    lines_written = 0
    last_reported = clock()
    try:
        with dest_path.open('w', encoding='utf-8', newline='') as out:
            for out_line in filter_csv_lines(lines, filter_sets):
                out.write(out_line + '\n')
                lines_written += 1

                now = clock()
                if should_report_progress(now, last_reported, config.PROGRESS_INTERVAL):
                    last_reported = now
                    log.progress(task_name, lines_written - 1)
    except BaseException:
        dest_path.unlink(missing_ok=True)
        raise

    rows_written = lines_written - 1  # header excluded
    log.progress(task_name, rows_written)
    return dest_path, rows_written


def extract_csv_with_filters(zip_path, filters, dest_dir, resource_id, log):
    """Filter the data CSV of an archive while decompressing it.

    The archive entry is streamed, never extracted whole. The ZIP file is
    deleted whether or not the extraction succeeds.

    Args:
        zip_path: Path to the downloaded ZIP
        filters: Dict of concept -> allowed values (from build_import_params)
        dest_dir: Directory receiving the CSV
        resource_id: Dataset identifier, used as output file name
        log: Logger exposing task(), progress() and error()

    Returns:
        Path to '<dest_dir>/<resource_id>.csv'

    Raises:
        ArchiveError: If the archive is unreadable or its data file is not UTF-8
        MissingColumnError: If a reserved column is absent
    """
    zip_path = Path(zip_path)
    dest_path = Path(dest_dir) / f"{resource_id}.csv"
    filter_sets = build_filter_sets(filters)

    try:
        with open_largest_entry(zip_path) as (info, stream):
            text = io.TextIOWrapper(stream, encoding='utf-8-sig')
            write_filtered_csv(text, filter_sets, dest_path, log, resource_id)
        return dest_path
    except UnicodeDecodeError as e:
        log.error(f"CSV extraction failed for {resource_id}: {e}")
        raise ArchiveError(f"Data file of {zip_path.name} is not valid UTF-8") from e
    except Exception as e:
        log.error(f"CSV extraction failed for {resource_id}: {e}")
        raise
    finally:
        zip_path.unlink(missing_ok=True)


def filter_csv_file(csv_path, filters, dest_path, log):
    """Filter a flat CSV file into `dest_path`, then delete the input file.

    Args:
        csv_path: Path to the source CSV (a temporary download)
        filters: Dict of concept -> allowed values
        dest_path: Output CSV path (must differ from csv_path)
        log: Logger exposing task(), progress() and error()

    Returns:
        Path of the filtered CSV
    """
    csv_path = Path(csv_path)
    dest_path = Path(dest_path)
    filter_sets = build_filter_sets(filters)

    try:
        with csv_path.open('r', encoding='utf-8-sig') as src:
            write_filtered_csv(src, filter_sets, dest_path, log, csv_path.stem)
        return dest_path
    except Exception as e:
        log.error(f"CSV filtering failed for {csv_path.name}: {e}")
        raise
    finally:
        csv_path.unlink(missing_ok=True)
