#!/usr/bin/env python3
"""Import one Melodi dataset as a local CSV resource.

Small datasets are fetched through the filtered CSV export; large ones are
downloaded as a ZIP and filtered locally. The result is optionally pivoted.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

import requests

from . import config
from .archive import extract_csv
from .csv_filter import extract_csv_with_filters
from .download import download_file_with_progress
from .errors import DownloadError, MelodiError, MetadataError
from .log import ConsoleLog
from .pivot import pivot_csv
from .schema import generate_standard_schema
from .utils import build_import_params, get_language_content, serialize_params
from .volume import count_rows, is_small_dataset


DEFAULT_COLUMNS_TO_KEEP = ('GEO', 'TIME_PERIOD')


@dataclass
class ImportConfig:
    """Per-resource import settings chosen by the user."""

    filters: list = field(default_factory=list)
    pivot_concepts: list = field(default_factory=list)
    use_dataset_title: bool = False
    columns_to_keep: tuple = DEFAULT_COLUMNS_TO_KEEP

    @classmethod
    def from_dict(cls, data):
        """Build from the host's importConfig dict (camelCase keys)."""
        data = data or {}
        return cls(
            filters=list(data.get('filters') or []),
            pivot_concepts=list(data.get('pivotConcepts') or []),
            use_dataset_title=bool(data.get('useDatasetTitle')),
            columns_to_keep=tuple(data.get('columnsToKeep') or DEFAULT_COLUMNS_TO_KEEP)
        )


# === Functional Core (Pure Functions - No I/O) ===

def resource_title(dataset, use_dataset_title):
    """Pick the resource title: dataset title or identifier, each falling back to the other."""
    title = get_language_content(dataset.get('title'))
    identifier = dataset.get('identifier')
    if use_dataset_title:
        return title or identifier or ''
    return identifier or title or ''


def build_resource(dataset, range_table, use_dataset_title):
    """Convert a Melodi dataset descriptor into a resource dict (without filePath).

    The first product gives size, format and origin of the data file.
    """
    products = dataset.get('product') or []
    first_file = products[0] if products else {}
    return {
        'id': dataset.get('identifier'),
        'title': resource_title(dataset, use_dataset_title),
        'description': get_language_content(dataset.get('description')),
        'updatedAt': dataset.get('modified'),
        'size': first_file.get('byteSize') or 0,
        'format': first_file.get('format') or 'unknown',
        'origin': first_file.get('accessURL') or '',
        'license': dict(config.LICENSE),
        'filePath': '',
        'schema': generate_standard_schema(range_table)
    }


def parse_filters_arg(text):
    """Parse 'GEO=FR,DE;SEXE=M' into filter configuration entries.

    Returns:
        List like [{'selectedConcept': 'GEO', 'selectedValues': ['FR', 'DE']}, ...]
    """
    filters = []
    for part in (text or '').split(';'):
        if '=' not in part:
            continue
        concept, values = part.split('=', 1)
        filters.append({
            'selectedConcept': concept.strip(),
            'selectedValues': [v.strip() for v in values.split(',') if v.strip()]
        })
    return filters


# === I/O Layer ===

def get_metadata(resource_id, import_config, log, api_base=config.API_BASE):
    """Fetch dataset descriptor and range table.

    Returns:
        Tuple of (resource dict, range table list)

    Raises:
        MetadataError: If either request fails
    """
    try:
        resp = requests.get(f"{api_base}/catalog/{resource_id}", headers=config.HEADERS,
                            timeout=config.REQUEST_TIMEOUT)
        resp.raise_for_status()
        dataset = resp.json()

        resp = requests.get(f"{api_base}/range/{resource_id}", headers=config.HEADERS,
                            timeout=config.REQUEST_TIMEOUT)
        resp.raise_for_status()
        range_table = resp.json().get('range') or []
    except (requests.RequestException, ValueError) as e:
        log.error(f"Error fetching Melodi dataset {resource_id}", str(e))
        raise MetadataError(
            f"Error fetching Melodi dataset metadata or range information for {resource_id}"
        ) from e

    return build_resource(dataset, range_table, import_config.use_dataset_title), range_table


def download_resource_csv(resource_id, filters, tmp_dir, log, api_base=config.API_BASE):
    """Download a small dataset through the filtered CSV export.

    Returns:
        Path to '<tmp_dir>/<resource_id>.csv'
    """
    params = {**filters, 'maxResult': config.MAX_RESULT}
    dest_file = Path(tmp_dir) / f"{resource_id}.csv"
    try:
        return download_file_with_progress(
            f"{api_base}/data/{resource_id}/to-csv", dest_file, resource_id, log,
            params=serialize_params(params)
        )
    except (requests.RequestException, OSError) as e:
        log.error("Error downloading Melodi CSV export", str(e))
        raise DownloadError(f"Failed to download Melodi dataset {resource_id} (API CSV)") from e


def download_resource_zip(resource_id, url, filters, tmp_dir, log):
    """Download the full ZIP of a large dataset and extract its data CSV.

    Rows are filtered during decompression when filters are configured.

    Returns:
        Path to '<tmp_dir>/<resource_id>.csv'
    """
    dest_file = Path(tmp_dir) / f"{resource_id}.zip"
    try:
        zip_path = download_file_with_progress(url, dest_file, resource_id, log)
        if filters:
            return extract_csv_with_filters(zip_path, filters, tmp_dir, resource_id, log)
        return extract_csv(zip_path, tmp_dir, resource_id)
    except (requests.RequestException, OSError, MelodiError) as e:
        log.error("Error downloading Melodi ZIP dataset", str(e))
        raise DownloadError(f"Failed to download Melodi dataset {resource_id} (ZIP)") from e


def get_resource(resource_id, import_config, tmp_dir, log, api_base=config.API_BASE,
                 threshold=config.SMALL_DATASET_THRESHOLD):
    """Fetch a dataset to a local CSV and describe it.

    Args:
        resource_id: Melodi dataset identifier
        import_config: ImportConfig (or the host's importConfig dict)
        tmp_dir: Working directory; the returned file lives here
        log: Logger exposing step(), info(), task(), progress() and error()
        api_base: Melodi API base URL
        threshold: Row count from which the ZIP download is used

    Returns:
        Resource dict with 'filePath' pointing to the final CSV
    """
    if not isinstance(import_config, ImportConfig):
        import_config = ImportConfig.from_dict(import_config)
    Path(tmp_dir).mkdir(parents=True, exist_ok=True)

    log.step('Downloading file')
    resource, range_table = get_metadata(resource_id, import_config, log, api_base)
    if not resource['origin']:
        raise MelodiError(f"Dataset {resource['id']} has no associated data file")

    filters = build_import_params(import_config.filters)
    nb_rows = count_rows(resource_id, log, filters, api_base)

    if is_small_dataset(nb_rows, threshold):
        log.info(f"Small dataset ({resource_id}, {nb_rows} rows), direct CSV download.")
        file_path = download_resource_csv(resource_id, filters, tmp_dir, log, api_base)
    else:
        log.info(f"Large dataset ({resource_id}), ZIP download.")
        file_path = download_resource_zip(resource_id, resource['origin'], filters, tmp_dir, log)

    if import_config.pivot_concepts:
        file_path, schema = pivot_csv(
            file_path, tmp_dir, resource_id, import_config.pivot_concepts, range_table, log,
            nb_lines=nb_rows or None, columns_to_keep=import_config.columns_to_keep
        )
        resource['schema'] = schema

    resource['filePath'] = str(file_path)
    return resource


def main():
    """Import one dataset: `python -m src.melodi.imports DS_ID`."""
    if len(sys.argv) < 2:
        print("Usage: python -m src.melodi.imports <dataset id>")
        sys.exit(1)

    # I/O: Read import options from environment
    import_config = ImportConfig(
        filters=parse_filters_arg(os.getenv('FILTERS')),
        pivot_concepts=[c for c in os.getenv('PIVOT_CONCEPTS', '').split(',') if c],
        use_dataset_title=bool(os.getenv('USE_DATASET_TITLE'))
    )

    resource = get_resource(sys.argv[1], import_config, config.TMP_DIR, ConsoleLog())
    print(f"\n✓ {resource['title']} saved to {resource['filePath']}")
    print(f"✓ {len(resource['schema'])} columns")


if __name__ == '__main__':
    main()
