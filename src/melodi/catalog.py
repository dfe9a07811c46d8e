#!/usr/bin/env python3
"""List the Melodi catalog as importable resources."""

import pandas as pd
import requests

from . import config
from .cache import TimedCache
from .errors import CatalogError
from .utils import get_language_content


CATALOG_COLUMNS = ['id', 'title', 'description', 'updatedAt', 'size', 'format', 'origin', 'type']
DEFAULT_PAGE_SIZE = 10

_catalog_cache = TimedCache(config.CATALOG_CACHE_SECONDS)


# === Functional Core (Pure Functions - No I/O) ===

def extract_catalog_metadata(datasets):
    """Convert Melodi dataset descriptors to resource rows.

    The first product of a dataset provides size, format and origin.

    Args:
        datasets: List of dataset dicts from the catalog/all endpoint

    Returns:
        List of resource dicts ready for DataFrame creation
    """
    rows = []
    for dataset in datasets:
        products = dataset.get('product') or []
        first_file = products[0] if products else {}
        rows.append({
            'id': dataset.get('identifier'),
            'title': get_language_content(dataset.get('title')) or dataset.get('identifier'),
            'description': get_language_content(dataset.get('description')),
            'updatedAt': dataset.get('modified'),
            'size': first_file.get('byteSize') or 0,
            'format': 'csv' if first_file.get('packageFormat') else 'unknown',
            'origin': first_file.get('accessURL') or '',
            'type': 'resource'
        })
    return rows


def filter_catalog(catalog_df, q=None):
    """Keep resources whose title or id contains `q` (case-insensitive).

    Args:
        catalog_df: Catalog DataFrame with 'id' and 'title' columns
        q: Search term, None or blank for no filtering

    Returns:
        Filtered DataFrame
    """
    if not q or not q.strip():
        return catalog_df
    term = q.strip().lower()
    mask = (
        catalog_df['title'].str.lower().str.contains(term, regex=False, na=False)
        | catalog_df['id'].str.lower().str.contains(term, regex=False, na=False)
    )
    return catalog_df[mask]


def paginate(catalog_df, page=None, size=None):
    """Slice one page of results.

    Args:
        catalog_df: Catalog DataFrame
        page: 1-based page number (default 1)
        size: Page size (default 10)

    Returns:
        DataFrame with at most `size` rows; unchanged if neither is given
    """
    if not page and not size:
        return catalog_df
    page = max(int(page or 1), 1)
    size = max(int(size or DEFAULT_PAGE_SIZE), 0)
    start = (page - 1) * size
    return catalog_df.iloc[start:start + size]


# === I/O Layer ===

def fetch_all_datasets(api_base):
    """Fetch every dataset descriptor from the Melodi catalog."""
    try:
        resp = requests.get(f"{api_base}/catalog/all", headers=config.HEADERS,
                            timeout=config.REQUEST_TIMEOUT)
        resp.raise_for_status()
        return resp.json()
    except (requests.RequestException, ValueError) as e:
        print(f"Error fetching datasets from Melodi: {e}")
        raise CatalogError("Unable to fetch the Melodi dataset list") from e


def get_all_datasets(api_base=config.API_BASE):
    """Return the full catalog, cached per API base URL."""
    return _catalog_cache.get_or_load(api_base, lambda: fetch_all_datasets(api_base))


def list_resources(params=None, api_base=config.API_BASE):
    """List catalog resources with optional search and pagination.

    Args:
        params: Dict with optional 'q', 'page' and 'size' keys
        api_base: Melodi API base URL

    Returns:
        Dict {'count': matches before pagination, 'results': [...], 'path': []}
    """
    params = params or {}
    rows = extract_catalog_metadata(get_all_datasets(api_base))
    catalog_df = pd.DataFrame(rows, columns=CATALOG_COLUMNS)

    matches = filter_catalog(catalog_df, params.get('q'))
    page = paginate(matches, params.get('page'), params.get('size'))

    return {
        'count': len(matches),
        'results': page.to_dict('records'),
        'path': []
    }


def main():
    # I/O: Fetch catalog from API
    print("Fetching Melodi catalog...")
    rows = extract_catalog_metadata(get_all_datasets())
    print(f"Found {len(rows)} datasets")

    df = pd.DataFrame(rows, columns=CATALOG_COLUMNS)
    df.to_parquet('catalog.parquet', index=False)
    print("\nSaved to catalog.parquet")


if __name__ == '__main__':
    main()
