#!/usr/bin/env python3
"""Estimate dataset size to choose between direct CSV export and ZIP download."""

import requests

from . import config
from .utils import serialize_params


# === Functional Core (Pure Functions - No I/O) ===

def is_small_dataset(count, threshold=config.SMALL_DATASET_THRESHOLD):
    """Check if a dataset can go through the direct CSV export.

    Args:
        count: Row count reported by Melodi (0 when unknown)
        threshold: Exclusive upper bound for the direct export

    Returns:
        True if 0 < count < threshold
    """
    return 0 < count < threshold


def extract_total_count(payload):
    """Read paging.count from a Melodi data response, 0 if absent or not an int."""
    if not isinstance(payload, dict):
        return 0
    count = (payload.get('paging') or {}).get('count')
    if isinstance(count, bool) or not isinstance(count, int):
        return 0
    return count


# === I/O Layer ===

def count_rows(resource_id, log, filters=None, api_base=config.API_BASE):
    """Ask Melodi for the row count of a dataset without fetching rows.

    Never raises: any failure is reported through `log.error` and counts as 0,
    which routes the dataset to the ZIP download.

    Args:
        resource_id: Dataset identifier
        log: Logger exposing error()
        filters: Optional dict of concept -> values (from build_import_params)
        api_base: Melodi API base URL

    Returns:
        Total row count, or 0 if the request failed
    """
    params = {'maxResult': 0, 'totalCount': True, **(filters or {})}
    try:
        resp = requests.get(
            f"{api_base}/data/{resource_id}",
            params=serialize_params(params),
            headers=config.HEADERS,
            timeout=config.REQUEST_TIMEOUT
        )
        resp.raise_for_status()
        return extract_total_count(resp.json())
    except (requests.RequestException, ValueError) as e:
        log.error(f"Row count unavailable for {resource_id}", str(e))
        return 0
