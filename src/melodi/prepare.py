#!/usr/bin/env python3
"""Check that the Melodi API is reachable before a catalog is saved."""

import requests

from . import config
from .errors import CatalogError


def has_credentials(catalog_config):
    """True when both consumer id and secret are configured."""
    catalog_config = catalog_config or {}
    return bool(catalog_config.get('consumerID') and catalog_config.get('consumerSecret'))


def prepare(catalog_config, api_base=config.API_BASE):
    """Validate connectivity for anonymous access.

    Args:
        catalog_config: Catalog configuration dict from the host
        api_base: Melodi API base URL

    Returns:
        Dict {'catalogConfig': catalog_config}

    Raises:
        CatalogError: If the API cannot be reached without credentials
    """
    if not has_credentials(catalog_config):
        try:
            resp = requests.get(f"{api_base}/catalog/all", headers=config.HEADERS,
                                timeout=config.REQUEST_TIMEOUT)
            resp.raise_for_status()
        except requests.RequestException as e:
            print(f"Error connecting to Melodi API at {api_base}: {e}")
            raise CatalogError(
                f"Unable to connect to Melodi API at {api_base}. "
                f"Please check the URL and your network connection."
            ) from e

    return {'catalogConfig': catalog_config}
