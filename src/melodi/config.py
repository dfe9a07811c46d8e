#!/usr/bin/env python3
"""Runtime settings for the Melodi connector, overridable from the environment."""

import os


API_BASE = os.getenv('MELODI_API_URL', 'https://api.insee.fr/melodi').rstrip('/')

# Datasets with fewer rows than this go through the direct CSV export;
# larger ones are downloaded as a ZIP and filtered locally.
SMALL_DATASET_THRESHOLD = int(os.getenv('MELODI_SMALL_DATASET_THRESHOLD', '100000'))

# Page size requested from the CSV export (one page holds everything)
MAX_RESULT = int(os.getenv('MELODI_MAX_RESULT', '1000000'))

CATALOG_CACHE_SECONDS = int(os.getenv('MELODI_CATALOG_CACHE_SECONDS', '600'))

TMP_DIR = os.getenv('TMP_DIR', 'data')

PROGRESS_INTERVAL = 0.5  # Seconds between two progress reports
REQUEST_TIMEOUT = 60
DOWNLOAD_TIMEOUT = 600
CHUNK_SIZE = 1024 * 1024  # 1MB chunks

HEADERS = {'User-Agent': 'Mozilla/5.0'}

LICENSE = {
    'title': 'Licence Ouverte / Open Licence 2.0',
    'href': 'https://www.etalab.gouv.fr/wp-content/uploads/2017/04/ETALAB-Licence-Ouverte-v2.0.pdf'
}
