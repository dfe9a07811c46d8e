#!/usr/bin/env python3
"""Stream an HTTP response body to disk with throttled progress reports."""

import time
from pathlib import Path

import requests

from . import config
from .log import should_report_progress


# === Functional Core (Pure Functions - No I/O) ===

def parse_content_length(value):
    """Parse a Content-Length header.

    Args:
        value: Raw header value (str or None)

    Returns:
        Size in bytes as int, or None if missing or malformed
    """
    if value is None:
        return None
    try:
        size = int(value)
    except (TypeError, ValueError):
        return None
    return size if size >= 0 else None


# === I/O Layer ===

def download_file_with_progress(url, dest_path, label, log, params=None,
                                timeout=config.DOWNLOAD_TIMEOUT, clock=time.monotonic):
    """Download `url` to `dest_path`, reporting byte progress to `log`.

    The destination exists and is complete if and only if this returns.
    On any failure (HTTP status, connection, disk write, interruption) the
    partial file is deleted and the exception re-raised.

    Args:
        url: Source URL
        dest_path: Local file path to write (str or Path)
        label: Name used for the progress task (usually the resource id)
        log: Logger exposing task() and progress()
        params: Optional query string or dict sent with the request
        timeout: Request timeout in seconds
        clock: Monotonic clock used to throttle progress reports

    Returns:
        Path of the downloaded file
    """
    dest_path = Path(dest_path)
    task_name = f"download {label}"

    try:
        with dest_path.open('wb') as fh:
            with requests.get(url, params=params, headers=config.HEADERS,
                              timeout=timeout, stream=True) as resp:
                resp.raise_for_status()
                total_size = parse_content_length(resp.headers.get('content-length'))
                log.task(task_name, 'Downloading...', total_size)

                downloaded = 0
                last_reported = clock()
                for chunk in resp.iter_content(chunk_size=config.CHUNK_SIZE):
                    if not chunk:
                        continue
                    fh.write(chunk)
                    downloaded += len(chunk)

                    now = clock()
                    if should_report_progress(now, last_reported, config.PROGRESS_INTERVAL):
                        last_reported = now
                        log.progress(task_name, downloaded, total_size)
    except BaseException:
        dest_path.unlink(missing_ok=True)
        raise

    # Final report with the exact byte count
    log.progress(task_name, downloaded, total_size)
    return dest_path
