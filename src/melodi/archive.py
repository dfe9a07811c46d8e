#!/usr/bin/env python3
"""Locate and read the data file inside a Melodi export archive.

Export archives bundle one large data CSV with a small metadata file, so the
largest entry (by uncompressed size) is taken as the data file.
"""

import shutil
import zipfile
import zlib
from contextlib import contextmanager
from pathlib import Path

from .errors import ArchiveError


ZIP_SIGNATURES = (b'PK\x03\x04', b'PK\x05\x06')  # local file header, empty archive


# === Functional Core (Pure Functions - No I/O) ===

def find_largest_entry(infolist):
    """Select the entry with the largest uncompressed size.

    Args:
        infolist: List of ZipInfo objects from ZipFile.infolist()

    Returns:
        The ZipInfo with strictly maximum file_size (first one on ties)

    Raises:
        ArchiveError: If the archive has no entries
    """
    if not infolist:
        raise ArchiveError("ZIP archive is empty")

    largest = infolist[0]
    for info in infolist[1:]:
        if info.file_size > largest.file_size:
            largest = info
    return largest


# === I/O Layer ===

def validate_zip_magic_bytes(file_path):
    """Validate that file is a ZIP archive by checking magic bytes.

    Args:
        file_path: Path to file to validate (str or Path)

    Raises:
        ArchiveError: If the file does not start with a ZIP signature
    """
    with open(file_path, 'rb') as f:
        magic = f.read(4)
    if magic not in ZIP_SIGNATURES:
        raise ArchiveError(
            f"Not a valid ZIP file (magic bytes: {magic.hex() if magic else 'empty'}). "
            f"Melodi may have returned an error page instead of the dataset."
        )


@contextmanager
def open_largest_entry(zip_path):
    """Open the data entry of an archive as a binary stream, without extracting.

    Usage:
        with open_largest_entry(path) as (info, stream):
            ...

    The entry stream and the archive are closed when the block exits.
    A truncated or corrupt archive raises ArchiveError, whether it is
    detected on opening or while the entry is being read.
    """
    validate_zip_magic_bytes(zip_path)
    try:
        with zipfile.ZipFile(zip_path) as z:
            info = find_largest_entry(z.infolist())
            with z.open(info) as stream:
                yield info, stream
    except (zipfile.BadZipFile, zlib.error, EOFError) as e:
        raise ArchiveError(f"Unreadable ZIP archive {Path(zip_path).name}: {e}") from e


def extract_largest_entry(zip_path, dest_path):
    """Extract the data entry of an archive to `dest_path`.

    Args:
        zip_path: Path to the ZIP archive
        dest_path: Output file path

    Returns:
        Path of the extracted file

    Raises:
        ArchiveError: If the archive is empty or not a ZIP (no output is created)
    """
    dest_path = Path(dest_path)
    with open_largest_entry(zip_path) as (info, stream):
        try:
            with dest_path.open('wb') as out:
                shutil.copyfileobj(stream, out)
        except BaseException:
            dest_path.unlink(missing_ok=True)
            raise
    return dest_path


def extract_csv(zip_path, dest_dir, resource_id):
    """Extract the data CSV of a downloaded archive, then delete the archive.

    Args:
        zip_path: Path to the downloaded ZIP
        dest_dir: Directory receiving the CSV
        resource_id: Dataset identifier, used as output file name

    Returns:
        Path to '<dest_dir>/<resource_id>.csv'
    """
    zip_path = Path(zip_path)
    try:
        return extract_largest_entry(zip_path, Path(dest_dir) / f"{resource_id}.csv")
    finally:
        zip_path.unlink(missing_ok=True)
