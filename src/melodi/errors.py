"""Exceptions raised by the Melodi connector."""


class MelodiError(Exception):
    """Base class for every error surfaced to the caller."""


class MetadataError(MelodiError):
    """Dataset descriptor or range table could not be fetched."""


class DownloadError(MelodiError):
    """Direct CSV export or ZIP download/extraction failed."""


class ArchiveError(MelodiError):
    """ZIP container is empty or not a ZIP at all."""


class MissingColumnError(MelodiError):
    """A mandatory column is absent from a CSV header."""


class CatalogError(MelodiError):
    """Catalog listing or connectivity check failed."""


class CsvFormatError(MelodiError):
    """A CSV source has malformed rows or is not valid UTF-8."""
