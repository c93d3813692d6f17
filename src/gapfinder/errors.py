"""Exception types raised by gapfinder."""


class GapfinderError(Exception):
    """Base class for all gapfinder errors."""


class ConfigurationError(GapfinderError):
    """Invalid or inconsistent configuration (e.g. embedding width mismatch)."""


class ExtractionError(GapfinderError):
    """A file could not be turned into plain text."""


class IngestionError(GapfinderError):
    """A fatal failure while processing a document."""


class IngestionTimeout(IngestionError):
    """Document processing exceeded the caller's deadline."""


class IngestionCancelled(IngestionError):
    """A run stopped because its document was marked failed by someone else."""


class StorageError(GapfinderError):
    """A persisted record is missing or a write did not take effect."""
