"""Fatal error taxonomy shared by every command."""

from __future__ import annotations


class SensorExportError(Exception):
    """Base class for failures that abort a run."""


class ConfigError(SensorExportError):
    """Required configuration is missing or unreadable."""


class MongoConnectionError(SensorExportError):
    """The initial connection to a MongoDB endpoint failed."""


class QueryError(SensorExportError):
    """A find or aggregate call failed on the server."""


class DecodeError(SensorExportError):
    """A document returned by MongoDB could not be interpreted."""


class TransferError(SensorExportError):
    """Writing records into the destination collection failed."""

    def __init__(self, message: str, failed_count: int = 0) -> None:
        super().__init__(message)
        self.failed_count = failed_count


class ExportWriteError(SensorExportError):
    """The CSV output could not be created or written."""
