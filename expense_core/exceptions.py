"""Domain-specific exceptions for the expense tracker core."""

class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised when an expense record cannot be located."""


class PersistenceError(IOError):
    """Raised when the persistence layer encounters unrecoverable issues."""


class StorageUnavailable(PersistenceError):
    """Raised when the database cannot be opened, created or is closed."""


class WriteError(PersistenceError):
    """Raised when an insert, upsert or delete fails."""


class ReadError(PersistenceError):
    """Raised when a query against the database fails."""


class FileIOError(PersistenceError):
    """Raised when an export, report or import file cannot be read or written."""


class MalformedBackup(ValueError):
    """Raised when a backup file lacks the expected structure."""
