class LedgerError(Exception):
    """Base class for every error raised by the ledger."""


class StorageError(LedgerError):
    """The storage medium failed; the operation had no effect."""


class StorageInitError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass


class StorageReadError(StorageError):
    pass


class ValidationError(LedgerError, ValueError):
    def __init__(self, message: str, details: list[tuple[str, str]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class NotFoundError(LedgerError, LookupError):
    pass
