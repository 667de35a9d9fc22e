from __future__ import annotations


class ClockrError(RuntimeError):
    pass


class StorageError(ClockrError):
    """A store call failed; the attempted action did not take effect."""


class ValidationError(ClockrError):
    pass


class EmptyExportError(ClockrError):
    def __init__(self, message: str = "no entries to export") -> None:
        super().__init__(message)
