"""Exceptions raised by the cross-reference engine."""


class MxrError(Exception):
    """Base error for the mxr package."""


class ScannerNotInitializedError(MxrError):
    """Raised when a scan or update runs before ``initialize()``."""

    def __init__(self, operation: str):
        super().__init__(f"{operation}() called before initialize()")
        self.operation = operation


__all__ = ["MxrError", "ScannerNotInitializedError"]
