"""
Exceptions for the CAS ledger pipeline.

Only document-level failures are raised. Individual lines that cannot be
interpreted are reported as ParseSkip values and counted in Diagnostics.
"""


class CASLedgerError(Exception):
    """Base exception carrying a machine-readable error code."""

    def __init__(self, message: str, error_code: str):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class DocumentError(CASLedgerError):
    """The source document could not be turned into text."""

    def __init__(
        self,
        message: str = "Document could not be read",
        error_code: str = "UNREADABLE_DOCUMENT",
    ):
        super().__init__(message, error_code=error_code)


class FatalParseError(CASLedgerError):
    """The statement text is empty or not text at all."""

    def __init__(
        self,
        message: str = "Statement text is empty",
        error_code: str = "EMPTY_INPUT",
    ):
        super().__init__(message, error_code=error_code)
