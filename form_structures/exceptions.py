"""
Custom exception hierarchy for form-structures.

Every structural problem found while reading a form is reported as a
``FormParseError`` whose message names the violated expectation (missing
form number, gap in the bottom header row, and so on). Callers decide
whether to show that message to an end user or log and abort.
"""


class FormStructuresError(Exception):
    """Base exception for all form-structures errors."""


class FormParseError(FormStructuresError):
    """Raised when a workbook cannot be parsed into a form layout.

    Unexpected errors raised by the cell-reading library are wrapped into
    this exception with a generic message; the original is kept as
    ``__cause__``.
    """


class ConfigValidationError(FormStructuresError):
    """Raised when a parser options file is empty or malformed."""


class ExportError(FormStructuresError):
    """Raised when extracted rows cannot be written to disk.

    For example, permission errors, disk full, or unsupported format.
    """
