"""Error taxonomy for loading and parsing workbooks.

Everything here subclasses ``ValueError`` so callers that only care about
"bad input" can keep catching the builtin.
"""

from __future__ import annotations


class ReportError(ValueError):
    """Base class for failures surfaced to the user as a single error state."""


class InputRejectedError(ReportError):
    """The file was refused before decoding (extension, size, missing decoder)."""


class DecodeError(ReportError):
    """The workbook bytes could not be decoded into sheets."""


class EmptyWorkbookError(DecodeError):
    """No sheet in the workbook contains a single meaningful cell."""
