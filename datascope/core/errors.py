"""
Structural input errors.

Only these propagate out of an analysis run. Unparseable cells and
degenerate statistics are handled where they occur and never raise.
"""


class AnalysisInputError(ValueError):
    """Base class for input the engine refuses to analyze."""


class EmptyTableError(AnalysisInputError):
    """The table has no rows or no columns."""


class TableFormatError(AnalysisInputError):
    """The payload could not be decoded into a table of row mappings."""
