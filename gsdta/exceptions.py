"""Exceptions raised by the import tools.

Row-level problems never raise out of an importer; they are tallied and
recorded in the run report. These exceptions cover the failures that stop
a run.
"""


class DataImportError(Exception):
    """Base class for fatal import failures."""


class WorkbookError(DataImportError):
    """The workbook is missing or cannot be read."""


class BackendError(DataImportError):
    """The document store or identity provider could not be initialised."""
