"""GSDTA school data tools: yearly Excel workbook import into the school's document store."""

__version__ = "0.1.0"
