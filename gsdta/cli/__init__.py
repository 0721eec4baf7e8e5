"""Command-line interface for the GSDTA data tools."""
