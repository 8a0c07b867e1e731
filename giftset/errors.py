class CsvImportError(Exception):
    """Base for failures that abort a catalog import."""


class FormatError(CsvImportError):
    """Input has no header row or no data rows after blank lines are dropped."""
