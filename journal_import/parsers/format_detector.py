"""Report format detection for uploaded trade reports.

The format is decided by file extension alone. Content sniffing is left to
the individual parsers (delimiter detection, table discovery).
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

FORMAT_CSV = "csv"
FORMAT_HTML = "html"

_EXTENSION_FORMATS: dict[str, str] = {
    ".csv": FORMAT_CSV,
    ".html": FORMAT_HTML,
    ".htm": FORMAT_HTML,
}


class UnsupportedFormat(ValueError):
    """Raised when a report's extension is not .csv, .html or .htm."""

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(
            f"Unsupported file format: {file_name!r}. Please upload .csv or .html file."
        )


def detect_report_format(file_name: str) -> str:
    """Return "csv" or "html" for a report file name (case-insensitive)."""
    name = (file_name or "").strip().lower()
    for extension, fmt in _EXTENSION_FORMATS.items():
        if name.endswith(extension):
            return fmt

    logger.info("Rejected report %r: unsupported extension", file_name)
    raise UnsupportedFormat(file_name)
