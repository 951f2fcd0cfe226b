"""
Delimiter-separated trade report parser.

Handles exports from different brokers and locales without configuration:
- Comma, semicolon or tab delimiters (picked by average field count)
- Quoted fields that contain the delimiter
- Header vocabulary resolved through FIELD_ALIASES

Rows are read line by line, so a quoted field with an embedded newline
splits the record in two. Both halves usually fail acceptance and are dropped.
"""

from __future__ import annotations

import csv
import logging
from typing import Optional

from .normalize import NormalizedTrade, build_column_map, build_trade_from_row, normalize_header

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = [",", ";", "\t"]
DELIMITER_SAMPLE_LINES = 5


def split_lines(content: str) -> list[str]:
    """Normalize line endings, drop a BOM, and return the non-blank lines."""
    text = content.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    return [line for line in text.split("\n") if line.strip()]


def split_row(line: str, delimiter: str) -> list[str]:
    """Split one line on ``delimiter``, ignoring delimiters inside quotes."""
    try:
        cells = next(csv.reader([line], delimiter=delimiter, skipinitialspace=True), [])
    except csv.Error:
        cells = line.split(delimiter)
    return [cell.strip() for cell in cells]


def detect_delimiter(lines: list[str]) -> str:
    """Pick the candidate delimiter with the highest average field count.

    Ties go to the earlier candidate, so a single-column file reads as CSV.
    """
    sample = lines[:DELIMITER_SAMPLE_LINES]
    if not sample:
        return CANDIDATE_DELIMITERS[0]

    best = CANDIDATE_DELIMITERS[0]
    best_avg = 0.0
    for delimiter in CANDIDATE_DELIMITERS:
        avg = sum(len(split_row(line, delimiter)) for line in sample) / len(sample)
        if avg > best_avg:
            best, best_avg = delimiter, avg
    return best


class CSVReportParser:
    """
    Parse a CSV/TSV trade report into NormalizedTrade records.

    Usage:
        parser = CSVReportParser()
        trades = parser.parse(content)
        parser.delimiter, parser.skipped_rows  # diagnostics from the last run
    """

    def __init__(self) -> None:
        self.delimiter: Optional[str] = None
        self.total_rows: int = 0
        self.skipped_rows: int = 0

    def parse(self, content: str) -> list[NormalizedTrade]:
        self.delimiter = None
        self.total_rows = 0
        self.skipped_rows = 0

        lines = split_lines(content)
        if len(lines) < 2:
            logger.debug("CSV report has %d non-blank lines, nothing to parse", len(lines))
            return []

        self.delimiter = detect_delimiter(lines)
        headers = [normalize_header(h) for h in split_row(lines[0], self.delimiter)]
        col_map = build_column_map(headers)
        logger.debug(
            "CSV delimiter %r, headers %s, column map %s",
            self.delimiter, headers, col_map,
        )

        trades: list[NormalizedTrade] = []
        for line in lines[1:]:
            self.total_rows += 1
            trade = build_trade_from_row(split_row(line, self.delimiter), col_map)
            if trade is None:
                self.skipped_rows += 1
                continue
            trades.append(trade)

        logger.info(
            "CSV report: %d trades from %d rows (%d skipped)",
            len(trades), self.total_rows, self.skipped_rows,
        )
        return trades


def parse_csv_report(content: str) -> list[NormalizedTrade]:
    """Parse CSV report text. Convenience wrapper around CSVReportParser."""
    return CSVReportParser().parse(content)
