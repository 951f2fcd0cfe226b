"""
Trade report parser: the single entry point used by the upload handler.

    trades = parse_report(content, "ReportHistory-123.html")

Accepts the full text of a CSV or HTML report and returns NormalizedTrade
records, possibly none. An unsupported extension raises UnsupportedFormat;
every other problem (unreadable rows, missing optional columns, ambiguous
direction) degrades to a dropped row or a default value.

The parser performs no I/O and keeps no state between calls, apart from the
diagnostics of the last run on a ReportParser instance.
"""

from __future__ import annotations

import logging
from typing import Optional

from .csv_report import CSVReportParser
from .format_detector import FORMAT_CSV, detect_report_format
from .html_report import STRATEGY_HEADER, parse_html_report
from .normalize import NormalizedTrade

logger = logging.getLogger(__name__)


class ReportParser:
    """
    Parse an uploaded trade report.

    Usage:
        parser = ReportParser()
        trades = parser.parse(content, "trades.csv")
        parser.strategy  # "header" | "heuristic" | None
    """

    def __init__(self) -> None:
        self.report_format: Optional[str] = None
        self.delimiter: Optional[str] = None
        self.strategy: Optional[str] = None
        self.total_rows: int = 0
        self.skipped_rows: int = 0

    def parse(self, content: str, file_name: str) -> list[NormalizedTrade]:
        self.report_format = None
        self.delimiter = None
        self.strategy = None
        self.total_rows = 0
        self.skipped_rows = 0

        self.report_format = detect_report_format(file_name)

        text = (content or "").lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")

        if self.report_format == FORMAT_CSV:
            trades = self._parse_csv(text)
        else:
            trades, self.strategy = parse_html_report(text)

        logger.info(
            "Parsed %s (%s): %d trades, strategy=%s",
            file_name, self.report_format, len(trades), self.strategy,
        )
        return trades

    def _parse_csv(self, text: str) -> list[NormalizedTrade]:
        csv_parser = CSVReportParser()
        trades = csv_parser.parse(text)
        self.delimiter = csv_parser.delimiter
        self.total_rows = csv_parser.total_rows
        self.skipped_rows = csv_parser.skipped_rows
        if trades:
            self.strategy = STRATEGY_HEADER
        return trades


def parse_report(content: str, file_name: str) -> list[NormalizedTrade]:
    """Parse a CSV or HTML trade report into normalized trade records."""
    return ReportParser().parse(content, file_name)
