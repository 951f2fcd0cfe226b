"""
HTML trade report parser (MT5 terminal "Save as Report" output).

Two strategies, tried in order:

1. Header-mapped ("header"): each <table> whose first row maps to both a
   symbol column and a direction column is read like a CSV file.
2. Heuristic ("heuristic"): only when step 1 found nothing. Every row of every
   table is scanned for a buy/sell cell; the symbol is taken from a
   neighbouring cell, prices from the numbers after it, and profit from the
   last non-zero number in the row.

The heuristic pass favours recall over precision. It can mistake an unrelated
number for a price (a volume column right after the direction, for one), and
the imported rows are meant to be reviewed before they are saved.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup

from .normalize import (
    DATE_LIKE_RE,
    MIN_PAIR_LENGTH,
    NormalizedTrade,
    build_column_map,
    build_trade,
    build_trade_from_row,
    normalize_header,
    normalize_pair,
    parse_number,
)

logger = logging.getLogger(__name__)

STRATEGY_HEADER = "header"
STRATEGY_HEURISTIC = "heuristic"

_DIRECTION_RE = re.compile(r"buy|sell|long|short", re.IGNORECASE)
_PAIR_SHAPE_RE = re.compile(r"^[A-Z]{2,6}\d{0,2}$")
_NUMERIC_CELL_RE = re.compile(r"^[-+]?[\d\s.,]*\d[\d\s.,]*$")
_WHITESPACE_RE = re.compile(r"\s+")

# Neighbour offsets searched for the symbol, nearest first.
_PAIR_OFFSETS = (-1, 1, -2, 2)

Table = list[list[str]]


def read_tables(content: str) -> list[Table]:
    """Extract every <table> as a list of rows of cell text."""
    soup = BeautifulSoup(content, "html.parser")
    tables: list[Table] = []
    for table in soup.find_all("table"):
        rows: Table = []
        for tr in table.find_all("tr"):
            cells = [
                _WHITESPACE_RE.sub(" ", cell.get_text(" ", strip=True))
                for cell in tr.find_all(["td", "th"])
            ]
            if any(cells):
                rows.append(cells)
        if rows:
            tables.append(rows)
    return tables


# ---------------------------------------------------------------------------
# Strategy 1: header-mapped tables
# ---------------------------------------------------------------------------

def extract_header_tables(tables: list[Table]) -> list[NormalizedTrade]:
    """Read every table whose first row names a symbol and a direction column."""
    trades: list[NormalizedTrade] = []
    for n, rows in enumerate(tables):
        headers = [normalize_header(h) for h in rows[0]]
        col_map = build_column_map(headers)
        if col_map["symbol"] is None or col_map["direction"] is None:
            logger.debug("Table %d has no symbol/direction header, skipping", n)
            continue

        parsed = [build_trade_from_row(row, col_map) for row in rows[1:]]
        accepted = [t for t in parsed if t is not None]
        logger.debug(
            "Table %d: %d of %d rows accepted by header mapping",
            n, len(accepted), len(parsed),
        )
        trades.extend(accepted)
    return trades


# ---------------------------------------------------------------------------
# Strategy 2: heuristic row scan
# ---------------------------------------------------------------------------

def _cell_number(cell: str) -> Optional[float]:
    if not _NUMERIC_CELL_RE.match(cell):
        return None
    return parse_number(cell)


def _find_pair(row: list[str], anchor: int) -> Optional[str]:
    for offset in _PAIR_OFFSETS:
        i = anchor + offset
        if i < 0 or i >= len(row) or _DIRECTION_RE.search(row[i]):
            continue
        candidate = normalize_pair(row[i])
        # MT5 deal rows carry a two-letter "in"/"out" cell next to the type.
        if len(candidate) >= MIN_PAIR_LENGTH and _PAIR_SHAPE_RE.match(candidate):
            return candidate
    return None


def scan_row(row: list[str]) -> Optional[NormalizedTrade]:
    """Best-effort extraction of a trade from a row without known headers."""
    anchor = next((i for i, cell in enumerate(row) if _DIRECTION_RE.search(cell)), None)
    if anchor is None:
        return None

    pair = _find_pair(row, anchor)
    if pair is None:
        return None

    positives = [
        num for num in (_cell_number(cell) for cell in row[anchor + 1:])
        if num is not None and num > 0
    ]
    entry = positives[0] if positives else None
    exit_ = positives[1] if len(positives) > 1 else None

    nonzero = [
        num for num in (_cell_number(cell) for cell in row)
        if num is not None and num != 0
    ]
    profit = nonzero[-1] if nonzero else None

    open_time = next((cell for cell in row if DATE_LIKE_RE.search(cell)), None)

    return build_trade(
        symbol=pair,
        direction=row[anchor],
        entry_price=entry,
        exit_price=exit_,
        profit=profit,
        open_time=open_time,
    )


def extract_heuristic_rows(tables: list[Table]) -> list[NormalizedTrade]:
    """Scan every row of every table with scan_row."""
    trades: list[NormalizedTrade] = []
    for rows in tables:
        for row in rows:
            trade = scan_row(row)
            if trade is not None:
                trades.append(trade)
    return trades


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def parse_html_report(content: str) -> tuple[list[NormalizedTrade], Optional[str]]:
    """Parse HTML report text.

    Returns:
        (trades, strategy) where strategy is "header", "heuristic", or None
        when neither strategy produced a record.
    """
    tables = read_tables(content)
    if not tables:
        logger.debug("HTML report contains no tables")
        return [], None

    trades = extract_header_tables(tables)
    if trades:
        logger.info("HTML report: %d trades from header-mapped tables", len(trades))
        return trades, STRATEGY_HEADER

    trades = extract_heuristic_rows(tables)
    if trades:
        logger.info("HTML report: %d trades from heuristic row scan", len(trades))
        return trades, STRATEGY_HEURISTIC

    logger.info("HTML report: no trades found in %d tables", len(tables))
    return [], None
