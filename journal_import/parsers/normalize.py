"""
Field normalization shared by the CSV and HTML report parsers.

Broker exports disagree on almost everything:
- Header vocabulary ("Symbol" vs "Instrument", "Type" vs "Cmd")
- Number formatting ("1.0950", "1,0950", "1.234,50")
- Direction encoding ("buy", "Buy Limit", "0", "long")
- Timestamp layouts ("2024.01.15 10:30:00", "15.01.2024 10:30")

Everything here is pure: same input, same output. The only exception is the
open-time fallback, which stamps the current time when a row has none.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional


@dataclass
class NormalizedTrade:
    """A single trade record, independent of the source report format."""

    pair: str
    direction: str  # "buy" | "sell"
    entry_price: float
    exit_price: Optional[float]
    stop_loss: Optional[float]
    take_profit: Optional[float]
    profit_loss: Optional[float]
    result: str  # "win" | "loss" | "breakeven" | "pending"
    open_time: str
    volume: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Header normalization
# ---------------------------------------------------------------------------

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def normalize_header(name: str) -> str:
    """Lower-case a header cell and collapse punctuation/space runs to '_'.

    "Open Price", "open-price" and "OPEN_PRICE" all become "open_price".
    """
    return _NON_ALNUM_RUN.sub("_", (name or "").strip().lower()).strip("_")


# Logical field -> accepted normalized header names, in priority order.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "symbol": ("symbol", "pair", "currency", "instrument", "ticker", "item"),
    "direction": ("type", "action", "cmd", "order_type", "direction", "side", "deal_type"),
    "open_price": ("price", "open", "entry", "open_price", "entry_price", "price_open"),
    "close_price": ("close", "exit", "close_price", "exit_price", "price_close", "price"),
    "stop_loss": ("sl", "stop_loss", "s_l"),
    "take_profit": ("tp", "take_profit", "t_p"),
    "profit": ("profit", "pnl", "pl", "p_l", "net_profit", "result"),
    "open_time": ("time", "open_time", "date", "datetime", "time_open", "open_date"),
    "volume": ("volume", "lots", "lot", "size", "lot_size"),
}


def resolve_column(
    headers: list[str],
    aliases: Iterable[str],
    exclude: Iterable[int] = (),
) -> Optional[int]:
    """Return the index of the first column matching an alias, or None.

    ``headers`` must already be normalized. Aliases are tried in order, so an
    earlier alias wins over a later one even if it sits further right.
    """
    skip = set(exclude)
    for alias in aliases:
        for i, header in enumerate(headers):
            if header == alias and i not in skip:
                return i
    return None


def build_column_map(headers: list[str]) -> dict[str, Optional[int]]:
    """Map every logical field to its column index in a normalized header row."""
    col_map: dict[str, Optional[int]] = {}
    for field_name, aliases in FIELD_ALIASES.items():
        exclude: list[int] = []
        # MT5 position exports carry two "Price" columns: open first, close second.
        if field_name == "close_price" and col_map.get("open_price") is not None:
            exclude.append(col_map["open_price"])
        col_map[field_name] = resolve_column(headers, aliases, exclude)
    return col_map


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

_NUMERIC_JUNK = re.compile(r"[^\d,.\-]")


def parse_number(value: Any) -> Optional[float]:
    """Parse a loosely formatted number; None when nothing numeric remains.

    With both ',' and '.' present the European convention applies: '.' groups
    thousands and ',' is the decimal mark. A lone ',' is a decimal mark;
    repeated ',' are thousands separators.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)

    text = _NUMERIC_JUNK.sub("", str(value).strip())
    if not any(ch.isdigit() for ch in text):
        return None

    if "," in text and "." in text:
        text = text.replace(".", "").replace(",", ".")
    elif text.count(",") == 1:
        text = text.replace(",", ".")
    else:
        text = text.replace(",", "")

    try:
        return float(text)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def detect_direction(value: Any) -> str:
    """Infer trade direction from free text. Ambiguous input means "buy"."""
    text = str(value or "").strip().lower()
    if "buy" in text or "long" in text or text == "0":
        return "buy"
    if "sell" in text or "short" in text or text == "1":
        return "sell"
    return "buy"


def detect_result(value: Any) -> str:
    """Classify a profit value by sign; unparsable input is "pending"."""
    num = parse_number(value)
    if num is None:
        return "pending"
    if num > 0:
        return "win"
    if num < 0:
        return "loss"
    return "breakeven"


_PAIR_JUNK = re.compile(r"[^A-Za-z0-9]")


def normalize_pair(value: Any) -> str:
    """Upper-case a symbol and drop everything that isn't a letter or digit."""
    return _PAIR_JUNK.sub("", str(value or "")).upper()


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

_TIME_FORMATS = [
    "%Y.%m.%d %H:%M:%S",
    "%Y.%m.%d %H:%M",
    "%Y.%m.%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%d.%m.%Y",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
]

DATE_LIKE_RE = re.compile(r"\d{1,4}[./-]\d{1,2}[./-]\d{1,4}")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_open_time(value: Any) -> str:
    """Return an ISO-8601 timestamp for a report cell.

    Recognized layouts are converted; unrecognized but date-like text is kept
    as-is; anything else falls back to the current UTC time.
    """
    text = str(value or "").strip()
    if not text:
        return utc_now_iso()

    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).isoformat()
        except ValueError:
            continue

    if DATE_LIKE_RE.search(text):
        return text
    return utc_now_iso()


# ---------------------------------------------------------------------------
# Record assembly
# ---------------------------------------------------------------------------

MIN_PAIR_LENGTH = 3


def build_trade(
    *,
    symbol: Any,
    direction: Any,
    entry_price: Optional[float],
    exit_price: Optional[float] = None,
    stop_loss: Optional[float] = None,
    take_profit: Optional[float] = None,
    profit: Any = None,
    open_time: Any = None,
    volume: Optional[float] = None,
) -> Optional[NormalizedTrade]:
    """Assemble a NormalizedTrade, or None when the row fails acceptance.

    A row is accepted only with a pair of at least three characters and a
    positive entry price.
    """
    pair = normalize_pair(symbol)
    if len(pair) < MIN_PAIR_LENGTH:
        return None

    if entry_price is None or entry_price <= 0:
        return None

    profit_loss = parse_number(profit)
    return NormalizedTrade(
        pair=pair,
        direction=detect_direction(direction),
        entry_price=entry_price,
        exit_price=exit_price,
        stop_loss=stop_loss,
        take_profit=take_profit,
        profit_loss=profit_loss,
        result=detect_result(profit_loss),
        open_time=normalize_open_time(open_time),
        volume=volume,
    )


def build_trade_from_row(
    row: list[str],
    col_map: dict[str, Optional[int]],
) -> Optional[NormalizedTrade]:
    """Build a trade from a header-mapped row of cell strings."""

    def get(key: str) -> str:
        idx = col_map.get(key)
        if idx is not None and idx < len(row):
            return row[idx]
        return ""

    return build_trade(
        symbol=get("symbol"),
        direction=get("direction"),
        entry_price=parse_number(get("open_price")),
        exit_price=parse_number(get("close_price")),
        stop_loss=parse_number(get("stop_loss")),
        take_profit=parse_number(get("take_profit")),
        profit=get("profit"),
        open_time=get("open_time"),
        volume=parse_number(get("volume")),
    )
