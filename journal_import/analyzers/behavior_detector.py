"""Rule-based detection of risky trading behavior in recent trades.

Three patterns are flagged:
- revenge trading: a loss followed quickly by a larger position
- overtrading: too many trades in a short window
- lot-size escalation: position size growing trade after trade

Input rows come straight from the ``trades`` table and need ``id``,
``result``, ``created_at`` and ``volume``.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pandas as pd

logger = logging.getLogger(__name__)

REVENGE_WINDOW = timedelta(minutes=15)
REVENGE_VOLUME_RATIO = 1.3

OVERTRADING_WINDOW = timedelta(hours=2)
OVERTRADING_MAX_TRADES = 10
OVERTRADING_SEQUENCE_LENGTH = 10

ESCALATION_TRADES = 3
ESCALATION_MIN_RATIO = 1.5
ESCALATION_DEFAULT_VOLUME = 0.01

RECOMMENDATIONS = {
    "revenge_trading": (
        "Take a 30-minute break after losses. Revenge trading detected with "
        "increased lot sizes after losses."
    ),
    "overtrading": (
        "You've taken too many trades in a short period. Stick to your trading "
        "plan with max 5 trades per session."
    ),
    "lot_size_escalation": (
        "Lot size is increasing progressively. Return to your standard risk per "
        "trade (1-2%)."
    ),
}


@dataclass
class DetectedBehavior:
    behavior_type: str  # "revenge_trading" | "overtrading" | "lot_size_escalation"
    severity: str  # "medium" | "high"
    trade_sequence: list[str] = field(default_factory=list)
    ai_recommendation: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _to_frame(trades: list[dict[str, Any]]) -> pd.DataFrame:
    """Build a chronologically ordered DataFrame; rows without a time are dropped."""
    df = pd.DataFrame(trades, columns=["id", "result", "created_at", "volume"])
    df["created_at"] = pd.to_datetime(df["created_at"], utc=True, errors="coerce", format="ISO8601")
    df["volume"] = pd.to_numeric(df["volume"], errors="coerce")
    df = df.dropna(subset=["created_at"])
    return df.sort_values("created_at", kind="stable").reset_index(drop=True)


def _unique_ids(ids: list[Any]) -> list[str]:
    seen: list[str] = []
    for trade_id in ids:
        trade_id = str(trade_id)
        if trade_id not in seen:
            seen.append(trade_id)
    return seen


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------

def detect_revenge_trading(df: pd.DataFrame) -> list[str]:
    """Ids of losses followed within 15 minutes by a >1.3x larger trade."""
    flagged: list[Any] = []
    volumes = df["volume"].fillna(1.0).replace(0, 1.0)

    for i in range(len(df) - 1):
        if df.at[i, "result"] != "loss":
            continue
        gap = df.at[i + 1, "created_at"] - df.at[i, "created_at"]
        ratio = volumes.iat[i + 1] / volumes.iat[i]
        if gap < REVENGE_WINDOW and ratio > REVENGE_VOLUME_RATIO:
            flagged.extend([df.at[i, "id"], df.at[i + 1, "id"]])

    return _unique_ids(flagged)


def detect_overtrading(df: pd.DataFrame, now: datetime) -> Optional[list[str]]:
    """Most recent ids when more than 10 trades landed in the last 2 hours."""
    window_start = pd.Timestamp(now - OVERTRADING_WINDOW)
    recent = df[df["created_at"] > window_start]
    if len(recent) <= OVERTRADING_MAX_TRADES:
        return None

    newest = df.iloc[::-1].head(OVERTRADING_SEQUENCE_LENGTH)
    return _unique_ids(list(newest["id"]))


def detect_lot_size_escalation(df: pd.DataFrame) -> Optional[list[str]]:
    """Ids of the last three trades when each is larger than the one before."""
    if len(df) < ESCALATION_TRADES:
        return None

    last = df.tail(ESCALATION_TRADES)
    volumes = (
        last["volume"].fillna(ESCALATION_DEFAULT_VOLUME)
        .replace(0, ESCALATION_DEFAULT_VOLUME)
        .tolist()
    )
    escalating = all(a < b for a, b in zip(volumes, volumes[1:]))
    if not escalating or volumes[0] <= 0:
        return None

    if volumes[-1] / volumes[0] <= ESCALATION_MIN_RATIO:
        return None
    return _unique_ids(list(last["id"].iloc[::-1]))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def detect_behaviors(
    trades: list[dict[str, Any]],
    now: Optional[datetime] = None,
) -> list[DetectedBehavior]:
    """Run every detector over a user's recent trades.

    Parameters
    ----------
    trades : list of dict
        Trade rows in any order.
    now : datetime, optional
        Reference time for the overtrading window. Defaults to the current
        UTC time; naive values are taken as UTC.

    Returns
    -------
    list of DetectedBehavior
        In the order revenge trading, overtrading, lot-size escalation.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if not trades:
        return []

    df = _to_frame(trades)
    behaviors: list[DetectedBehavior] = []

    revenge = detect_revenge_trading(df)
    if revenge:
        behaviors.append(DetectedBehavior(
            behavior_type="revenge_trading",
            severity="high",
            trade_sequence=revenge,
            ai_recommendation=RECOMMENDATIONS["revenge_trading"],
        ))

    overtrading = detect_overtrading(df, now)
    if overtrading:
        behaviors.append(DetectedBehavior(
            behavior_type="overtrading",
            severity="medium",
            trade_sequence=overtrading,
            ai_recommendation=RECOMMENDATIONS["overtrading"],
        ))

    escalation = detect_lot_size_escalation(df)
    if escalation:
        behaviors.append(DetectedBehavior(
            behavior_type="lot_size_escalation",
            severity="high",
            trade_sequence=escalation,
            ai_recommendation=RECOMMENDATIONS["lot_size_escalation"],
        ))

    logger.info(
        "Behavior scan: %d trades, %d behaviors (%s)",
        len(df), len(behaviors), ", ".join(b.behavior_type for b in behaviors) or "none",
    )
    return behaviors
