"""Supabase client for persisting imported trades and detected behaviors.

Reads connection info from environment:
    SUPABASE_URL          – project URL (e.g. https://xxx.supabase.co)
    SUPABASE_SERVICE_KEY  – service_role key (bypasses RLS)

If either is missing, read operations return None / empty and writes raise,
so the parser and analyzers still work in local dev without Supabase.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from journal_import.parsers.normalize import NormalizedTrade

logger = logging.getLogger(__name__)

_client = None
_initialized = False

TRADES_TABLE = "trades"
BEHAVIORS_TABLE = "trading_behaviors"


class TradeInsertError(RuntimeError):
    """Bulk insert of imported trades failed. Nothing is retried per record."""


def _get_client():
    """Lazy-init Supabase client. Returns None if env vars are missing."""
    global _client, _initialized

    if _initialized:
        return _client

    _initialized = True

    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_SERVICE_KEY")

    if not url or not key:
        logger.info(
            "Supabase not configured (SUPABASE_URL / SUPABASE_SERVICE_KEY missing). "
            "Imports cannot be persisted."
        )
        return None

    try:
        from supabase import create_client
        _client = create_client(url, key)
        logger.info("Supabase client initialized for %s", url)
    except Exception:
        logger.exception("Failed to initialize Supabase client")
        _client = None

    return _client


def is_configured() -> bool:
    """Check if Supabase credentials are present."""
    return _get_client() is not None


def get_user_id(token: Optional[str]) -> Optional[str]:
    """Resolve a user id from a Supabase access token, or None if invalid."""
    client = _get_client()
    if client is None or not token:
        return None

    try:
        resp = client.auth.get_user(token)
    except Exception:
        logger.info("Rejected access token", exc_info=True)
        return None

    user = getattr(resp, "user", None)
    return getattr(user, "id", None)


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------

def build_trade_rows(
    trades: Iterable[NormalizedTrade],
    user_id: str,
    imported_at: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """Convert parsed trades into rows for the ``trades`` table."""
    imported_at = imported_at or datetime.now(timezone.utc)
    note = f"Imported from MT5 on {imported_at.date().isoformat()}"

    rows = []
    for t in trades:
        rows.append({
            "user_id": user_id,
            "pair": t.pair,
            "direction": t.direction,
            "entry_price": t.entry_price,
            "exit_price": t.exit_price,
            "stop_loss": t.stop_loss,
            "take_profit": t.take_profit,
            "volume": t.volume,
            "result": t.result,
            "profit_loss": t.profit_loss,
            "notes": note,
            "created_at": t.open_time or imported_at.isoformat(),
        })
    return rows


def insert_trades(trades: list[NormalizedTrade], user_id: str) -> list[str]:
    """Bulk-insert parsed trades for a user and return the new row ids.

    Raises:
        TradeInsertError: if Supabase is unavailable or the insert fails.
    """
    client = _get_client()
    if client is None:
        raise TradeInsertError("Supabase not configured")

    rows = build_trade_rows(trades, user_id)
    try:
        resp = client.table(TRADES_TABLE).insert(rows).execute()
    except Exception as e:
        logger.exception("Failed to insert %d trades for %s", len(rows), user_id)
        raise TradeInsertError(f"Failed to insert trades: {e}") from e

    ids = [row["id"] for row in (resp.data or [])]
    logger.info("Inserted %d trades for %s", len(ids), user_id)
    return ids


def fetch_recent_trades(
    user_id: str,
    since: datetime,
    limit: int = 20,
) -> list[dict[str, Any]]:
    """Fetch a user's trades created after ``since``, newest first."""
    client = _get_client()
    if client is None:
        return []

    try:
        resp = (
            client.table(TRADES_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .gte("created_at", since.isoformat())
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return resp.data or []
    except Exception:
        logger.exception("Failed to fetch recent trades for %s", user_id)
        return []


# ---------------------------------------------------------------------------
# Behaviors
# ---------------------------------------------------------------------------

def save_behaviors(user_id: str, behaviors: list[dict[str, Any]]) -> bool:
    """Store detected behaviors. Returns True on success, False on failure."""
    client = _get_client()
    if client is None or not behaviors:
        return False

    rows = [{"user_id": user_id, **b} for b in behaviors]
    try:
        client.table(BEHAVIORS_TABLE).insert(rows).execute()
        logger.info("Saved %d behaviors for %s", len(rows), user_id)
        return True
    except Exception:
        logger.exception("Failed to save behaviors for %s", user_id)
        return False
