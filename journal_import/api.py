"""FastAPI service for importing MT5 trade reports into the journal.

Endpoints:
    POST /import-mt5-trades   multipart upload of a .csv/.html report
    POST /detect-behavior     rule-based scan of the last 24 hours of trades
    GET  /health

Both POST endpoints expect a Supabase access token as ``Authorization: Bearer``.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, File, Header, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from journal_import import __version__
from journal_import.analyzers import detect_behaviors
from journal_import.parsers import ReportParser, UnsupportedFormat
from journal_import.storage import supabase_client
from journal_import.storage.supabase_client import TradeInsertError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES))
BEHAVIOR_TRADE_LIMIT = 20

# ─── Startup env-var check ───────────────────────────────────────────────────
logger.info(
    "[STARTUP] Env check: SUPABASE_URL=%s, SUPABASE_SERVICE_KEY=%s, MAX_UPLOAD_BYTES=%d",
    "set" if os.environ.get("SUPABASE_URL") else "missing",
    "set" if os.environ.get("SUPABASE_SERVICE_KEY") else "missing",
    MAX_UPLOAD_BYTES,
)

app = FastAPI(
    title="Journal Import",
    description="MT5 trade report import and behavior detection",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.environ.get("ALLOWED_ORIGINS", "*").split(",") if o.strip()],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "X-Client-Info", "Apikey", "Content-Type"],
)


# ─── Helpers ─────────────────────────────────────────────────────────────────


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def decode_report(data: bytes) -> str:
    """Decode uploaded report bytes.

    MT5 terminals save HTML reports as UTF-16LE with a BOM; CSV exports are
    usually UTF-8 or a Windows code page.
    """
    if data.startswith((b"\xff\xfe", b"\xfe\xff")):
        return data.decode("utf-16", errors="replace")
    for enc in ("utf-8-sig", "cp1252"):
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("latin-1")


# ─── Endpoints ───────────────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "version": __version__,
        "supabase_connected": supabase_client.is_configured(),
    }


@app.post("/import-mt5-trades")
async def import_mt5_trades(
    file: Optional[UploadFile] = File(None),
    authorization: Optional[str] = Header(None),
) -> JSONResponse:
    """Parse an uploaded MT5 report and bulk-insert its trades.

    1. Authenticate the caller
    2. Read and decode the upload
    3. Parse (CSV or HTML)
    4. Insert all records in one request
    """
    if not supabase_client.is_configured():
        return _error("Supabase not configured", 503)

    user_id = supabase_client.get_user_id(_bearer_token(authorization))
    if not user_id:
        logger.info("[IMPORT] Rejected unauthenticated request")
        return _error("Unauthorized", 401)

    if file is None or not file.filename:
        logger.info("[IMPORT] No file provided by %s", user_id)
        return _error("No file provided", 400)

    try:
        data = await file.read(MAX_UPLOAD_BYTES + 1)
        if len(data) > MAX_UPLOAD_BYTES:
            logger.info("[IMPORT] %s exceeds %d bytes", file.filename, MAX_UPLOAD_BYTES)
            return _error(f"File too large. Maximum size is {MAX_UPLOAD_BYTES} bytes.", 413)

        logger.info("[IMPORT] %s uploaded %s (%d bytes)", user_id, file.filename, len(data))

        parser = ReportParser()
        try:
            trades = parser.parse(decode_report(data), file.filename)
        except UnsupportedFormat:
            return _error("Unsupported file format. Please upload .csv or .html file.", 400)

        logger.info(
            "[IMPORT] Parsed %d trades (format=%s, strategy=%s, skipped=%d)",
            len(trades), parser.report_format, parser.strategy, parser.skipped_rows,
        )

        if not trades:
            return _error(
                "No trades found in file. Please ensure the file is a valid MT5 trade report.",
                400,
            )

        try:
            trade_ids = supabase_client.insert_trades(trades, user_id)
        except TradeInsertError as e:
            return _error(str(e), 500)

        return JSONResponse({
            "success": True,
            "importedCount": len(trade_ids),
            "tradeIds": trade_ids,
        })
    except Exception as e:
        logger.exception("[IMPORT] Unexpected failure")
        return _error(str(e) or "Unknown error", 500)


class DetectBehaviorRequest(BaseModel):
    lookback_hours: int = Field(24, ge=1, le=168)
    limit: int = Field(BEHAVIOR_TRADE_LIMIT, ge=1, le=200)


@app.post("/detect-behavior")
def detect_behavior(
    req: Optional[DetectBehaviorRequest] = None,
    authorization: Optional[str] = Header(None),
) -> JSONResponse:
    """Scan the caller's recent trades and store findings.

    Defaults to the last 24 hours and 20 trades; the optional body widens or
    narrows that window.
    """
    req = req or DetectBehaviorRequest()

    if not supabase_client.is_configured():
        return _error("Supabase not configured", 503)

    user_id = supabase_client.get_user_id(_bearer_token(authorization))
    if not user_id:
        return _error("Unauthorized", 401)

    try:
        now = datetime.now(timezone.utc)
        trades = supabase_client.fetch_recent_trades(
            user_id, since=now - timedelta(hours=req.lookback_hours), limit=req.limit,
        )
        if not trades:
            return JSONResponse({"behaviors": [], "message": "No recent trades to analyze"})

        behaviors = [b.to_dict() for b in detect_behaviors(trades, now=now)]
        if behaviors:
            supabase_client.save_behaviors(user_id, behaviors)

        logger.info("[BEHAVIOR] %s: %d behaviors in %d trades", user_id, len(behaviors), len(trades))
        return JSONResponse({"behaviors": behaviors, "trades_analyzed": len(trades)})
    except Exception as e:
        logger.exception("[BEHAVIOR] Unexpected failure")
        return _error(str(e) or "Unknown error", 500)


# ─── Runner ──────────────────────────────────────────────────────────────────


def run_server() -> None:
    """Serve the app with uvicorn on HOST:PORT (defaults 0.0.0.0:8000)."""
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    logger.info("[STARTUP] Serving on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
