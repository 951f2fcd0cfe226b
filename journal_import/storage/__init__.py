from .supabase_client import (
    TradeInsertError,
    build_trade_rows,
    fetch_recent_trades,
    get_user_id,
    insert_trades,
    is_configured,
    save_behaviors,
)
