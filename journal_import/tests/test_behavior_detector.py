"""Tests for rule-based trading behavior detection."""

from datetime import datetime, timedelta, timezone

from journal_import.analyzers.behavior_detector import (
    RECOMMENDATIONS,
    detect_behaviors,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _trade(trade_id, minutes_ago, result="win", volume=0.1):
    return {
        "id": trade_id,
        "result": result,
        "created_at": (NOW - timedelta(minutes=minutes_ago)).isoformat(),
        "volume": volume,
    }


def _types(behaviors):
    return [b.behavior_type for b in behaviors]


class TestRevengeTrading:
    def test_bigger_trade_right_after_loss(self):
        trades = [
            _trade("t2", 170, volume=0.5),
            _trade("t1", 175, result="loss", volume=0.2),
        ]
        behaviors = detect_behaviors(trades, now=NOW)
        revenge = [b for b in behaviors if b.behavior_type == "revenge_trading"]
        assert len(revenge) == 1
        assert revenge[0].severity == "high"
        assert revenge[0].trade_sequence == ["t1", "t2"]
        assert revenge[0].ai_recommendation == RECOMMENDATIONS["revenge_trading"]

    def test_slow_follow_up_ignored(self):
        trades = [
            _trade("t1", 200, result="loss", volume=0.2),
            _trade("t2", 170, volume=0.5),
        ]
        assert "revenge_trading" not in _types(detect_behaviors(trades, now=NOW))

    def test_same_size_ignored(self):
        trades = [
            _trade("t1", 175, result="loss", volume=0.2),
            _trade("t2", 170, volume=0.25),
        ]
        assert "revenge_trading" not in _types(detect_behaviors(trades, now=NOW))

    def test_after_win_ignored(self):
        trades = [
            _trade("t1", 175, result="win", volume=0.2),
            _trade("t2", 170, volume=0.5),
        ]
        assert "revenge_trading" not in _types(detect_behaviors(trades, now=NOW))

    def test_chained_losses_deduplicated(self):
        trades = [
            _trade("t1", 180, result="loss", volume=0.1),
            _trade("t2", 175, result="loss", volume=0.2),
            _trade("t3", 170, volume=0.4),
        ]
        behaviors = detect_behaviors(trades, now=NOW)
        revenge = [b for b in behaviors if b.behavior_type == "revenge_trading"][0]
        assert revenge.trade_sequence == ["t1", "t2", "t3"]


class TestOvertrading:
    def test_more_than_ten_in_two_hours(self):
        trades = [_trade(f"t{i}", i * 5) for i in range(11)]
        behaviors = detect_behaviors(trades, now=NOW)
        assert _types(behaviors) == ["overtrading"]
        assert behaviors[0].severity == "medium"
        assert behaviors[0].trade_sequence == [f"t{i}" for i in range(10)]

    def test_ten_trades_is_fine(self):
        trades = [_trade(f"t{i}", i * 5) for i in range(10)]
        assert detect_behaviors(trades, now=NOW) == []

    def test_old_trades_not_counted(self):
        trades = [_trade(f"t{i}", 130 + i) for i in range(15)]
        assert "overtrading" not in _types(detect_behaviors(trades, now=NOW))


class TestLotSizeEscalation:
    def test_growing_sizes(self):
        trades = [
            _trade("a", 300, volume=0.1),
            _trade("b", 200, volume=0.2),
            _trade("c", 100, volume=0.3),
        ]
        behaviors = detect_behaviors(trades, now=NOW)
        assert _types(behaviors) == ["lot_size_escalation"]
        assert behaviors[0].trade_sequence == ["c", "b", "a"]

    def test_zero_volume_counts_as_minimum_lot(self):
        trades = [
            _trade("a", 300, volume=0),
            _trade("b", 200, volume=0.2),
            _trade("c", 100, volume=0.3),
        ]
        behaviors = detect_behaviors(trades, now=NOW)
        assert _types(behaviors) == ["lot_size_escalation"]
        assert behaviors[0].trade_sequence == ["c", "b", "a"]

    def test_small_growth_ignored(self):
        trades = [
            _trade("a", 300, volume=1.0),
            _trade("b", 200, volume=1.2),
            _trade("c", 100, volume=1.4),
        ]
        assert detect_behaviors(trades, now=NOW) == []

    def test_not_monotonic(self):
        trades = [
            _trade("a", 300, volume=0.1),
            _trade("b", 200, volume=0.3),
            _trade("c", 100, volume=0.2),
        ]
        assert detect_behaviors(trades, now=NOW) == []

    def test_too_few_trades(self):
        trades = [_trade("a", 300, volume=0.1), _trade("b", 200, volume=0.5)]
        assert detect_behaviors(trades, now=NOW) == []


class TestDetectBehaviors:
    def test_empty(self):
        assert detect_behaviors([], now=NOW) == []

    def test_rows_without_time_dropped(self):
        trades = [{"id": "x", "result": "loss", "created_at": None, "volume": 1}]
        assert detect_behaviors(trades, now=NOW) == []

    def test_to_dict(self):
        trades = [
            _trade("a", 300, volume=0.1),
            _trade("b", 200, volume=0.2),
            _trade("c", 100, volume=0.3),
        ]
        row = detect_behaviors(trades, now=NOW)[0].to_dict()
        assert set(row) == {"behavior_type", "severity", "trade_sequence", "ai_recommendation"}

    def test_naive_now_treated_as_utc(self):
        trades = [_trade(f"t{i}", i * 5) for i in range(11)]
        behaviors = detect_behaviors(trades, now=NOW.replace(tzinfo=None))
        assert "overtrading" in _types(behaviors)
