from datetime import datetime, timedelta, timezone

import pytest

from decision.prompt_builder import (
    PromptBuilder,
    bollinger_status,
    macd_status,
    rsi_status,
    streak_warning,
    volume_status,
)
from shared.models.indicators import MACD, Bands, IndicatorSnapshot, MarketContext, Squeeze, VwapBands
from shared.models.models import (
    Candle,
    ClosedTrade,
    DecisionContext,
    PerformanceStats,
    PortfolioState,
    Position,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _snapshot(**overrides):
    base = dict(
        rsi=55.0,
        macd=MACD(macd=1.0, signal=0.5, histogram=0.5),
        bollinger=Bands(upper=103.0, middle=100.0, lower=97.0),
        sma20=100.0,
        sma50=99.0,
        ema12=100.5,
        ema26=100.1,
        volume_average=10.0,
        volume_ratio=1.0,
    )
    base.update(overrides)
    return IndicatorSnapshot(**base)


def _candles(n=12):
    return [
        Candle(ts=T0 + timedelta(minutes=5 * i), open=100 + i, high=101 + i, low=99 + i, close=100.0 + i, volume=5.0)
        for i in range(n)
    ]


def _context(*, position=None, trades=(), stats=None, indicators=None):
    candles = _candles()
    return DecisionContext(
        pair="BTC/USD",
        timeframe="5m",
        current_price=candles[-1].close,
        ts=candles[-1].ts,
        candles=candles,
        indicators=indicators or _snapshot(),
        market_context=MarketContext(volatility="low", trend="bullish", momentum="neutral", support=95.0),
        portfolio=PortfolioState(cash=1000.0, total_equity=1000.0),
        position=position,
        stats=stats or PerformanceStats(),
        recent_trades=trades,
    )


def _closed(pnl, i=0):
    return ClosedTrade(
        id=f"trade_{i}",
        ts=T0,
        symbol="BTC/USD",
        action="BUY",
        quantity=1.0,
        price=100.0,
        value=100.0,
        fee=0.0,
        stop_loss=99.0,
        take_profit=102.0,
        reasoning=f"setup {i}",
        exit_time=T0 + timedelta(minutes=30),
        exit_price=100.0 + pnl,
        exit_fee=0.0,
        pnl=pnl,
        pnl_pct=pnl,
        holding_period_secs=1800.0,
        is_win=pnl > 0,
    )


def test_sections_in_order():
    prompt = PromptBuilder().build(_context())
    titles = [
        "CURRENT MARKET DATA:",
        "TECHNICAL INDICATORS:",
        "MARKET CONTEXT:",
        "PORTFOLIO STATUS:",
        "PERFORMANCE STATISTICS:",
        "RECENT TRADES:",
        "DECISION REQUIRED:",
    ]
    positions = [prompt.index(t) for t in titles]
    assert positions == sorted(positions)
    assert "• Current Position: NONE (No open positions)" in prompt
    assert "No trades yet." in prompt
    assert "• Support Level: $95.00" in prompt
    assert "• Resistance Level: N/A" in prompt
    assert "PRICE ACTION ANALYSIS" not in prompt


def test_optional_indicators_only_when_present():
    assert "SCALPING INDICATORS" not in PromptBuilder().build(_context())

    ind = _snapshot(squeeze=Squeeze(is_active=True, intensity="high"), extras={"atr_14": 1.25})
    prompt = PromptBuilder().build(_context(indicators=ind))
    assert "SCALPING INDICATORS:" in prompt
    assert "• BB/Keltner Squeeze: ACTIVE" in prompt
    assert "  - Intensity: HIGH" in prompt
    assert "  - atr_14: 1.2500" in prompt


def test_setup_signals_section():
    vwap = VwapBands(value=100.0, std1_upper=102.0, std1_lower=98.0, std2_upper=104.0, std2_lower=96.0)
    prompt = PromptBuilder().build(_context(indicators=_snapshot(vwap=vwap, rsi=75.0)))
    assert "SETUP SIGNALS:" in prompt
    assert "• VWAP Reversion: SHORT (Grade A)" in prompt
    assert "• RSI Overbought" in prompt
    assert "• Price at Upper Bollinger Band" in prompt
    assert prompt.index("MARKET CONTEXT:") < prompt.index("SETUP SIGNALS:") < prompt.index("PORTFOLIO STATUS:")


def test_no_setup_section_without_signals():
    quiet = _snapshot(bollinger=Bands(upper=130.0, middle=110.0, lower=90.0))
    assert "SETUP SIGNALS" not in PromptBuilder().build(_context(indicators=quiet))


def test_price_action_mode_replaces_indicators():
    prompt = PromptBuilder(use_technical_indicators=False).build(_context())
    assert "PRICE ACTION ANALYSIS:" in prompt
    assert "Recent Price Movement (Last 10 Candles):" in prompt
    assert "TECHNICAL INDICATORS" not in prompt
    assert "MARKET CONTEXT" not in prompt
    assert "SETUP SIGNALS" not in prompt
    assert "2024-01-01 00:20: $104.00 (+0.97%)" in prompt


def test_open_position_rendered():
    pos = Position(
        symbol="BTC/USD",
        entry_price=100.0,
        quantity=2.0,
        entry_time=T0,
        stop_loss=99.0,
        take_profit=103.0,
    )
    pos.mark(101.0)
    prompt = PromptBuilder().build(_context(position=pos))
    assert "  - Side: LONG" in prompt
    assert "  - Unrealized P&L: $2.00 (1.00%)" in prompt
    assert "  - Stop Loss: $99.00" in prompt


def test_recent_trades_limited_to_five():
    trades = [_closed(5.0 if i % 2 else -3.0, i) for i in range(7)]
    prompt = PromptBuilder().build(_context(trades=trades))
    assert "RECENT TRADES (Last 5):" in prompt
    assert "setup 1" not in prompt
    assert "setup 2" in prompt and "setup 6" in prompt
    assert "   P&L: -$3.00 (-3.00%)" in prompt
    assert "   P&L: +$5.00 (+5.00%)" in prompt


def test_losing_streak_warning():
    prompt = PromptBuilder().build(_context(stats=PerformanceStats(consecutive_losses=3)))
    assert "• Consecutive Losses: 3 CIRCUIT BREAKER WARNING!" in prompt


@pytest.mark.parametrize(
    "rsi,label", [(75, "OVERBOUGHT"), (25, "OVERSOLD"), (65, "Bullish"), (35, "Bearish"), (50, "Neutral")]
)
def test_rsi_status(rsi, label):
    assert rsi_status(rsi) == label


def test_other_status_helpers():
    assert macd_status(0.1) == "Bullish"
    assert macd_status(-0.1) == "Bearish"
    assert macd_status(0.0) == "Neutral"
    assert bollinger_status(Bands(upper=100.5, middle=100.0, lower=99.5)) == "Tight Squeeze"
    assert bollinger_status(Bands(upper=103.0, middle=100.0, lower=97.0)) == "Wide Expansion"
    assert bollinger_status(Bands(upper=102.0, middle=100.0, lower=98.0)) == "Normal"
    assert volume_status(2.0) == "HIGH"
    assert volume_status(1.3) == "Above Average"
    assert volume_status(0.5) == "Below Average"
    assert volume_status(1.0) == "Normal"
    assert streak_warning(2) == "CAUTION"
    assert streak_warning(1) == ""
