"""决策提示词构建。

提示词由若干固定标题的段落组成，段落间空一行：
CURRENT MARKET DATA / TECHNICAL INDICATORS + MARKET CONTEXT（或 PRICE ACTION ANALYSIS）/
SETUP SIGNALS（有命中时）/ PORTFOLIO STATUS / PERFORMANCE STATISTICS / RECENT TRADES / DECISION REQUIRED。
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from algo.indicators import setups
from shared.models.indicators import Bands, IndicatorSnapshot, MarketContext, SetupSignal
from shared.models.models import ClosedTrade, DecisionContext, PerformanceStats, PortfolioState, Position

SEPARATOR = "━" * 42
RECENT_TRADES_LIMIT = 5
PRICE_ACTION_CANDLES = 10


def rsi_status(rsi: float) -> str:
    if rsi > 70:
        return "OVERBOUGHT"
    if rsi < 30:
        return "OVERSOLD"
    if rsi > 60:
        return "Bullish"
    if rsi < 40:
        return "Bearish"
    return "Neutral"


def macd_status(histogram: float) -> str:
    if histogram > 0:
        return "Bullish"
    if histogram < 0:
        return "Bearish"
    return "Neutral"


def bollinger_status(bands: Bands) -> str:
    width_pct = bands.width_ratio * 100
    if width_pct < 2:
        return "Tight Squeeze"
    if width_pct > 5:
        return "Wide Expansion"
    return "Normal"


def volume_status(ratio: float) -> str:
    if ratio > 1.5:
        return "HIGH"
    if ratio > 1.2:
        return "Above Average"
    if ratio < 0.8:
        return "Below Average"
    return "Normal"


def streak_warning(consecutive_losses: int) -> str:
    if consecutive_losses >= 3:
        return "CIRCUIT BREAKER WARNING!"
    if consecutive_losses >= 2:
        return "CAUTION"
    return ""


def _section(title: str, lines: Sequence[str]) -> str:
    return "\n".join([f"{title}:", SEPARATOR, *lines])


def _fmt_price(value: Optional[float]) -> str:
    return f"${value:.2f}" if value else "N/A"


class PromptBuilder:
    """把 DecisionContext 渲染为提示词文本。

    Parameters
    ----------
    use_technical_indicators:
        False 时不输出指标与市场状态，改为最近 10 根 K 线的收盘价与涨跌幅。
    """

    def __init__(self, use_technical_indicators: bool = True):
        self.use_technical_indicators = use_technical_indicators

    def build(self, context: DecisionContext) -> str:
        sections = [self.market_data_section(context)]
        if self.use_technical_indicators:
            sections.append(self.indicators_section(context.indicators))
            sections.append(self.market_context_section(context.market_context))
            signals = self.setup_signals(context)
            if signals:
                sections.append(_section("SETUP SIGNALS", signals))
        else:
            sections.append(self.price_action_section(context))
        sections.extend(
            [
                self.portfolio_section(context.portfolio, context.position),
                self.performance_section(context.stats),
                self.recent_trades_section(context.recent_trades),
                self.decision_request_section(),
            ]
        )
        return "\n\n".join(sections)

    # ------------------------------------------------------------------
    @staticmethod
    def market_data_section(context: DecisionContext) -> str:
        lines = [
            f"• Pair: {context.pair}",
            f"• Timeframe: {context.timeframe}",
            f"• Current Price: ${context.current_price:.2f}",
        ]
        if context.candles:
            c = context.candles[-1]
            lines += [
                "• Latest Candle:",
                f"  - Open: ${c.open:.2f}",
                f"  - High: ${c.high:.2f}",
                f"  - Low: ${c.low:.2f}",
                f"  - Close: ${c.close:.2f}",
                f"  - Volume: {c.volume:.2f}",
            ]
        return _section("CURRENT MARKET DATA", lines)

    @staticmethod
    def indicators_section(ind: IndicatorSnapshot) -> str:
        bb = ind.bollinger
        lines = [
            f"• RSI (14): {ind.rsi:.2f} - {rsi_status(ind.rsi)}",
            "• MACD:",
            f"  - MACD Line: {ind.macd.macd:.2f}",
            f"  - Signal Line: {ind.macd.signal:.2f}",
            f"  - Histogram: {ind.macd.histogram:.2f} - {macd_status(ind.macd.histogram)}",
            "• Bollinger Bands:",
            f"  - Upper: ${bb.upper:.2f}",
            f"  - Middle: ${bb.middle:.2f}",
            f"  - Lower: ${bb.lower:.2f}",
            f"  - Status: {bollinger_status(bb)}",
            "• Moving Averages:",
            f"  - SMA 20: ${ind.sma20:.2f}",
            f"  - SMA 50: ${ind.sma50:.2f}",
            f"  - EMA 12: ${ind.ema12:.2f}",
            f"  - EMA 26: ${ind.ema26:.2f}",
            "• Volume:",
            f"  - Average: {ind.volume_average:.2f}",
            f"  - Ratio: {ind.volume_ratio:.2f}x {volume_status(ind.volume_ratio)}",
        ]
        section = _section("TECHNICAL INDICATORS", lines)

        scalping: list[str] = []
        if ind.vwap is not None:
            v = ind.vwap
            scalping += [
                "• VWAP:",
                f"  - Value: ${v.value:.2f}",
                f"  - +1σ: ${v.std1_upper:.2f}",
                f"  - -1σ: ${v.std1_lower:.2f}",
                f"  - +2σ: ${v.std2_upper:.2f} (Extreme Overbought)",
                f"  - -2σ: ${v.std2_lower:.2f} (Extreme Oversold)",
            ]
        if ind.keltner is not None:
            k = ind.keltner
            scalping += [
                "• Keltner Channels (ATR-based):",
                f"  - Upper: ${k.upper:.2f}",
                f"  - Middle: ${k.middle:.2f}",
                f"  - Lower: ${k.lower:.2f}",
            ]
        if ind.squeeze is not None:
            sq = ind.squeeze
            scalping += [
                f"• BB/Keltner Squeeze: {'ACTIVE' if sq.is_active else 'Inactive'}",
                f"  - Intensity: {sq.intensity.upper()}",
            ]
            if sq.is_active:
                scalping.append("  - VOLATILITY COMPRESSION - breakout likely")
        if ind.volume_profile is not None:
            vp = ind.volume_profile
            scalping += [
                "• Volume Profile (last 50 candles):",
                f"  - POC (Point of Control): ${vp.poc:.2f}",
                f"  - VAH (Value Area High): ${vp.vah:.2f}",
                f"  - VAL (Value Area Low): ${vp.val:.2f}",
                f"  - Total Volume: {vp.total_volume:.2f}",
            ]
        if ind.market_delta is not None:
            md = ind.market_delta
            scalping += [
                "• Market Delta (Orderflow):",
                f"  - Buy Volume: {md.buy_volume:.2f}",
                f"  - Sell Volume: {md.sell_volume:.2f}",
                f"  - Delta: {md.delta:.2f} ({md.delta_pct:.1f}%)",
                f"  - Imbalance: {md.imbalance.upper().replace('_', ' ')}",
            ]
        if ind.extras:
            scalping.append("• Additional Factors:")
            scalping += [f"  - {name}: {value:.4f}" for name, value in sorted(ind.extras.items())]
        if scalping:
            section += "\n\n" + _section("SCALPING INDICATORS", scalping)
        return section

    @staticmethod
    def market_context_section(ctx: MarketContext) -> str:
        return _section(
            "MARKET CONTEXT",
            [
                f"• Volatility: {ctx.volatility.upper()}",
                f"• Trend: {ctx.trend.upper()}",
                f"• Momentum: {ctx.momentum.upper()}",
                f"• Support Level: {_fmt_price(ctx.support)}",
                f"• Resistance Level: {_fmt_price(ctx.resistance)}",
            ],
        )

    @staticmethod
    def setup_signals(context: DecisionContext) -> list[str]:
        """把命中的形态与指标状态渲染为条目；未命中时返回空列表。"""
        ind = context.indicators
        price = context.current_price
        found: list[tuple[str, SetupSignal]] = []
        if ind.vwap is not None:
            found.append(("VWAP Reversion", setups.detect_vwap_reversion(price, ind.vwap)))
        if ind.squeeze is not None and ind.keltner is not None and len(context.candles) >= 2:
            prev = context.candles[-2].close
            found.append(("Squeeze Breakout", setups.detect_squeeze_breakout(price, prev, ind.squeeze, ind.keltner)))
        if ind.volume_profile is not None:
            found.append(("POC Magnet", setups.detect_poc_magnet(price, ind.volume_profile)))

        lines = [
            f"• {name}: {sig.direction.upper()} (Grade {sig.quality})" for name, sig in found if sig.is_setup
        ]
        if setups.is_overbought(ind):
            lines.append("• RSI Overbought")
        elif setups.is_oversold(ind):
            lines.append("• RSI Oversold")
        if setups.is_bullish_crossover(ind):
            lines.append("• MACD Bullish Crossover")
        elif setups.is_bearish_crossover(ind):
            lines.append("• MACD Bearish Crossover")
        if setups.is_price_at_upper_band(price, ind):
            lines.append("• Price at Upper Bollinger Band")
        elif setups.is_price_at_lower_band(price, ind):
            lines.append("• Price at Lower Bollinger Band")
        return lines

    @staticmethod
    def price_action_section(context: DecisionContext) -> str:
        recent = list(context.candles)[-PRICE_ACTION_CANDLES:]
        lines = [f"Recent Price Movement (Last {len(recent)} Candles):"]
        for i, c in enumerate(recent):
            change = (c.close - recent[i - 1].close) / recent[i - 1].close * 100 if i > 0 else 0.0
            lines.append(f"  - {c.ts:%Y-%m-%d %H:%M}: ${c.close:.2f} ({change:+.2f}%)")
        lines += [
            "",
            "No technical indicators are provided.",
            "Rely on price action, candlestick patterns and support/resistance from the raw candles.",
        ]
        return _section("PRICE ACTION ANALYSIS", lines)

    @staticmethod
    def _fmt_holdings(holdings: Mapping[str, float]) -> str:
        if not holdings:
            return "None"
        return ", ".join(f"{symbol}: {qty:.6f}" for symbol, qty in holdings.items())

    def portfolio_section(self, portfolio: PortfolioState, position: Optional[Position]) -> str:
        lines = [
            f"• Cash Available: ${portfolio.cash:.2f}",
            f"• Total Equity: ${portfolio.total_equity:.2f}",
            f"• Holdings: {self._fmt_holdings(portfolio.holdings)}",
        ]
        if position is None:
            lines.append("• Current Position: NONE (No open positions)")
        else:
            entry_value = position.entry_value
            pnl_pct = position.unrealized_pnl / entry_value * 100 if entry_value else 0.0
            lines += [
                "• Current Position:",
                f"  - Side: {position.side.upper()}",
                f"  - Entry Price: ${position.entry_price:.2f}",
                f"  - Current Price: {_fmt_price(position.current_price)}",
                f"  - Quantity: {position.quantity:.6f}",
                f"  - Unrealized P&L: ${position.unrealized_pnl:.2f} ({pnl_pct:.2f}%)",
                f"  - Stop Loss: ${position.stop_loss:.2f}",
                f"  - Take Profit: ${position.take_profit:.2f}",
            ]
        return _section("PORTFOLIO STATUS", lines)

    @staticmethod
    def performance_section(stats: PerformanceStats) -> str:
        warning = streak_warning(stats.consecutive_losses)
        return _section(
            "PERFORMANCE STATISTICS",
            [
                f"• Total Trades: {stats.total_trades} ({stats.winning_trades}W / {stats.losing_trades}L)",
                f"• Win Rate: {stats.win_rate:.2f}%",
                f"• Profit Factor: {stats.profit_factor:.2f}",
                f"• Total P&L: ${stats.total_pnl:.2f} ({stats.total_pnl_pct:.2f}%)",
                f"• Sharpe Ratio: {stats.sharpe_ratio:.2f}",
                f"• Max Drawdown: {stats.max_drawdown * 100:.2f}%",
                f"• Current Drawdown: {stats.current_drawdown * 100:.2f}%",
                f"• Consecutive Wins: {stats.consecutive_wins}",
                f"• Consecutive Losses: {stats.consecutive_losses} {warning}".rstrip(),
                f"• Average Win: ${stats.average_win:.2f}",
                f"• Average Loss: ${abs(stats.average_loss):.2f}",
                f"• Expectancy: ${stats.expectancy:.2f} per trade",
            ],
        )

    @staticmethod
    def recent_trades_section(trades: Sequence[ClosedTrade]) -> str:
        if not trades:
            return _section("RECENT TRADES", ["No trades yet."])
        recent = list(trades)[-RECENT_TRADES_LIMIT:]
        lines: list[str] = []
        for i, t in enumerate(recent, start=1):
            sign = "+" if t.pnl >= 0 else "-"
            lines += [
                f"{i}. {'WIN' if t.is_win else 'LOSS'} - {t.action} @ ${t.price:.2f} -> Exit @ ${t.exit_price:.2f}",
                f"   P&L: {sign}${abs(t.pnl):.2f} ({t.pnl_pct:+.2f}%)",
                f"   Reason: {t.reasoning}",
            ]
        return _section(f"RECENT TRADES (Last {len(recent)})", lines)

    @staticmethod
    def decision_request_section() -> str:
        return _section(
            "DECISION REQUIRED",
            [
                "Based on the market data, indicators, portfolio status and performance history above:",
                "",
                "1. Analyze the current market situation",
                "2. Consider risk management (max 2% risk per trade)",
                "3. Respect circuit breakers (stop after 3 consecutive losses)",
                "4. Make a trading decision: BUY, SELL, or HOLD",
                "",
                "Respond ONLY with valid JSON in this exact format:",
                "{",
                '  "action": "BUY" | "SELL" | "HOLD",',
                '  "confidence": 0.0-1.0,',
                '  "quantity": 0.0-1.0,',
                '  "stopLoss": number,',
                '  "takeProfit": number,',
                '  "reasoning": "string"',
                "}",
            ],
        )
