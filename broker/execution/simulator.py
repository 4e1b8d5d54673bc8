"""模拟撮合与组合记账。

职责：持有现金与唯一持仓，按 收盘价 ± 滑点 成交并扣除 taker 手续费，
检查止损/止盈，按市值更新总权益。只做多；SELL 只平已有仓位。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from broker.execution.slippage_models import FractionSlippageModel, SlippageModel
from shared.config.schema import FeesConfig
from shared.models.models import Candle, ClosedTrade, PortfolioState, Position, TradeRecord
from shared.utils.logging import setup_logger
from shared.utils.trade_id import make_trade_id

STOP_LOSS_REASON = "Stop Loss triggered"
TAKE_PROFIT_REASON = "Take Profit triggered"


@dataclass(frozen=True)
class FillResult:
    status: str
    reason: str | None
    raw_price: float
    exec_price: float
    exec_qty: float
    fee_paid: float
    cash: float
    trade: TradeRecord | None = None


class ExecutionSimulator:
    """单品种、单持仓的现货模拟撮合。

    Parameters
    ----------
    pair:
        交易对，例如 "BTC/USD"；持仓记在基础资产（"BTC"）名下。
    initial_capital:
        初始现金。
    fees:
        手续费与滑点配置；成交一律按 taker 费率计。
    """

    def __init__(
        self,
        *,
        pair: str,
        initial_capital: float,
        fees: FeesConfig | None = None,
        slippage: SlippageModel | None = None,
        logger: logging.Logger | None = None,
    ):
        fees = fees or FeesConfig()
        self.pair = pair
        self.base_asset = pair.split("/")[0]
        self.fee_rate = float(fees.taker)
        self.slippage = slippage or FractionSlippageModel(fees.slippage)
        self.logger = logger or setup_logger("execution")
        self.portfolio = PortfolioState(cash=float(initial_capital), total_equity=float(initial_capital))
        self.position: Optional[Position] = None
        self.open_trade: Optional[TradeRecord] = None
        self.trades: list[TradeRecord] = []
        self._seq = 0

    # ------------------------------------------------------------------
    def entry_price(self, price: float) -> float:
        """按当前收盘价计算开仓（买入）成交价。"""
        return self.slippage.apply(price=price, side="buy")

    def mark_to_market(self, candle: Candle) -> PortfolioState:
        """总权益 = 现金 + 持仓数量 * 收盘价。"""
        equity = self.portfolio.cash
        if self.position is not None:
            equity += self.position.quantity * candle.close
        self.portfolio.total_equity = equity
        self.portfolio.ts = candle.ts
        return self.portfolio

    def open_position(
        self,
        *,
        candle: Candle,
        quantity: float,
        stop_loss: float,
        take_profit: float,
        reasoning: str,
    ) -> FillResult:
        raw_price = float(candle.close)
        exec_price = self.entry_price(raw_price)
        cash = self.portfolio.cash
        if self.position is not None:
            return FillResult("blocked", "position_open", raw_price, exec_price, 0.0, 0.0, cash)

        # 现金不足时裁剪到可负担的最大数量（含手续费）
        max_affordable = cash / (exec_price * (1.0 + self.fee_rate)) if exec_price > 0 else 0.0
        qty = min(float(quantity), max_affordable)
        if qty <= 0:
            return FillResult("blocked", "insufficient_cash", raw_price, exec_price, 0.0, 0.0, cash)

        value = qty * exec_price
        fee = value * self.fee_rate
        self.portfolio.cash = cash - value - fee
        self.portfolio.holdings[self.base_asset] = qty

        self.position = Position(
            symbol=self.pair,
            entry_price=exec_price,
            quantity=qty,
            entry_time=candle.ts,
            stop_loss=stop_loss,
            take_profit=take_profit,
            entry_fee=fee,
            current_price=exec_price,
        )
        self._seq += 1
        trade = TradeRecord(
            id=make_trade_id(symbol=self.pair, side="BUY", ts=candle.ts, seq=self._seq),
            ts=candle.ts,
            symbol=self.pair,
            action="BUY",
            quantity=qty,
            price=exec_price,
            value=value,
            fee=fee,
            stop_loss=stop_loss,
            take_profit=take_profit,
            reasoning=reasoning,
        )
        self.open_trade = trade
        self.trades.append(trade)
        self.mark_to_market(candle)
        self.logger.info(
            "OPEN %s qty=%.6f price=%.2f value=%.2f fee=%.4f sl=%.2f tp=%.2f",
            self.pair,
            qty,
            exec_price,
            value,
            fee,
            stop_loss,
            take_profit,
        )
        return FillResult("filled", None, raw_price, exec_price, qty, fee, self.portfolio.cash, trade)

    def close_position(self, candle: Candle, reason: str) -> Optional[ClosedTrade]:
        """按 收盘价 * (1 - 滑点) 平掉全部持仓；无持仓时返回 None。"""
        position = self.position
        opened = self.open_trade
        if position is None or opened is None:
            return None

        exit_price = self.slippage.apply(price=float(candle.close), side="sell")
        exit_value = position.quantity * exit_price
        exit_fee = exit_value * self.fee_rate
        cost_basis = position.cost_basis
        pnl = exit_value - cost_basis - exit_fee
        pnl_pct = pnl / cost_basis * 100 if cost_basis > 0 else 0.0

        self.portfolio.cash += exit_value - exit_fee
        self.portfolio.holdings.pop(self.base_asset, None)
        self.position = None
        self.open_trade = None

        closed = ClosedTrade.from_open(
            opened,
            reasoning=reason,
            exit_time=candle.ts,
            exit_price=exit_price,
            exit_fee=exit_fee,
            pnl=pnl,
            pnl_pct=pnl_pct,
            holding_period_secs=(candle.ts - position.entry_time).total_seconds(),
            is_win=pnl > 0,
        )
        self.mark_to_market(candle)
        self.logger.info(
            "CLOSE %s qty=%.6f price=%.2f pnl=%.2f (%.2f%%) reason=%s",
            self.pair,
            position.quantity,
            exit_price,
            pnl,
            pnl_pct,
            reason,
        )
        return closed

    def check_exits(self, candle: Candle) -> Optional[ClosedTrade]:
        """收盘价触及止损/止盈时平仓；否则只更新浮动盈亏。"""
        position = self.position
        if position is None:
            return None
        price = candle.close
        if price <= position.stop_loss:
            self.logger.warning("Stop loss hit at %.2f", price)
            return self.close_position(candle, STOP_LOSS_REASON)
        if price >= position.take_profit:
            self.logger.info("Take profit hit at %.2f", price)
            return self.close_position(candle, TAKE_PROFIT_REASON)
        position.mark(price)
        return None
