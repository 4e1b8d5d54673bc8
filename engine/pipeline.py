"""单根 K 线的处理流水线（回测与纸面交易共用）。

顺序固定：
估值 → 止损/止盈 → 指标与市场状态 → 决策 → 风控 → 模拟成交 → 权益记录 → 仪表盘推送。
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from algo.indicators.context import MarketContextClassifier
from algo.indicators.engine import IndicatorEngine
from algo.risk.manager import RiskManager
from analysis.metrics.tracker import PerformanceTracker
from broker.execution.simulator import ExecutionSimulator
from decision.base import DecisionProvider, SafeDecisionProvider
from engine.dashboard import DashboardSink, DashboardUpdate, safe_push
from shared.config.schema import MainConfig
from shared.errors import InsufficientDataError
from shared.models.models import Candle, ClosedTrade, Decision, DecisionContext, RiskCheck
from shared.utils.logging import setup_logger


class TradingPipeline:
    """把指标、决策、风控、撮合、绩效串成一步。

    Parameters
    ----------
    cfg:
        应用配置（用到 pair/timeframe/engine 段）。
    provider:
        决策服务；未包装时自动套上 SafeDecisionProvider，任何异常都变成置信度 0 的 HOLD，
        不计入 faults。
    dashboard:
        可选仪表盘；推送失败不影响主流程。

    Notes
    -----
    `process` 只看传入窗口中的 K 线，窗口最后一根即“当前” K 线。
    """

    def __init__(
        self,
        *,
        cfg: MainConfig,
        provider: DecisionProvider,
        indicators: IndicatorEngine,
        classifier: MarketContextClassifier,
        risk: RiskManager,
        simulator: ExecutionSimulator,
        tracker: PerformanceTracker,
        dashboard: Optional[DashboardSink] = None,
        logger: logging.Logger | None = None,
    ):
        self.cfg = cfg
        self.logger = logger or setup_logger("pipeline")
        if not isinstance(provider, SafeDecisionProvider):
            provider = SafeDecisionProvider(provider, logger=self.logger)
        self.provider = provider
        self.indicators = indicators
        self.classifier = classifier
        self.risk = risk
        self.sim = simulator
        self.tracker = tracker
        self.dashboard = dashboard
        self.decisions: List[Decision] = []
        self.faults = 0
        self.processed = 0

    def process(self, window: Sequence[Candle]) -> None:
        """处理一个窗口。

        K 线不足总是向上抛出；其他异常按 engine.continue_on_error 决定记录后继续或抛出。
        """
        try:
            self._step(window)
        except InsufficientDataError:
            raise
        except Exception:
            if not self.cfg.engine.continue_on_error:
                raise
            self.faults += 1
            ts = window[-1].ts.isoformat() if window else "?"
            self.logger.exception("Candle processing failed at %s (faults=%s)", ts, self.faults)
        finally:
            self.processed += 1

    def _step(self, window: Sequence[Candle]) -> None:
        candle = window[-1]
        sim = self.sim

        sim.mark_to_market(candle)
        closed = sim.check_exits(candle)
        if closed is not None:
            self._record_close(closed)

        snapshot = self.indicators.compute(window)
        market_ctx = self.classifier.classify(snapshot, window)

        context = DecisionContext(
            pair=self.cfg.pair,
            timeframe=self.cfg.timeframe,
            current_price=candle.close,
            ts=candle.ts,
            candles=list(window[-self.cfg.engine.context_candles:]),
            indicators=snapshot,
            market_context=market_ctx,
            portfolio=sim.portfolio,
            position=sim.position,
            stats=self.tracker.stats,
            recent_trades=self.tracker.recent_trades(self.cfg.engine.recent_trades),
        )
        decision = self.provider.decide(context)
        self.decisions.append(decision)
        self.logger.info(
            "Decision %s @ %.2f (confidence=%.2f): %s",
            decision.action,
            candle.close,
            decision.confidence,
            decision.reasoning,
        )

        # HOLD 也要过风控：熔断的触发与自动恢复都在这里推进
        check = self.risk.check_trade_allowed(
            decision, sim.portfolio, self.tracker.stats, sim.position, candle.ts
        )
        if check.allowed:
            self._execute(decision, check, candle)
        elif decision.action == "HOLD":
            self.logger.debug("HOLD while blocked: %s", check.reason)
        else:
            self.logger.warning("Trade rejected: %s", check.reason)

        self.tracker.record_equity(candle.ts, sim.portfolio.total_equity)
        self._push_dashboard(candle)

    def _execute(self, decision: Decision, check: RiskCheck, candle: Candle) -> None:
        sim = self.sim
        if decision.action == "BUY":
            if check.adjusted_quantity is not None:
                decision = dataclasses.replace(decision, quantity=check.adjusted_quantity)
            entry = sim.entry_price(candle.close)
            size = self.risk.calculate_position_size(decision, sim.portfolio, entry)
            stop_loss = self.risk.calculate_stop_loss(entry, "long", decision.stop_loss)
            take_profit = self.risk.calculate_take_profit(entry, "long", decision.take_profit)
            fill = sim.open_position(
                candle=candle,
                quantity=size,
                stop_loss=stop_loss,
                take_profit=take_profit,
                reasoning=decision.reasoning,
            )
            if fill.status != "filled":
                self.logger.warning("Order not filled: %s", fill.reason)
        elif decision.action == "SELL":
            closed = sim.close_position(candle, decision.reasoning)
            if closed is not None:
                self._record_close(closed)

    def _record_close(self, closed: ClosedTrade) -> None:
        self.tracker.add_trade(closed, self.sim.portfolio.total_equity)

    def _push_dashboard(self, candle: Candle) -> None:
        if self.dashboard is None:
            return
        update = DashboardUpdate(
            ts=candle.ts,
            current_price=candle.close,
            initial_capital=self.tracker.initial_capital,
            equity=self.sim.portfolio.total_equity,
            stats=self.tracker.stats,
            trades=tuple(self.tracker.trades),
        )
        safe_push(self.dashboard, update, self.logger)

    def finalize(self, candle: Candle, reason: str) -> Optional[ClosedTrade]:
        """运行结束时强制平仓，并把最终权益写入曲线。"""
        closed = self.sim.close_position(candle, reason)
        if closed is not None:
            self._record_close(closed)
        self.sim.mark_to_market(candle)
        self.tracker.record_equity(candle.ts, self.sim.portfolio.total_equity)
        return closed


def build_pipeline(
    cfg: MainConfig,
    provider: DecisionProvider,
    *,
    start_ts: Optional[datetime] = None,
    dashboard: Optional[DashboardSink] = None,
    logger: logging.Logger | None = None,
) -> TradingPipeline:
    """按配置组装一条全新的流水线（独立的组合、风控与绩效状态）。

    start_ts 为权益曲线起点（初始资金）的时间戳，应早于第一根要处理的 K 线。
    """
    logger = logger or setup_logger("pipeline")
    return TradingPipeline(
        cfg=cfg,
        provider=provider,
        indicators=IndicatorEngine(cfg.indicators, min_candles=cfg.engine.warmup_candles, logger=logger),
        classifier=MarketContextClassifier(),
        risk=RiskManager(cfg.risk, logger=logger),
        simulator=ExecutionSimulator(pair=cfg.pair, initial_capital=cfg.initial_capital, fees=cfg.fees, logger=logger),
        tracker=PerformanceTracker(cfg.initial_capital, start_ts=start_ts, logger=logger),
        dashboard=dashboard,
        logger=logger,
    )
