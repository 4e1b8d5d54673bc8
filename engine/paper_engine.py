"""纸面交易引擎（PaperEngine）。

配置 → 预热历史 → 轮询最新 K 线 → 只处理新 K 线 → 停止时强制平仓 → 总结。
成交全部由 ExecutionSimulator 模拟，不会发送任何真实订单。
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence

from decision.base import DecisionProvider, build_provider
from engine.base_engine import BaseEngine, EngineResult
from engine.dashboard import DashboardSink
from engine.pipeline import TradingPipeline, build_pipeline
from engine.sources.polling_source import PollingCandleSource
from market_data.client import CandleSupplier, get_candle_supplier
from shared.config.schema import MainConfig
from shared.errors import InsufficientDataError
from shared.models.models import Candle
from shared.utils.logging import setup_logger
from shared.utils.timeframe import timeframe_to_seconds

PAPER_STOP_REASON = "Paper trading stopped"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaperEngine(BaseEngine):
    """按 timeframe 轮询交易所的纸面交易循环。

    Parameters
    ----------
    max_ticks:
        最多轮询多少次后退出；None 表示一直运行到 Ctrl+C 或 stop()。
    sleep / clock:
        可注入的等待函数与时钟，测试时替换为假实现。
    """

    def __init__(
        self,
        *,
        cfg: MainConfig,
        supplier: CandleSupplier | None = None,
        provider: DecisionProvider | None = None,
        dashboard: DashboardSink | None = None,
        max_ticks: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
        logger: logging.Logger | None = None,
    ):
        self.cfg = cfg
        self.logger = logger or setup_logger("paper")
        self.supplier = supplier or get_candle_supplier(cfg.market_data, logger=self.logger)
        self.provider = provider or build_provider(cfg.decision, logger=self.logger)
        self.dashboard = dashboard
        self.max_ticks = max_ticks
        self._sleep = sleep
        self._clock = clock

        self.history: List[Candle] = []
        self.pipeline: TradingPipeline = build_pipeline(
            cfg, self.provider, start_ts=clock(), dashboard=dashboard, logger=self.logger
        )
        self._source: Optional[PollingCandleSource] = None
        self._stopped = False

    # ------------------------------------------------------------------
    def warm_up(self) -> int:
        """加载初始历史（至少覆盖 warmup 根 K 线）。"""
        cfg = self.cfg
        tf = cfg.timeframe_minutes
        warmup = cfg.engine.warmup_candles
        lookback = max(timedelta(hours=cfg.paper.history_hours), timedelta(minutes=tf * (warmup + 1)))
        end = self._clock()
        candles = self.supplier.get_historical_candles(cfg.pair, tf, end - lookback, end)
        candles = sorted(candles, key=lambda c: c.ts)[-cfg.paper.history_cap:]
        if len(candles) < warmup:
            raise InsufficientDataError(len(candles), warmup)
        self.history = list(candles)
        # 之后处理的 K 线都严格晚于最后一根历史 K 线，以它作为权益曲线起点
        self.pipeline.tracker.reset(start_ts=candles[-1].ts)
        self.logger.info("Loaded %s initial candles for %s", len(candles), cfg.pair)
        return len(candles)

    def ingest(self, batch: Sequence[Candle]) -> bool:
        """处理一批轮询结果；只有最新一根 K 线比已处理的更新时才推进一步。"""
        if not batch:
            self.logger.warning("No candles received for %s", self.cfg.pair)
            return False
        latest = max(batch, key=lambda c: c.ts)
        if self.history and latest.ts <= self.history[-1].ts:
            self.logger.debug("No new candle yet (last=%s)", self.history[-1].ts.isoformat())
            return False

        self.history.append(latest)
        cap = self.cfg.paper.history_cap
        if len(self.history) > cap:
            self.history = self.history[-cap:]
        self.logger.info("New candle %s close=%.2f", latest.ts.isoformat(), latest.close)
        self.pipeline.process(self.history)
        return True

    def stop(self) -> None:
        """停止轮询并按最后一根 K 线强制平仓（重复调用无副作用）。"""
        if self._source is not None:
            self._source.stop()
        if self._stopped:
            return
        self._stopped = True
        if self.history:
            self.pipeline.finalize(self.history[-1], PAPER_STOP_REASON)
        self.logger.info(
            "Paper trading stopped: trades=%s equity=%.2f",
            self.pipeline.tracker.stats.total_trades,
            self.pipeline.sim.portfolio.total_equity,
        )

    def run(self) -> EngineResult:
        cfg = self.cfg
        self._stopped = False
        self.warm_up()
        interval = cfg.paper.poll_secs or timeframe_to_seconds(cfg.timeframe)
        self._source = PollingCandleSource(
            supplier=self.supplier,
            pair=cfg.pair,
            timeframe_minutes=cfg.timeframe_minutes,
            interval_secs=interval,
            sleep=self._sleep,
            logger=self.logger,
        )
        self.logger.info("Paper trading %s every %.0fs (simulated orders only)", cfg.pair, interval)
        ticks = 0
        try:
            ticks = self.run_loop(
                source=self._source, on_tick=self.ingest, max_events=self.max_ticks, logger=self.logger
            )
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")
        finally:
            self.stop()
        return EngineResult(summary=self._build_summary(ticks))

    def _build_summary(self, ticks: int) -> dict[str, Any]:
        pipeline = self.pipeline
        equity = pipeline.sim.portfolio.total_equity
        return {
            "pair": self.cfg.pair,
            "timeframe": self.cfg.timeframe,
            "ticks": ticks,
            "candles_processed": pipeline.processed,
            "faults": pipeline.faults,
            "initial_capital": self.cfg.initial_capital,
            "final_equity": equity,
            "total_pnl": equity - self.cfg.initial_capital,
            "stats": pipeline.tracker.stats,
            "trades": list(pipeline.tracker.trades),
        }
