"""单次回测引擎（BacktestEngine）。

配置 → 历史 K 线 → 逐根回放（指标/决策/风控/撮合/绩效）→ 强制平仓 → 结果与产物。
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, List

from decision.base import DecisionProvider, build_provider
from engine.base_engine import BaseEngine, EngineResult
from engine.dashboard import DashboardSink
from engine.pipeline import TradingPipeline, build_pipeline
from engine.results import BacktestResult, export_equity_csv, export_trades_csv
from engine.sources.event_source import ReplayWindowSource
from market_data.client import CandleSupplier, get_candle_supplier
from shared.config.schema import MainConfig
from shared.errors import DataError, InsufficientDataError
from shared.models.models import Candle
from shared.utils.logging import setup_logger

BACKTEST_END_REASON = "Backtest ended"
PROGRESS_EVERY = 10


class BacktestEngine(BaseEngine):
    """单次回测引擎。

    Parameters
    ----------
    cfg:
        已校验的应用配置，必须包含 backtest 段。
    supplier:
        K 线来源；缺省按 market_data 段构建。
    provider:
        决策服务；缺省按 decision 段构建（外层带兜底 HOLD）。
    output_dir:
        产物目录；缺省取 backtest.output_dir，都为空时不写文件。

    Notes
    -----
    第 i 根 K 线的决策只使用 candles[: i + 1]，不会看到未来数据。
    """

    def __init__(
        self,
        *,
        cfg: MainConfig,
        supplier: CandleSupplier | None = None,
        provider: DecisionProvider | None = None,
        dashboard: DashboardSink | None = None,
        output_dir: str | Path | None = None,
        logger: logging.Logger | None = None,
    ):
        if cfg.backtest is None:
            raise ValueError("backtest config not found")
        self.cfg = cfg
        self.logger = logger or setup_logger("backtest")
        self.supplier = supplier or get_candle_supplier(cfg.market_data, logger=self.logger)
        self.provider = provider or build_provider(cfg.decision, logger=self.logger)
        self.dashboard = dashboard
        self._output_dir = output_dir if output_dir is not None else cfg.backtest.output_dir

        self.pipeline: TradingPipeline | None = None
        self.result: BacktestResult | None = None

    def run(self) -> EngineResult:
        cfg = self.cfg
        started = time.monotonic()
        candles = self._load_candles(cfg, self.supplier, logger=self.logger)
        warmup = cfg.engine.warmup_candles
        if len(candles) < warmup:
            raise InsufficientDataError(len(candles), warmup)

        pipeline = build_pipeline(
            cfg, self.provider, start_ts=candles[0].ts, dashboard=self.dashboard, logger=self.logger
        )
        self.pipeline = pipeline
        source = ReplayWindowSource(candles, warmup=warmup)
        total = len(source)
        self.logger.info(
            "Starting backtest %s %s: %s candles (%s to replay)", cfg.pair, cfg.timeframe, len(candles), total
        )

        def _on_tick(window: List[Candle]) -> None:
            pipeline.process(window)
            if pipeline.processed % PROGRESS_EVERY == 0:
                self.logger.info(
                    "Progress %s/%s (%.1f%%) at %s",
                    pipeline.processed,
                    total,
                    pipeline.processed / total * 100,
                    window[-1].ts.isoformat(),
                )

        self.run_loop(source=source, on_tick=_on_tick, logger=self.logger)
        pipeline.finalize(candles[-1], BACKTEST_END_REASON)

        result = self._build_result(cfg, pipeline, candles, duration_secs=time.monotonic() - started)
        self.result = result
        artifacts = self._export_artifacts(result)
        self.logger.info(
            "Backtest completed in %.2fs: trades=%s final_equity=%.2f faults=%s",
            result.duration_secs,
            result.stats.total_trades,
            result.final_equity,
            result.faults,
        )
        return EngineResult(summary=result, artifacts=artifacts)

    @staticmethod
    def _load_candles(cfg: MainConfig, supplier: CandleSupplier, *, logger: logging.Logger) -> List[Candle]:
        assert cfg.backtest is not None
        candles = supplier.get_historical_candles(
            cfg.pair, cfg.timeframe_minutes, cfg.backtest.start, cfg.backtest.end
        )
        if not candles:
            raise DataError(
                f"No candles for {cfg.pair} between {cfg.backtest.start.isoformat()} and {cfg.backtest.end.isoformat()}"
            )
        logger.info("Loaded %s candles", len(candles))
        return sorted(candles, key=lambda c: c.ts)

    @staticmethod
    def _build_result(
        cfg: MainConfig,
        pipeline: TradingPipeline,
        candles: List[Candle],
        *,
        duration_secs: float,
    ) -> BacktestResult:
        assert cfg.backtest is not None
        tracker = pipeline.tracker
        return BacktestResult(
            pair=cfg.pair,
            timeframe=cfg.timeframe,
            start=cfg.backtest.start,
            end=cfg.backtest.end,
            initial_capital=cfg.initial_capital,
            final_equity=pipeline.sim.portfolio.total_equity,
            stats=tracker.stats,
            trades=list(tracker.trades),
            decisions=list(pipeline.decisions),
            equity_curve=list(tracker.equity_curve),
            candles_processed=pipeline.processed,
            config=cfg,
            faults=pipeline.faults,
            duration_secs=duration_secs,
            extra={"candles_loaded": len(candles)},
        )

    def _export_artifacts(self, result: BacktestResult) -> dict[str, Any] | None:
        if not self._output_dir:
            return None
        out_dir = Path(self._output_dir)
        result.save_json(out_dir / "result.json")
        export_trades_csv(result.trades, out_dir / "trades.csv")
        export_equity_csv(result.equity_curve, out_dir / "equity.csv")
        self.logger.info("Artifacts written to %s", out_dir)
        return {"dir": str(out_dir)}
