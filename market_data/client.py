"""K 线供给（CandleSupplier）。

- ExchangeCandleSupplier：通过 ccxt 拉取交易所公开 OHLCV（默认 Kraken）；
- CsvCandleSupplier：本地 CSV 回放；
- FakeCandleSupplier：确定性的伪随机行情，用于离线演示与测试。

三者都返回按时间升序、不含重复时间戳的 Candle 列表。
"""

from __future__ import annotations

import logging
import math
import random
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Sequence

import ccxt

from market_data.loader import load_candles_from_csv
from shared.config.schema import MarketDataConfig
from shared.errors import DataError
from shared.models.models import Candle
from shared.utils.logging import setup_logger

_TIMEFRAME_LABELS = {1: "1m", 5: "5m", 15: "15m", 30: "30m", 60: "1h", 240: "4h", 1440: "1d", 10080: "1w"}


def _utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _dedup_sorted(candles: Sequence[Candle]) -> List[Candle]:
    by_ts: dict[datetime, Candle] = {}
    for c in candles:
        by_ts[c.ts] = c
    return [by_ts[ts] for ts in sorted(by_ts)]


class CandleSupplier(ABC):
    """K 线来源抽象。"""

    @abstractmethod
    def get_historical_candles(
        self, pair: str, timeframe_minutes: int, start: datetime, end: datetime
    ) -> List[Candle]:
        """返回 [start, end] 区间内的 K 线（升序）。"""

    @abstractmethod
    def get_latest_candles(self, pair: str, timeframe_minutes: int) -> List[Candle]:
        """返回最近一批 K 线（升序，最后一根为最新）。"""


class ExchangeCandleSupplier(CandleSupplier):
    """ccxt 交易所 OHLCV 拉取。

    Notes
    -----
    交易所单次返回条数有限，历史区间按 `since` 游标分页拉取，直到越过 end 或没有新数据。
    """

    def __init__(
        self,
        exchange: str = "kraken",
        *,
        page_limit: int = 720,
        client: ccxt.Exchange | None = None,
        logger: logging.Logger | None = None,
    ):
        if client is None:
            if not hasattr(ccxt, exchange):
                raise ValueError(f"Unknown ccxt exchange: {exchange}")
            client = getattr(ccxt, exchange)({"enableRateLimit": True})
        self.client = client
        self.page_limit = page_limit
        self.logger = logger or setup_logger("market_data")

    @staticmethod
    def _timeframe_label(timeframe_minutes: int) -> str:
        label = _TIMEFRAME_LABELS.get(timeframe_minutes)
        if label is None:
            raise DataError(f"Unsupported exchange timeframe: {timeframe_minutes} minutes")
        return label

    @staticmethod
    def _to_candle(row: Sequence[float], pair: str) -> Candle:
        ts_ms, open_, high, low, close, volume = row[:6]
        return Candle(
            ts=datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc),
            open=float(open_),
            high=float(high),
            low=float(low),
            close=float(close),
            volume=float(volume or 0),
            symbol=pair,
        )

    def _fetch(self, pair: str, timeframe_minutes: int, since_ms: int | None) -> list:
        try:
            return self.client.fetch_ohlcv(
                pair, timeframe=self._timeframe_label(timeframe_minutes), since=since_ms, limit=self.page_limit
            )
        except ccxt.BaseError as exc:
            raise DataError(f"Failed to fetch OHLCV for {pair}: {exc}") from exc

    def get_historical_candles(
        self, pair: str, timeframe_minutes: int, start: datetime, end: datetime
    ) -> List[Candle]:
        start, end = _utc(start), _utc(end)
        end_ms = int(end.timestamp() * 1000)
        step_ms = timeframe_minutes * 60_000
        cursor = int(start.timestamp() * 1000)

        candles: list[Candle] = []
        while cursor <= end_ms:
            rows = self._fetch(pair, timeframe_minutes, cursor)
            if not rows:
                break
            candles.extend(self._to_candle(r, pair) for r in rows if r[0] <= end_ms)
            last_ms = int(rows[-1][0])
            if last_ms < cursor:
                break
            cursor = last_ms + step_ms

        result = [c for c in _dedup_sorted(candles) if start <= c.ts <= end]
        self.logger.info("Loaded %s candles for %s (%s -> %s)", len(result), pair, start.isoformat(), end.isoformat())
        return result

    def get_latest_candles(self, pair: str, timeframe_minutes: int) -> List[Candle]:
        rows = self._fetch(pair, timeframe_minutes, None)
        return _dedup_sorted([self._to_candle(r, pair) for r in rows])


class CsvCandleSupplier(CandleSupplier):
    """从本地 CSV 读取；`get_latest_candles` 返回文件中的全部 K 线。"""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Candle CSV not found: {self.path}")

    def _load(self, pair: str) -> List[Candle]:
        return _dedup_sorted(list(load_candles_from_csv(self.path, symbol=pair)))

    def get_historical_candles(
        self, pair: str, timeframe_minutes: int, start: datetime, end: datetime
    ) -> List[Candle]:
        start, end = _utc(start), _utc(end)
        return [c for c in self._load(pair) if start <= c.ts <= end]

    def get_latest_candles(self, pair: str, timeframe_minutes: int) -> List[Candle]:
        return self._load(pair)


class FakeCandleSupplier(CandleSupplier):
    """确定性的伪随机行情（正弦趋势 + 噪声），同一时间戳总是得到同一根 K 线。

    Parameters
    ----------
    base_price:
        起始价格附近的中枢。
    seed:
        随机种子。
    clock:
        `get_latest_candles` 使用的当前时间函数，测试中可注入。
    """

    def __init__(
        self,
        base_price: float = 30_000.0,
        seed: int = 7,
        *,
        latest_count: int = 60,
        clock: Callable[[], datetime] | None = None,
    ):
        self.base_price = base_price
        self.seed = seed
        self.latest_count = latest_count
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _candle_at(self, ts: datetime, timeframe_minutes: int, pair: str) -> Candle:
        step = int(ts.timestamp()) // (timeframe_minutes * 60)
        rng = random.Random(self.seed * 1_000_003 + step)
        wave = math.sin(step / 24.0) * 0.03 + math.sin(step / 7.0) * 0.01
        open_ = self.base_price * (1 + wave) * (1 + rng.uniform(-0.002, 0.002))
        close = open_ * (1 + rng.uniform(-0.006, 0.006))
        high = max(open_, close) * (1 + rng.uniform(0, 0.003))
        low = min(open_, close) * (1 - rng.uniform(0, 0.003))
        volume = rng.uniform(5, 50)
        return Candle(ts=ts, open=open_, high=high, low=low, close=close, volume=volume, symbol=pair)

    @staticmethod
    def _align(ts: datetime, timeframe_minutes: int) -> datetime:
        step = timeframe_minutes * 60
        return datetime.fromtimestamp(int(ts.timestamp()) // step * step, tz=timezone.utc)

    def get_historical_candles(
        self, pair: str, timeframe_minutes: int, start: datetime, end: datetime
    ) -> List[Candle]:
        start, end = _utc(start), _utc(end)
        delta = timedelta(minutes=timeframe_minutes)
        ts = self._align(start, timeframe_minutes)
        if ts < start:
            ts += delta
        candles: list[Candle] = []
        while ts <= end:
            candles.append(self._candle_at(ts, timeframe_minutes, pair))
            ts += delta
        return candles

    def get_latest_candles(self, pair: str, timeframe_minutes: int) -> List[Candle]:
        end = self._align(_utc(self.clock()), timeframe_minutes)
        start = end - timedelta(minutes=timeframe_minutes * (self.latest_count - 1))
        return self.get_historical_candles(pair, timeframe_minutes, start, end)


def get_candle_supplier(cfg: MarketDataConfig, logger: logging.Logger | None = None) -> CandleSupplier:
    """按配置构建 K 线来源。"""
    if cfg.source == "csv":
        return CsvCandleSupplier(cfg.csv_path or "")
    if cfg.source == "fake":
        return FakeCandleSupplier()
    return ExchangeCandleSupplier(cfg.exchange, logger=logger)
