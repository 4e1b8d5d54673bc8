from datetime import datetime, timedelta, timezone

import ccxt
import pandas as pd
import pytest

from market_data.client import (
    CsvCandleSupplier,
    ExchangeCandleSupplier,
    FakeCandleSupplier,
    get_candle_supplier,
)
from market_data.loader import candles_to_frame, load_candles_from_csv, write_candles_csv
from shared.config.schema import MarketDataConfig
from shared.errors import DataError

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_csv_round_trip(tmp_path, make_candles):
    candles = make_candles([100.0, 101.0, 102.5])
    path = write_candles_csv(tmp_path / "data" / "candles.csv", candles)
    loaded = list(load_candles_from_csv(path))
    assert loaded == candles


def test_csv_accepts_epoch_timestamps(tmp_path):
    path = tmp_path / "epoch.csv"
    path.write_text(
        "ts,open,high,low,close,volume\n"
        "1704067200,1,2,0.5,1.5,10\n"
        "1704067500000,1.5,2,1,1.8,\n",
        encoding="utf-8",
    )
    a, b = load_candles_from_csv(path, symbol="ETH/USD")
    assert a.ts == T0
    assert b.ts == T0 + timedelta(minutes=5)
    assert b.volume == 0.0
    assert a.symbol == "ETH/USD"


def test_csv_missing_columns(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("ts,open,close\n2024-01-01T00:00:00Z,1,2\n", encoding="utf-8")
    with pytest.raises(DataError, match="missing columns: high, low, volume"):
        list(load_candles_from_csv(path))


def test_csv_bad_timestamp(tmp_path):
    path = tmp_path / "bad_ts.csv"
    path.write_text("ts,open,high,low,close,volume\nyesterday,1,1,1,1,1\n", encoding="utf-8")
    with pytest.raises(DataError, match="Invalid datetime value"):
        list(load_candles_from_csv(path))


def test_candles_to_frame(make_candles):
    frame = candles_to_frame(make_candles([100.0, 101.0]))
    assert list(frame.columns) == ["open", "high", "low", "close", "volume"]
    assert frame.index.name == "ts"
    assert frame["close"].tolist() == [100.0, 101.0]
    assert frame.index[1] - frame.index[0] == pd.Timedelta(minutes=5)


def test_csv_supplier_filters_range_and_dedups(tmp_path, make_candles):
    candles = make_candles([100.0, 101.0, 102.0, 103.0])
    path = write_candles_csv(tmp_path / "c.csv", [*candles, candles[1]])
    supplier = CsvCandleSupplier(path)
    got = supplier.get_historical_candles("BTC/USD", 5, candles[1].ts, candles[2].ts)
    assert [c.close for c in got] == [101.0, 102.0]
    assert len(supplier.get_latest_candles("BTC/USD", 5)) == 4


def test_csv_supplier_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        CsvCandleSupplier(tmp_path / "missing.csv")


def test_fake_supplier_is_deterministic():
    a = FakeCandleSupplier().get_historical_candles("BTC/USD", 15, T0, T0 + timedelta(hours=2))
    b = FakeCandleSupplier().get_historical_candles("BTC/USD", 15, T0, T0 + timedelta(hours=2))
    assert a == b
    assert len(a) == 9
    assert all(c.low <= min(c.open, c.close) and c.high >= max(c.open, c.close) for c in a)
    assert [c.ts for c in a] == sorted(c.ts for c in a)


def test_fake_supplier_latest_uses_clock():
    now = T0 + timedelta(hours=5, minutes=7)
    latest = FakeCandleSupplier(latest_count=4, clock=lambda: now).get_latest_candles("BTC/USD", 15)
    assert len(latest) == 4
    assert latest[-1].ts == T0 + timedelta(hours=5)


class _FakeExchange:
    """按 since 游标分页返回 OHLCV 行。"""

    def __init__(self, rows, page=3, error=None):
        self.rows = rows
        self.page = page
        self.error = error
        self.calls = []

    def fetch_ohlcv(self, pair, timeframe=None, since=None, limit=None):
        self.calls.append((pair, timeframe, since))
        if self.error:
            raise self.error
        if since is None:
            return self.rows[-self.page:]
        return [r for r in self.rows if r[0] >= since][: self.page]


def _rows(n, start=T0, minutes=5):
    base = int(start.timestamp() * 1000)
    return [[base + i * minutes * 60_000, 100 + i, 101 + i, 99 + i, 100.5 + i, 2.0] for i in range(n)]


def test_exchange_supplier_paginates():
    client = _FakeExchange(_rows(8), page=3)
    supplier = ExchangeCandleSupplier(client=client)
    got = supplier.get_historical_candles("BTC/USD", 5, T0, T0 + timedelta(minutes=30))
    assert len(got) == 7
    assert got[0].ts == T0 and got[-1].ts == T0 + timedelta(minutes=30)
    assert all(c.symbol == "BTC/USD" for c in got)
    assert {call[1] for call in client.calls} == {"5m"}
    assert len(client.calls) == 3


def test_exchange_supplier_latest():
    supplier = ExchangeCandleSupplier(client=_FakeExchange(_rows(8), page=3))
    latest = supplier.get_latest_candles("BTC/USD", 5)
    assert [c.close for c in latest] == [105.5, 106.5, 107.5]


def test_exchange_errors_become_data_errors():
    supplier = ExchangeCandleSupplier(client=_FakeExchange([], error=ccxt.NetworkError("down")))
    with pytest.raises(DataError, match="Failed to fetch OHLCV for BTC/USD"):
        supplier.get_latest_candles("BTC/USD", 5)


def test_exchange_unsupported_timeframe():
    supplier = ExchangeCandleSupplier(client=_FakeExchange(_rows(2)))
    with pytest.raises(DataError, match="Unsupported exchange timeframe"):
        supplier.get_latest_candles("BTC/USD", 7)


def test_unknown_exchange_rejected():
    with pytest.raises(ValueError, match="Unknown ccxt exchange"):
        ExchangeCandleSupplier("not_an_exchange")


def test_get_candle_supplier(tmp_path, make_candles):
    assert isinstance(get_candle_supplier(MarketDataConfig(source="fake")), FakeCandleSupplier)
    path = write_candles_csv(tmp_path / "c.csv", make_candles([1.0]))
    assert isinstance(get_candle_supplier(MarketDataConfig(source="csv", csv_path=str(path))), CsvCandleSupplier)
