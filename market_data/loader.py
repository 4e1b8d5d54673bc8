"""历史 K 线加载与表格化。

支持从 CSV 读取 Candle，并提供 Candle 序列 -> DataFrame 的转换（因子计算的输入）。
"""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence

import pandas as pd

from shared.errors import DataError
from shared.models.models import Candle

CSV_COLUMNS = ("ts", "open", "high", "low", "close", "volume")


def _parse_dt(val: str) -> datetime:
    try:
        if val.isdigit():
            ts_int = int(val)
            if ts_int > 1e12:
                return datetime.fromtimestamp(ts_int / 1000, tz=timezone.utc)
            return datetime.fromtimestamp(ts_int, tz=timezone.utc)
        dt = datetime.fromisoformat(val.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except ValueError as exc:
        raise DataError(f"Invalid datetime value: {val}") from exc


def load_candles_from_csv(
    path: str | Path,
    symbol: str = "",
    parser: Callable[[dict[str, str]], Candle] | None = None,
) -> Iterator[Candle]:
    """从 CSV 读取 Candle 流。

    默认列：ts, open, high, low, close, volume（可选 symbol）；
    ts 支持 ISO 字符串、秒或毫秒时间戳。
    """
    with Path(path).open("r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        missing = [c for c in CSV_COLUMNS if c not in (reader.fieldnames or [])]
        if parser is None and missing:
            raise DataError(f"Candle CSV {path} missing columns: {', '.join(missing)}")
        for row in reader:
            if parser:
                yield parser(row)
                continue
            yield Candle(
                ts=_parse_dt(row["ts"]),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row.get("volume") or 0),
                symbol=row.get("symbol") or symbol,
            )


def write_candles_csv(path: str | Path, candles: Iterable[Candle]) -> Path:
    """把 Candle 序列写成 `load_candles_from_csv` 可读回的 CSV。"""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow([*CSV_COLUMNS, "symbol"])
        for c in candles:
            writer.writerow([c.ts.isoformat(), c.open, c.high, c.low, c.close, c.volume, c.symbol])
    return out


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """Candle 序列 -> 按时间升序的 OHLCV DataFrame（ts 为索引）。"""
    frame = pd.DataFrame(
        {
            "open": [c.open for c in candles],
            "high": [c.high for c in candles],
            "low": [c.low for c in candles],
            "close": [c.close for c in candles],
            "volume": [c.volume for c in candles],
        },
        index=pd.DatetimeIndex([c.ts for c in candles], name="ts"),
        dtype=float,
    )
    return frame
