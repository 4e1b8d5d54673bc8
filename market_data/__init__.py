"""行情数据模块（market_data）。

该包聚合：
- K 线来源（交易所 / CSV / 伪随机）
- CSV 读写与 DataFrame 转换
"""

from market_data.client import (
    CandleSupplier,
    CsvCandleSupplier,
    ExchangeCandleSupplier,
    FakeCandleSupplier,
    get_candle_supplier,
)
from market_data.loader import candles_to_frame, load_candles_from_csv

__all__ = [
    "CandleSupplier",
    "CsvCandleSupplier",
    "ExchangeCandleSupplier",
    "FakeCandleSupplier",
    "get_candle_supplier",
    "candles_to_frame",
    "load_candles_from_csv",
]
