import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# 确保项目根目录在 sys.path，便于测试内直接以顶层包名导入
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from shared.models.models import Candle  # noqa: E402

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _make_candles(closes, *, start=T0, step_minutes=5, volume=10.0, symbol="BTC/USD"):
    candles = []
    prev = None
    for i, close in enumerate(closes):
        open_ = prev if prev is not None else close
        vol = volume[i] if isinstance(volume, (list, tuple)) else volume
        candles.append(
            Candle(
                ts=start + timedelta(minutes=step_minutes * i),
                open=float(open_),
                high=max(open_, close) * 1.001,
                low=min(open_, close) * 0.999,
                close=float(close),
                volume=float(vol),
                symbol=symbol,
            )
        )
        prev = close
    return candles


@pytest.fixture
def make_candles():
    """按收盘价序列生成连续 K 线（开盘价取上一根收盘价）。"""
    return _make_candles


@pytest.fixture
def repo_root() -> Path:
    return ROOT
