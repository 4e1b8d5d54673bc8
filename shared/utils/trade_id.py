"""交易 ID 生成。

同一 (品种, 方向, 时间, 序号) 总是得到同一个 ID，回测重放结果可逐笔对比。
"""

from __future__ import annotations

import hashlib
from datetime import datetime


def make_trade_id(*, symbol: str, side: str, ts: datetime, seq: int) -> str:
    raw = "|".join([str(symbol), str(side), ts.isoformat(), str(int(seq))])
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
    return f"trade_{digest}"
