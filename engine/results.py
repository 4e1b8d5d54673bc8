"""回测结果与产物导出。"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

from shared.config.schema import MainConfig
from shared.models.models import ClosedTrade, Decision, EquityPoint, PerformanceStats
from shared.utils.json_sanitize import sanitize_for_json

REDACTED = "***"


@dataclass(frozen=True)
class BacktestResult:
    pair: str
    timeframe: str
    start: datetime
    end: datetime
    initial_capital: float
    final_equity: float
    stats: PerformanceStats
    trades: Sequence[ClosedTrade]
    decisions: Sequence[Decision]
    equity_curve: Sequence[EquityPoint]
    candles_processed: int
    config: MainConfig
    faults: int = 0
    duration_secs: float = 0.0
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """JSON 友好的结果；config 段中的 decision.api_key 会被遮蔽。"""
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "config"}
        payload = sanitize_for_json(data)
        payload["config"] = redact_config(self.config)
        return payload

    def save_json(self, path: str | Path) -> Path:
        """写出 UTF-8 JSON（NaN/Inf 转字符串）。"""
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        with out.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
        return out


def redact_config(cfg: MainConfig) -> dict[str, Any]:
    data = cfg.model_dump(mode="json")
    if data["decision"].get("api_key"):
        data["decision"]["api_key"] = REDACTED
    return data


def export_equity_csv(equity_curve: Sequence[EquityPoint], path: Path) -> None:
    """列：ts, equity, drawdown, drawdown_pct（回撤相对历史峰值）。"""
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = []
    peak = float("-inf")
    for point in sorted(equity_curve, key=lambda p: p.ts):
        peak = max(peak, point.equity)
        dd = peak - point.equity
        rows.append(
            {
                "ts": point.ts.isoformat(),
                "equity": point.equity,
                "drawdown": dd,
                "drawdown_pct": dd / peak if peak > 0 else 0.0,
            }
        )
    pd.DataFrame(rows, columns=["ts", "equity", "drawdown", "drawdown_pct"]).to_csv(path, index=False)


def export_trades_csv(trades: Sequence[ClosedTrade], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = [sanitize_for_json(t) for t in trades]
    pd.DataFrame(rows).to_csv(path, index=False)
