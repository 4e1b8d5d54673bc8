"""配置 Schema 预校验。

目标：
- 在启动阶段尽早失败，并对拼写错误给出 "did you mean" 提示；
- 类型/取值范围交给 `shared.config.schema` 里的 pydantic 模型。
"""

from __future__ import annotations

import difflib
from datetime import date, datetime
from typing import Any, Iterable

from shared.config.schema import (
    BacktestConfig,
    DecisionConfig,
    EngineConfig,
    FeesConfig,
    IndicatorConfig,
    LoggingConfig,
    MainConfig,
    MarketDataConfig,
    PaperConfig,
    RiskConfig,
)

_BLOCKS = {
    "fees": FeesConfig,
    "risk": RiskConfig,
    "indicators": IndicatorConfig,
    "decision": DecisionConfig,
    "market_data": MarketDataConfig,
    "backtest": BacktestConfig,
    "paper": PaperConfig,
    "engine": EngineConfig,
    "logging": LoggingConfig,
}


def _suggest_key(key: str, allowed: Iterable[str]) -> str | None:
    matches = difflib.get_close_matches(key, list(allowed), n=1, cutoff=0.75)
    return matches[0] if matches else None


def _ensure_allowed_keys(block: dict[str, Any], *, allowed: set[str], ctx: str) -> None:
    unknown = [k for k in block.keys() if k not in allowed]
    if not unknown:
        return
    parts = []
    for k in sorted(unknown):
        suggestion = _suggest_key(k, allowed)
        if suggestion:
            parts.append(f"{k} (did you mean '{suggestion}'?)")
        else:
            parts.append(k)
    raise ValueError(f"{ctx} contains unknown keys: {', '.join(parts)}")


def _expect_dict(val: Any, *, ctx: str) -> dict[str, Any]:
    if not isinstance(val, dict):
        raise ValueError(f"{ctx} must be a dict")
    return val


def _expect_datetime_like(val: Any, *, ctx: str) -> Any:
    # YAML 可能把未加引号的 ISO 时间解析为 datetime/date；这里允许并交给 pydantic 统一处理。
    if isinstance(val, (str, datetime, date)):
        return val
    raise ValueError(f"{ctx} must be an ISO datetime string or datetime/date")


def validate_raw_config(cfg: dict[str, Any]) -> None:
    """校验 raw config dict（来自 YAML + env 展开后）。"""
    if not isinstance(cfg, dict):
        raise ValueError("Config root must be a dict")

    _ensure_allowed_keys(cfg, allowed=set(MainConfig.model_fields), ctx="config")

    for name, model in _BLOCKS.items():
        block = cfg.get(name)
        if block is None:
            continue
        block = _expect_dict(block, ctx=f"config.{name}")
        _ensure_allowed_keys(block, allowed=set(model.model_fields), ctx=f"config.{name}")

    backtest = cfg.get("backtest")
    if backtest is not None:
        for key in ("start", "end"):
            if key not in backtest:
                raise ValueError(f"Missing required config key: config.backtest.{key}")
            _expect_datetime_like(backtest[key], ctx=f"config.backtest.{key}")

    factors = (cfg.get("indicators") or {}).get("factors")
    if factors is not None and not isinstance(factors, list):
        raise ValueError("config.indicators.factors must be a list")
