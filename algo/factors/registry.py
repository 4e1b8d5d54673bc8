"""因子注册表：字符串 -> 因子实现。

`indicators.factors` 配置里的额外因子通过这里实例化，
IndicatorEngine 的核心指标也复用同一批实现。
"""

from __future__ import annotations

import inspect
from typing import Any, Iterable, Mapping

import pandas as pd

from algo.factors.atr import ATRFactor
from algo.factors.base import Factor
from algo.factors.bollinger import BollingerFactor
from algo.factors.ema import EMAFactor
from algo.factors.keltner import KeltnerFactor
from algo.factors.ma import MAFactor
from algo.factors.macd import MACDFactor
from algo.factors.rsi import RSIFactor
from algo.factors.vwap import VWAPFactor

_REGISTRY: dict[str, type] = {}
_RESERVED_KEYS = {"name", "params"}


def register_factor(name: str, cls: type) -> None:
    _REGISTRY[name] = cls


def get_factor_cls(name: str) -> type:
    if name not in _REGISTRY:
        raise ValueError(f"Unknown factor: {name} (available: {', '.join(sorted(_REGISTRY))})")
    return _REGISTRY[name]


def _filter_init_kwargs(cls: type, params: Mapping[str, Any]) -> dict[str, Any]:
    """过滤出 __init__ 支持的参数；`name`/`params` 由因子自身维护，不允许从配置覆盖。"""
    sig = inspect.signature(cls.__init__)
    if any(p.kind == inspect.Parameter.VAR_KEYWORD for p in sig.parameters.values()):
        return dict(params)
    allowed = {n for n in sig.parameters if n not in ("self", "name", "params")}
    return {k: v for k, v in params.items() if k in allowed}


def build_factors(items: Iterable[Mapping[str, Any]] | None) -> list[Factor]:
    """从配置构建因子列表。

    支持两种写法：
    - {name: "atr", params: {period: 14}}
    - {name: "atr", period: 14}          # 参数平铺
    """
    if items is None:
        return []
    if isinstance(items, (str, bytes)) or not isinstance(items, Iterable):
        raise ValueError("factors config must be a list")

    factors: list[Factor] = []
    for item in items:
        if not isinstance(item, Mapping):
            raise ValueError("factor item must be a dict")
        name = str(item.get("name") or "")
        if not name:
            raise ValueError("factor item missing name")

        raw_params = item.get("params")
        if raw_params is not None and not isinstance(raw_params, Mapping):
            raise ValueError(f"factor params must be a dict: {name}")
        params: dict[str, Any] = dict(raw_params or {})
        for k, v in item.items():
            if k not in _RESERVED_KEYS and k not in params:
                params[k] = v

        cls = get_factor_cls(name)
        kwargs = _filter_init_kwargs(cls, params)
        try:
            factors.append(cls(**kwargs))
        except TypeError as exc:
            raise ValueError(f"Invalid params for factor '{name}': {params}") from exc
    return factors


def apply_factors(df: pd.DataFrame, factors: Iterable[Factor]) -> pd.DataFrame:
    for f in factors:
        df = f.compute(df)
    return df


register_factor("ma", MAFactor)
register_factor("ema", EMAFactor)
register_factor("rsi", RSIFactor)
register_factor("atr", ATRFactor)
register_factor("macd", MACDFactor)
register_factor("bollinger", BollingerFactor)
register_factor("keltner", KeltnerFactor)
register_factor("vwap", VWAPFactor)
