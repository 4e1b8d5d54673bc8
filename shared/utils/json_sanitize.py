from __future__ import annotations

import math
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any


def sanitize_for_json(obj: Any) -> Any:
    """
    把 NaN/Inf 转成字符串，避免写出非标准 JSON（Infinity/NaN）。

    同时把 dataclass/datetime/timedelta/Enum 转成 JSON 友好的结构，
    便于 BacktestResult 等产物直接 `json.dump`。
    """
    if isinstance(obj, bool) or obj is None:
        return obj
    if isinstance(obj, float):
        if math.isnan(obj):
            return "nan"
        if math.isinf(obj):
            return "inf" if obj > 0 else "-inf"
        return obj
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return sanitize_for_json(asdict(obj))
    if isinstance(obj, dict):
        return {str(k): sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_for_json(v) for v in obj]
    return obj
