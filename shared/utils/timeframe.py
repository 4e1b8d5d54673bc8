"""timeframe 字符串解析（"5m"/"1h"/"1d" -> 分钟）。"""

from __future__ import annotations

import re

from shared.errors import TimeframeError

_TIMEFRAME_RE = re.compile(r"^(\d+)([mhd])$")
_UNIT_MINUTES = {"m": 1, "h": 60, "d": 1440}


def parse_timeframe(timeframe: str) -> int:
    """把 timeframe 解析为分钟数。

    Parameters
    ----------
    timeframe:
        形如 "15m"、"4h"、"1d" 的字符串。

    Returns
    -------
    int
        对应的分钟数。

    Raises
    ------
    TimeframeError
        格式非法或数值为 0。
    """
    match = _TIMEFRAME_RE.match(str(timeframe).strip())
    if not match:
        raise TimeframeError(f"Invalid timeframe format: {timeframe}")
    value = int(match.group(1))
    if value <= 0:
        raise TimeframeError(f"Timeframe must be positive: {timeframe}")
    return value * _UNIT_MINUTES[match.group(2)]


def timeframe_to_seconds(timeframe: str) -> int:
    return parse_timeframe(timeframe) * 60
