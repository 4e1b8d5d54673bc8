"""异常分层。

- DataError：结构性数据/配置错误（K 线不足、timeframe 非法），对整次运行是致命的；
- DecisionProviderError：决策服务失败（网络/超时/响应格式），由调用方降级为 HOLD；
- 风控拒单不是异常，见 `shared.models.models.RiskCheck`。
"""

from __future__ import annotations


class DataError(ValueError):
    """数据或配置在结构上不可用，运行无法继续。"""


class InsufficientDataError(DataError):
    """可用 K 线数量低于指标计算的最低要求。"""

    def __init__(self, available: int, required: int):
        self.available = int(available)
        self.required = int(required)
        super().__init__(
            f"Not enough candles for indicator calculation: got {self.available}, minimum {self.required} required"
        )


class TimeframeError(DataError):
    """timeframe 字符串无法解析（例如 "5x"）。"""


class DecisionProviderError(RuntimeError):
    """决策服务调用失败（网络、超时、HTTP 错误或响应格式非法）。"""
