"""决策服务抽象。"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from shared.config.schema import DecisionConfig
from shared.models.models import Decision, DecisionContext
from shared.utils.logging import setup_logger


class DecisionProvider(ABC):
    """给定上下文返回一个决策。"""

    @abstractmethod
    def decide(self, context: DecisionContext) -> Decision:
        raise NotImplementedError


class HoldDecisionProvider(DecisionProvider):
    """始终 HOLD；离线回放、冒烟测试时使用。"""

    def decide(self, context: DecisionContext) -> Decision:
        return Decision(
            action="HOLD",
            confidence=0.0,
            reasoning="Decision provider disabled; holding.",
            ts=context.ts,
        )


class SafeDecisionProvider(DecisionProvider):
    """包装任意决策服务：任何异常都转换为置信度 0 的 HOLD，驱动循环不会因此中断。"""

    def __init__(self, inner: DecisionProvider, logger: logging.Logger | None = None):
        self.inner = inner
        self.logger = logger or setup_logger("decision")

    def decide(self, context: DecisionContext) -> Decision:
        try:
            return self.inner.decide(context)
        except Exception as exc:
            self.logger.error("Decision provider %s failed: %s", self.inner.__class__.__name__, exc)
            return Decision.fallback_hold(exc, ts=context.ts)


def build_provider(cfg: DecisionConfig, logger: logging.Logger | None = None) -> DecisionProvider:
    """按配置构建决策服务（外层总是 SafeDecisionProvider）。"""
    if cfg.provider == "hold":
        inner: DecisionProvider = HoldDecisionProvider()
    else:
        from decision.deepseek_client import DeepSeekDecisionProvider

        inner = DeepSeekDecisionProvider(cfg, logger=logger)
    return SafeDecisionProvider(inner, logger=logger)
