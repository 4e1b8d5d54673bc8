"""执行引擎基类（模板模式）。

目标：
- 把“数据推进/事件循环”与“指标/决策/风控/撮合/记录”解耦；
- 让 backtest/paper 在同一套接口上演进，避免逻辑漂移。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

from engine.sources.event_source import EventSource


@dataclass(frozen=True)
class EngineResult:
    """引擎运行结果（统一出口）。"""

    summary: Any
    artifacts: dict[str, Any] | None = None


class BaseEngine(ABC):
    """引擎抽象基类。"""

    @abstractmethod
    def run(self) -> EngineResult:
        raise NotImplementedError

    def run_loop(
        self,
        *,
        source: EventSource,
        on_tick: Callable[[Any], None],
        max_events: int | None = None,
        logger=None,
    ) -> int:
        """统一事件循环：回测与纸面交易复用。返回已消费的事件数。"""
        if logger:
            logger.info("Engine loop start: source=%s", source.__class__.__name__)
        source.setup()
        n = 0
        try:
            for event in source.events():
                on_tick(event)
                n += 1
                if max_events is not None and n >= max_events:
                    if logger:
                        logger.info("Engine loop reached max_events=%s, stop.", max_events)
                    break
        finally:
            source.teardown()
            if logger:
                logger.info("Engine loop end after %s events.", n)
        return n
