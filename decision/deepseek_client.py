"""DeepSeek（OpenAI 兼容 chat-completions）决策客户端。"""

from __future__ import annotations

import json
import logging
import math
import time
from datetime import datetime
from typing import Any, Optional

import requests

from decision.base import DecisionProvider
from decision.prompt_builder import PromptBuilder
from shared.config.schema import DecisionConfig
from shared.errors import DecisionProviderError
from shared.models.models import VALID_ACTIONS, Decision, DecisionContext
from shared.utils.logging import setup_logger

DEFAULT_CONFIDENCE = 0.5
DEFAULT_QUANTITY = 0.1

SYSTEM_PROMPT_HEADER = """You are a disciplined cryptocurrency scalper trading a single spot pair, long only.
Trade only high-probability setups and prefer HOLD when there is no clear edge.

SETUP GRADES:
- A: VWAP 2-sigma mean reversion, high-intensity squeeze breakout, POC magnet with volume confirmation.
- B: VWAP 1-sigma bounce, Bollinger band touch with RSI extreme, support/resistance bounce.
- C: no clear edge, choppy price action, low volume. Do not trade C setups."""

SYSTEM_PROMPT_INDICATORS = """
INDICATOR PRIORITY:
1. VWAP: price above VWAP is a long bias, below is a short bias.
2. Squeeze: Bollinger inside Keltner means volatility compression; wait for the breakout direction.
3. Volume profile: POC acts as a magnet; VAH/VAL act as resistance/support.
4. Market delta: strong imbalance in the direction of price is continuation, against price is reversal.
5. RSI extremes, Bollinger bands and volume ratio are confluence only."""

SYSTEM_PROMPT_PRICE_ACTION = """
PRICE ACTION MODE:
No indicators are provided. Read candlestick structure, support/resistance and volume spikes
from the raw candles, enter at key levels with tight stops and exit quickly."""

SYSTEM_PROMPT_FOOTER = """
RISK RULES:
- Stop loss 0.3-0.5% from entry, take profit 0.6-1.5% from entry, reward/risk at least 2.
- Max 2% risk per trade (1% for B setups). Never add to a losing position.
- Stop trading after 3 consecutive losses.

Respond with JSON only:
{"action": "BUY" | "SELL" | "HOLD", "confidence": 0.0-1.0, "quantity": 0.0-1.0,
 "stopLoss": number, "takeProfit": number, "reasoning": "setup grade and key factors"}"""


def build_system_prompt(use_technical_indicators: bool = True) -> str:
    middle = SYSTEM_PROMPT_INDICATORS if use_technical_indicators else SYSTEM_PROMPT_PRICE_ACTION
    return SYSTEM_PROMPT_HEADER + "\n" + middle + "\n" + SYSTEM_PROMPT_FOOTER


def validate_number(value: Any, low: float, high: float, default: float) -> float:
    """解析为 float；无法解析、NaN 或超出 [low, high] 时返回 default。"""
    try:
        num = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(num) or num < low or num > high:
        return default
    return num


def _optional_price(value: Any) -> Optional[float]:
    if not value:
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if num > 0 and math.isfinite(num) else None


def parse_decision(content: str, ts: datetime | None = None) -> Decision:
    """解析模型返回的 JSON 文本。

    Raises
    ------
    DecisionProviderError
        非 JSON、非对象或 action 不合法。
    """
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError) as exc:
        raise DecisionProviderError(f"Invalid AI response format: {content}") from exc
    if not isinstance(parsed, dict):
        raise DecisionProviderError(f"Invalid AI response format: {content}")

    action = parsed.get("action")
    if action not in VALID_ACTIONS:
        raise DecisionProviderError(f"Invalid action in AI response: {action!r}")

    quantity = parsed.get("quantity")
    return Decision(
        action=action,
        confidence=validate_number(parsed.get("confidence"), 0.0, 1.0, DEFAULT_CONFIDENCE),
        quantity=validate_number(quantity, 0.0, 1.0, DEFAULT_QUANTITY) if quantity else None,
        stop_loss=_optional_price(parsed.get("stopLoss", parsed.get("stop_loss"))),
        take_profit=_optional_price(parsed.get("takeProfit", parsed.get("take_profit"))),
        reasoning=parsed.get("reasoning") or "No reasoning provided",
        ts=ts,
    )


class DeepSeekDecisionProvider(DecisionProvider):
    """通过 chat-completions 接口请求交易决策。

    任何网络、超时、响应格式问题都会被转换为置信度 0 的 HOLD，并记录日志。
    """

    def __init__(
        self,
        cfg: DecisionConfig,
        *,
        prompt_builder: PromptBuilder | None = None,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ):
        if not cfg.api_key:
            raise ValueError("DeepSeek api_key is required")
        self.cfg = cfg
        self.prompt_builder = prompt_builder or PromptBuilder(cfg.use_technical_indicators)
        self.system_prompt = build_system_prompt(cfg.use_technical_indicators)
        self.session = session or requests.Session()
        self.logger = logger or setup_logger("decision")
        self.request_count = 0
        self.total_tokens = 0
        self.logger.info("DeepSeek client initialized with model: %s", cfg.model)

    def decide(self, context: DecisionContext) -> Decision:
        prompt = self.prompt_builder.build(context)
        try:
            decision = self.request_decision(prompt, ts=context.ts)
        except DecisionProviderError as exc:
            self.logger.error("Failed to get AI decision: %s", exc)
            self.logger.warning("Using fallback decision (HOLD)")
            return Decision.fallback_hold(exc, ts=context.ts)
        self.logger.info(
            "AI decision: %s (confidence=%.2f) %s", decision.action, decision.confidence, decision.reasoning
        )
        return decision

    def request_decision(self, prompt: str, ts: datetime | None = None) -> Decision:
        """发送一次请求并解析决策；失败时抛出 DecisionProviderError。"""
        self.request_count += 1
        payload = {
            "model": self.cfg.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.cfg.temperature,
            "max_tokens": self.cfg.max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {self.cfg.api_key}"}

        started = time.monotonic()
        try:
            resp = self.session.post(self.cfg.api_url, json=payload, headers=headers, timeout=self.cfg.timeout_secs)
            resp.raise_for_status()
            data = resp.json()
        except requests.Timeout as exc:
            raise DecisionProviderError(f"Request timed out after {self.cfg.timeout_secs:g}s") from exc
        except requests.RequestException as exc:
            raise DecisionProviderError(f"Request failed: {exc}") from exc
        except ValueError as exc:
            raise DecisionProviderError("Response body is not valid JSON") from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise DecisionProviderError("No response from DeepSeek API")
        try:
            content = choices[0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise DecisionProviderError("Malformed choices in DeepSeek response") from exc

        tokens = int((data.get("usage") or {}).get("total_tokens") or 0)
        self.total_tokens += tokens
        self.logger.info(
            "AI response received in %.0fms (tokens=%s, request=#%s)",
            (time.monotonic() - started) * 1000,
            tokens,
            self.request_count,
        )
        return parse_decision(content, ts=ts)

    def stats(self) -> dict[str, float]:
        return {
            "request_count": self.request_count,
            "total_tokens": self.total_tokens,
            "average_tokens_per_request": self.total_tokens / self.request_count if self.request_count else 0.0,
        }

    def reset_stats(self) -> None:
        self.request_count = 0
        self.total_tokens = 0
        self.logger.info("Decision client stats reset")
