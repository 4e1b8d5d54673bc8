"""配置架构定义（Pydantic Schema）。

目标：
- 让配置成为“强类型 + 可演进”的边界协议；
- 启动阶段尽早失败，避免 typo/类型错误在长回测或纸面交易中“隐蔽爆炸”；
- 尽量消灭业务代码里的 `cfg.get(...)` 与深层字典索引。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.utils.timeframe import parse_timeframe


class FeesConfig(BaseModel):
    """手续费/滑点配置（均为比例，0.0026 表示 0.26%）。

    模拟成交一律按市价单处理，只收 taker 费率；maker 仅作记录（写入 result.json 的 config 段），不参与计费。
    """
    maker: float = Field(default=0.0016, ge=0)
    taker: float = Field(default=0.0026, ge=0)
    slippage: float = Field(default=0.0005, ge=0, lt=1)
    model_config = ConfigDict(extra="forbid")


class RiskConfig(BaseModel):
    """风控参数。"""
    max_risk_per_trade: float = 0.02
    max_drawdown: float = Field(default=0.15, gt=0)
    daily_loss_limit: float = Field(default=0.05, gt=0)
    max_consecutive_losses: int = Field(default=3, ge=1)
    min_sharpe_ratio: float = 2.0
    stop_loss_pct: float = Field(default=0.02, gt=0, lt=1)
    take_profit_pct: float = Field(default=0.03, gt=0)
    max_position_size: float = Field(default=0.25, gt=0, le=1)
    # 0 表示熔断后不自动恢复，只能手动 resume
    circuit_breaker_recovery_minutes: float = Field(default=0, ge=0)
    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @field_validator("max_risk_per_trade")
    @classmethod
    def _check_risk_per_trade(cls, v: float) -> float:
        if v <= 0 or v > 1:
            raise ValueError("max_risk_per_trade must be in (0, 1]")
        return v


class IndicatorConfig(BaseModel):
    """指标计算配置。

    说明：
    - 核心指标（RSI/MACD/Bollinger/SMA/EMA/量能）始终计算；
    - 下面的开关控制可选子指标是否出现在快照中；
    - `factors` 为额外的注册表因子（取最后一根 K 线的值放入 snapshot.extras）。
    """
    vwap: bool = True
    keltner: bool = True
    squeeze: bool = True
    volume_profile: bool = True
    market_delta: bool = True
    keltner_multiplier: float = Field(default=1.5, gt=0)
    macd_signal: Literal["approx", "ema"] = "approx"
    macd_signal_ratio: float = 0.9
    factors: List[Dict[str, Any]] = Field(default_factory=list)
    model_config = ConfigDict(extra="forbid")


class DecisionConfig(BaseModel):
    """决策服务配置（DeepSeek 兼容的 chat-completions 接口）。"""
    provider: Literal["deepseek", "hold"] = "deepseek"
    api_url: str = "https://api.deepseek.com/v1/chat/completions"
    api_key: Optional[str] = None
    model: str = "deepseek-chat"
    timeout_secs: float = Field(default=60.0, gt=0)
    temperature: float = 0.7
    max_tokens: int = Field(default=500, gt=0)
    use_technical_indicators: bool = True
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _require_key(self) -> "DecisionConfig":
        if self.provider == "deepseek" and not self.api_key:
            raise ValueError("decision.api_key is required when decision.provider is 'deepseek'")
        return self


class MarketDataConfig(BaseModel):
    """K 线来源。"""
    source: Literal["exchange", "csv", "fake"] = "exchange"
    exchange: str = "kraken"
    csv_path: Optional[str] = None
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _require_csv_path(self) -> "MarketDataConfig":
        if self.source == "csv" and not self.csv_path:
            raise ValueError("market_data.csv_path is required when market_data.source is 'csv'")
        return self


class BacktestConfig(BaseModel):
    """回测区间与产物目录。"""
    start: datetime
    end: datetime
    output_dir: Optional[str] = None
    model_config = ConfigDict(extra="forbid")

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _check_range(self) -> "BacktestConfig":
        if self.start >= self.end:
            raise ValueError("backtest.start must be before backtest.end")
        return self


class PaperConfig(BaseModel):
    """纸面交易轮询配置。"""
    history_hours: float = Field(default=24, gt=0)
    history_cap: int = Field(default=500, ge=50)
    # 缺省按 timeframe 推导轮询间隔
    poll_secs: Optional[float] = Field(default=None, gt=0)
    model_config = ConfigDict(extra="forbid")


class EngineConfig(BaseModel):
    """驱动循环配置。"""
    warmup_candles: int = Field(default=50, ge=50)
    context_candles: int = Field(default=100, ge=1)
    recent_trades: int = Field(default=5, ge=0)
    # 单根 K 线处理异常时：True 记录并继续；False 直接抛出
    continue_on_error: bool = True
    model_config = ConfigDict(extra="forbid")


class LoggingConfig(BaseModel):
    level: str = "INFO"
    model_config = ConfigDict(extra="forbid")


class MainConfig(BaseModel):
    """应用总配置。"""
    pair: str = "BTC/USD"
    timeframe: str = "5m"
    initial_capital: float = Field(default=10000.0, gt=0)
    mode: Literal["backtest", "paper"] = "backtest"

    fees: FeesConfig = Field(default_factory=FeesConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    indicators: IndicatorConfig = Field(default_factory=IndicatorConfig)
    decision: DecisionConfig = Field(default_factory=lambda: DecisionConfig(provider="hold"))
    market_data: MarketDataConfig = Field(default_factory=MarketDataConfig)
    backtest: Optional[BacktestConfig] = None
    paper: PaperConfig = Field(default_factory=PaperConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @field_validator("timeframe")
    @classmethod
    def _check_timeframe(cls, v: str) -> str:
        parse_timeframe(v)
        return v

    @property
    def timeframe_minutes(self) -> int:
        return parse_timeframe(self.timeframe)
