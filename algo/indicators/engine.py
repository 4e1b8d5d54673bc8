"""IndicatorEngine：K 线窗口 -> 最新一根上的指标快照。"""

from __future__ import annotations

import logging
from typing import Sequence

import pandas as pd

from algo.factors.bollinger import BollingerFactor
from algo.factors.ema import EMAFactor
from algo.factors.keltner import KeltnerFactor
from algo.factors.ma import MAFactor
from algo.factors.macd import MACDFactor
from algo.factors.market_delta import MarketDeltaAnalyzer
from algo.factors.registry import apply_factors, build_factors
from algo.factors.rsi import RSIFactor
from algo.factors.squeeze import detect_squeeze
from algo.factors.volume_profile import VolumeProfileAnalyzer
from algo.factors.vwap import VWAPFactor
from market_data.loader import candles_to_frame
from shared.config.schema import IndicatorConfig
from shared.errors import InsufficientDataError
from shared.models.indicators import MACD, Bands, IndicatorSnapshot, VwapBands
from shared.models.models import Candle
from shared.utils.logging import setup_logger

MIN_CANDLES = 50


class IndicatorEngine:
    """计算核心指标与可选子指标。

    核心指标：RSI(14)、MACD(12/26)、Bollinger(20, 2)、SMA20/50、EMA12/26、量能均值/量比；
    可选：VWAP 及其 1/2 倍标准差带、Keltner(20, 1.5)、Squeeze、Volume Profile、Market Delta。

    Parameters
    ----------
    cfg:
        指标配置；None 时使用默认值（全部可选指标开启）。
    min_candles:
        最少 K 线数量，不足时抛出 InsufficientDataError。
    """

    def __init__(
        self,
        cfg: IndicatorConfig | None = None,
        *,
        min_candles: int = MIN_CANDLES,
        logger: logging.Logger | None = None,
    ):
        self.cfg = cfg or IndicatorConfig()
        self.min_candles = min_candles
        self.logger = logger or setup_logger("indicators")

        self._core = [
            RSIFactor(period=14, out_col="rsi"),
            MACDFactor(signal=self.cfg.macd_signal, signal_ratio=self.cfg.macd_signal_ratio),
            BollingerFactor(period=20, num_std=2.0, prefix="bb"),
            MAFactor(window=20, out_col="sma20"),
            MAFactor(window=50, out_col="sma50"),
            EMAFactor(period=12, out_col="ema12"),
            EMAFactor(period=26, out_col="ema26"),
            MAFactor(window=20, price_col="volume", out_col="volume_average"),
        ]
        if self.cfg.vwap:
            self._core.append(VWAPFactor(prefix="vwap"))
        if self.cfg.keltner or self.cfg.squeeze:
            self._core.append(KeltnerFactor(period=20, multiplier=self.cfg.keltner_multiplier, prefix="kc"))
        self._extras = build_factors(self.cfg.factors)
        self._volume_profile = VolumeProfileAnalyzer()
        self._market_delta = MarketDeltaAnalyzer()

    def compute(self, candles: Sequence[Candle]) -> IndicatorSnapshot:
        """计算窗口内最后一根 K 线的指标快照。

        Raises
        ------
        InsufficientDataError
            K 线数量少于 min_candles。
        """
        if len(candles) < self.min_candles:
            raise InsufficientDataError(len(candles), self.min_candles)

        df = candles_to_frame(candles)
        df = apply_factors(df, self._core)
        core_cols = set(df.columns)
        df = apply_factors(df, self._extras)
        last = df.iloc[-1]

        bollinger = Bands(upper=float(last["bb_upper"]), middle=float(last["bb_middle"]), lower=float(last["bb_lower"]))
        keltner = None
        if "kc_middle" in df.columns:
            keltner = Bands(upper=float(last["kc_upper"]), middle=float(last["kc_middle"]), lower=float(last["kc_lower"]))

        volume_average = float(last["volume_average"])
        volume_ratio = float(last["volume"]) / volume_average if volume_average > 0 else 0.0

        snapshot = IndicatorSnapshot(
            rsi=float(last["rsi"]),
            macd=MACD(
                macd=float(last["macd"]), signal=float(last["macd_signal"]), histogram=float(last["macd_hist"])
            ),
            bollinger=bollinger,
            sma20=float(last["sma20"]),
            sma50=float(last["sma50"]),
            ema12=float(last["ema12"]),
            ema26=float(last["ema26"]),
            volume_average=volume_average,
            volume_ratio=volume_ratio,
            vwap=self._vwap_bands(last) if self.cfg.vwap else None,
            keltner=keltner if self.cfg.keltner else None,
            squeeze=detect_squeeze(bollinger, keltner) if self.cfg.squeeze and keltner is not None else None,
            volume_profile=self._volume_profile.analyze(df) if self.cfg.volume_profile else None,
            market_delta=self._market_delta.analyze(df) if self.cfg.market_delta else None,
            extras=self._extra_values(last, core_cols),
        )
        self.logger.debug(
            "indicators rsi=%.2f macd=%.4f hist=%.4f bb=[%.2f, %.2f] volume_ratio=%.2f",
            snapshot.rsi,
            snapshot.macd.macd,
            snapshot.macd.histogram,
            bollinger.lower,
            bollinger.upper,
            volume_ratio,
        )
        return snapshot

    @staticmethod
    def _vwap_bands(last: pd.Series) -> VwapBands:
        value = float(last["vwap"])
        std = float(last["vwap_std"])
        return VwapBands(
            value=value,
            std1_upper=value + std,
            std1_lower=value - std,
            std2_upper=value + 2 * std,
            std2_lower=value - 2 * std,
        )

    @staticmethod
    def _extra_values(last: pd.Series, core_cols: set[str]) -> dict[str, float]:
        return {str(k): float(v) for k, v in last.items() if k not in core_cols and pd.notna(v)}
