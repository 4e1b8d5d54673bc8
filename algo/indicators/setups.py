"""价格形态与指标状态的判别函数。

这些函数都是纯函数：只读指标快照与价格，不修改任何状态。
"""

from __future__ import annotations

from shared.models.indicators import Bands, IndicatorSnapshot, SetupSignal, Squeeze, VolumeProfile, VwapBands


def is_overbought(snapshot: IndicatorSnapshot) -> bool:
    return snapshot.rsi > 70


def is_oversold(snapshot: IndicatorSnapshot) -> bool:
    return snapshot.rsi < 30


def is_bullish_crossover(snapshot: IndicatorSnapshot) -> bool:
    """柱状图刚转正（|hist| < 0.5 视为交叉附近）。"""
    hist = snapshot.macd.histogram
    return hist > 0 and abs(hist) < 0.5


def is_bearish_crossover(snapshot: IndicatorSnapshot) -> bool:
    hist = snapshot.macd.histogram
    return hist < 0 and abs(hist) < 0.5


def is_price_at_upper_band(price: float, snapshot: IndicatorSnapshot) -> bool:
    return price >= snapshot.bollinger.upper * 0.99


def is_price_at_lower_band(price: float, snapshot: IndicatorSnapshot) -> bool:
    return price <= snapshot.bollinger.lower * 1.01


def detect_vwap_reversion(price: float, vwap: VwapBands) -> SetupSignal:
    """价格偏离 VWAP 超过 2 倍标准差：均值回归机会。偏离幅度 > 3% 为 A 级。"""
    dev_pct = (price - vwap.value) / vwap.value * 100 if vwap.value else 0.0
    quality = "A" if abs(dev_pct) > 3 else "B"
    if price < vwap.std2_lower:
        return SetupSignal(is_setup=True, direction="long", quality=quality)
    if price > vwap.std2_upper:
        return SetupSignal(is_setup=True, direction="short", quality=quality)
    return SetupSignal.none()


def detect_squeeze_breakout(price: float, previous_price: float, squeeze: Squeeze, keltner: Bands) -> SetupSignal:
    """挤压中价格突破 Keltner 通道且单根涨跌幅超过 0.3%。高强度挤压为 A 级。"""
    if not squeeze.is_active or previous_price == 0:
        return SetupSignal.none()
    pct_move = (price - previous_price) / previous_price * 100
    quality = "A" if squeeze.intensity == "high" else "B"
    if price > keltner.upper and pct_move > 0.3:
        return SetupSignal(is_setup=True, direction="long", quality=quality)
    if price < keltner.lower and pct_move < -0.3:
        return SetupSignal(is_setup=True, direction="short", quality=quality)
    return SetupSignal.none()


def detect_poc_magnet(price: float, profile: VolumeProfile) -> SetupSignal:
    """价格贴近 POC（0.5% 以内）为 A 级；贴近价值区上/下沿为 B 级。"""
    if price <= 0:
        return SetupSignal.none()
    poc_dist_pct = abs(price - profile.poc) / price * 100
    if poc_dist_pct < 0.5:
        return SetupSignal(is_setup=True, direction="long" if price > profile.poc else "short", quality="A")
    if abs(price - profile.vah) < price * 0.005:
        return SetupSignal(is_setup=True, direction="short", quality="B")
    if abs(price - profile.val) < price * 0.005:
        return SetupSignal(is_setup=True, direction="long", quality="B")
    return SetupSignal.none()
