"""Bollinger/Keltner 挤压（Squeeze）判断。"""

from __future__ import annotations

from shared.models.indicators import Bands, Intensity, Squeeze


def squeeze_intensity(bollinger: Bands) -> Intensity:
    width = bollinger.width_ratio
    if width < 0.015:
        return "high"
    if width < 0.025:
        return "medium"
    return "low"


def detect_squeeze(bollinger: Bands, keltner: Bands) -> Squeeze:
    """布林带完全收进 Keltner 通道内即为挤压；强度按布林带相对宽度分级。"""
    active = bollinger.upper < keltner.upper and bollinger.lower > keltner.lower
    return Squeeze(is_active=active, intensity=squeeze_intensity(bollinger))
