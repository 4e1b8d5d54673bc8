import math

import pytest

from algo.indicators.engine import IndicatorEngine
from shared.config.schema import IndicatorConfig
from shared.errors import InsufficientDataError


def _wave(n, base=100.0):
    return [base + math.sin(i / 5.0) * 3 + i * 0.05 for i in range(n)]


def test_fewer_than_fifty_candles_raises(make_candles):
    with pytest.raises(InsufficientDataError) as exc:
        IndicatorEngine().compute(make_candles(_wave(49)))
    assert exc.value.available == 49
    assert exc.value.required == 50


def test_default_snapshot_has_all_optional_indicators(make_candles):
    snap = IndicatorEngine().compute(make_candles(_wave(80)))
    assert 0 <= snap.rsi <= 100
    assert snap.bollinger.lower <= snap.bollinger.middle <= snap.bollinger.upper
    assert snap.vwap is not None and snap.vwap.std2_lower <= snap.vwap.value <= snap.vwap.std2_upper
    assert snap.keltner is not None
    assert snap.squeeze is not None
    assert snap.volume_profile is not None
    assert snap.market_delta is not None
    assert snap.volume_ratio == pytest.approx(1.0)


def test_disabled_indicators_are_none(make_candles):
    cfg = IndicatorConfig(vwap=False, keltner=False, squeeze=False, volume_profile=False, market_delta=False)
    snap = IndicatorEngine(cfg).compute(make_candles(_wave(60)))
    assert snap.vwap is None
    assert snap.keltner is None
    assert snap.squeeze is None
    assert snap.volume_profile is None
    assert snap.market_delta is None


def test_squeeze_without_keltner_in_snapshot(make_candles):
    snap = IndicatorEngine(IndicatorConfig(keltner=False, squeeze=True)).compute(make_candles(_wave(60)))
    assert snap.keltner is None
    assert snap.squeeze is not None


def test_zero_volume_gives_zero_ratio(make_candles):
    snap = IndicatorEngine().compute(make_candles(_wave(60), volume=0.0))
    assert snap.volume_ratio == 0.0
    assert snap.vwap is not None
    assert snap.vwap.value == pytest.approx(_wave(60)[-1])


def test_extra_factors_land_in_extras(make_candles):
    cfg = IndicatorConfig(factors=[{"name": "atr", "period": 14}, {"name": "ema", "params": {"period": 5}}])
    snap = IndicatorEngine(cfg).compute(make_candles(_wave(60)))
    assert set(snap.extras) == {"atr_14", "ema_5"}
    assert snap.extras["atr_14"] > 0


def test_custom_min_candles(make_candles):
    engine = IndicatorEngine(min_candles=60)
    with pytest.raises(InsufficientDataError):
        engine.compute(make_candles(_wave(59)))
