import numpy as np
import pandas as pd
import pytest

from algo.factors.atr import ATRFactor
from algo.factors.bollinger import BollingerFactor
from algo.factors.ema import EMAFactor, seeded_ema
from algo.factors.ma import MAFactor
from algo.factors.macd import MACDFactor
from algo.factors.registry import apply_factors, build_factors, get_factor_cls
from algo.factors.rsi import RSIFactor
from algo.factors.vwap import VWAPFactor


def _ohlcv(closes, volume=10.0):
    closes = np.asarray(closes, dtype=float)
    return pd.DataFrame(
        {
            "open": closes,
            "high": closes * 1.01,
            "low": closes * 0.99,
            "close": closes,
            "volume": np.full(len(closes), volume),
        }
    )


def test_rsi_stays_within_bounds():
    rng = np.random.default_rng(3)
    closes = 100 + np.cumsum(rng.normal(0, 1, 200))
    df = RSIFactor(period=14).compute(pd.DataFrame({"close": closes}))
    assert df["rsi_14"].between(0, 100).all()


def test_rsi_is_100_without_losses():
    df = RSIFactor(period=14).compute(pd.DataFrame({"close": np.arange(1.0, 31.0)}))
    assert df["rsi_14"].iloc[-1] == pytest.approx(100.0)


def test_rsi_neutral_when_history_too_short():
    df = RSIFactor(period=14, out_col="rsi").compute(pd.DataFrame({"close": np.arange(1.0, 11.0)}))
    assert (df["rsi"] == 50.0).all()


def test_sma_of_one_to_five_is_three():
    df = MAFactor(window=5).compute(pd.DataFrame({"close": [1.0, 2.0, 3.0, 4.0, 5.0]}))
    assert df["ma_5"].iloc[-1] == pytest.approx(3.0)


def test_seeded_ema_uses_running_mean_then_recursion():
    out = seeded_ema([1, 2, 3, 4, 5, 6], 3)
    assert out.tolist() == pytest.approx([1.0, 1.5, 2.0, 3.0, 4.0, 5.0])


def test_ema_factor_writes_default_column():
    df = EMAFactor(period=3).compute(pd.DataFrame({"close": [1.0, 2.0, 3.0, 4.0]}))
    assert df["ema_3"].iloc[-1] == pytest.approx(3.0)


def test_bollinger_bands_are_symmetric():
    rng = np.random.default_rng(5)
    df = BollingerFactor(period=20).compute(_ohlcv(100 + rng.normal(0, 2, 60)))
    upper_gap = df["bb_upper"] - df["bb_middle"]
    lower_gap = df["bb_middle"] - df["bb_lower"]
    assert np.allclose(upper_gap, lower_gap)
    assert (df["bb_upper"] >= df["bb_lower"]).all()


def test_atr_is_zero_when_history_too_short():
    df = ATRFactor(period=14).compute(_ohlcv(np.linspace(100, 110, 10)))
    assert (df["atr_14"] == 0.0).all()


def test_atr_positive_with_enough_history():
    df = ATRFactor(period=14).compute(_ohlcv(np.linspace(100, 130, 40)))
    assert df["atr_14"].iloc[-1] > 0


def test_vwap_single_candle_is_typical_price():
    df = pd.DataFrame({"open": [9.0], "high": [12.0], "low": [8.0], "close": [10.0], "volume": [5.0]})
    df = VWAPFactor().compute(df)
    assert df["vwap"].iloc[0] == pytest.approx(10.0)
    assert df["vwap_std"].iloc[0] == pytest.approx(0.0)


def test_vwap_falls_back_to_close_without_volume():
    df = VWAPFactor().compute(_ohlcv([100.0, 101.0, 102.0], volume=0.0))
    assert df["vwap"].tolist() == pytest.approx([100.0, 101.0, 102.0])


def test_macd_approx_signal_is_ratio_of_macd():
    df = MACDFactor(signal="approx", signal_ratio=0.9).compute(pd.DataFrame({"close": np.linspace(100, 150, 60)}))
    assert np.allclose(df["macd_signal"], df["macd"] * 0.9)
    assert np.allclose(df["macd_hist"], df["macd"] - df["macd_signal"])


def test_macd_ema_signal_mode():
    closes = 100 + np.sin(np.linspace(0, 6, 80)) * 5
    df = MACDFactor(signal="ema", signal_period=9).compute(pd.DataFrame({"close": closes}))
    assert np.allclose(df["macd_signal"], seeded_ema(df["macd"].to_numpy(), 9))


def test_macd_rejects_fast_not_below_slow():
    with pytest.raises(ValueError):
        MACDFactor(fast=26, slow=12)


def test_missing_column_is_reported():
    with pytest.raises(ValueError, match="requires column"):
        ATRFactor().compute(pd.DataFrame({"close": [1.0, 2.0]}))


def test_registry_builds_nested_and_flat_params():
    factors = build_factors([{"name": "atr", "params": {"period": 5}}, {"name": "ma", "window": 3}])
    assert isinstance(factors[0], ATRFactor) and factors[0].period == 5
    assert isinstance(factors[1], MAFactor) and factors[1].window == 3
    assert factors[1].params["window"] == 3

    df = apply_factors(_ohlcv(np.linspace(100, 120, 30)), factors)
    assert {"atr_5", "ma_3"} <= set(df.columns)


def test_registry_rejects_unknown_and_bad_items():
    with pytest.raises(ValueError, match="Unknown factor: nope"):
        get_factor_cls("nope")
    with pytest.raises(ValueError):
        build_factors([{"params": {}}])
    with pytest.raises(ValueError):
        build_factors([{"name": "atr", "params": [1, 2]}])
    assert build_factors(None) == []
