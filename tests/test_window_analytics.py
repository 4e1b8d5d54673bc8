import pandas as pd
import pytest

from algo.factors.market_delta import MarketDeltaAnalyzer, classify_imbalance
from algo.factors.squeeze import detect_squeeze, squeeze_intensity
from algo.factors.volume_profile import VolumeProfileAnalyzer
from shared.models.indicators import Bands


def _frame(rows):
    return pd.DataFrame(rows, columns=["open", "high", "low", "close", "volume"])


def test_volume_profile_flat_prices_collapse_to_single_level():
    df = _frame([(100.0, 100.0, 100.0, 100.0, 2.0)] * 30)
    vp = VolumeProfileAnalyzer().analyze(df)
    assert vp.poc == pytest.approx(100.0)
    assert vp.vah == pytest.approx(100.0)
    assert vp.val == pytest.approx(100.0)
    assert vp.total_volume == pytest.approx(60.0)


def test_volume_profile_poc_sits_on_heaviest_level():
    rows = [(100.0, 100.5, 99.5, 100.0, 100.0)] * 10
    rows += [(p, p + 0.5, p - 0.5, p, 1.0) for p in range(90, 111)]
    vp = VolumeProfileAnalyzer(lookback=50, buckets=20).analyze(_frame(rows))
    size = (110.5 - 89.5) / 20
    assert abs(vp.poc - 100.0) <= size
    assert vp.val <= vp.poc <= vp.vah
    assert vp.total_volume == pytest.approx(1000.0 + 21.0)


def _bucketed_rows(volumes):
    # 价格区间固定为 [100, 110]，10 个桶宽度为 1；第 i 桶的成交量落在 100.5 + i
    rows = [(105.0, 110.0, 100.0, 105.0, 0.0)]
    for i, vol in enumerate(volumes):
        p = 100.5 + i
        rows.append((p, p, p, p, float(vol)))
    return rows


def _enclosed_volume(rows, vp):
    return sum(vol for _, high, low, _, vol in rows if vp.val <= (high + low) / 2 < vp.vah)


def test_value_area_expands_towards_heavier_side():
    rows = _bucketed_rows([1, 2, 3, 5, 10, 30, 8, 6, 1, 4])
    vp = VolumeProfileAnalyzer(lookback=50, buckets=10).analyze(_frame(rows))
    assert vp.poc == pytest.approx(105.5)
    assert vp.val == pytest.approx(104.0)
    assert vp.vah == pytest.approx(108.0)
    assert vp.total_volume == pytest.approx(70.0)
    assert _enclosed_volume(rows, vp) == pytest.approx(54.0)
    assert _enclosed_volume(rows, vp) >= 0.7 * vp.total_volume


def test_value_area_crosses_empty_buckets_from_lowest_level():
    rows = _bucketed_rows([60, 0, 0, 0, 0, 0, 0, 0, 0, 40])
    vp = VolumeProfileAnalyzer(lookback=50, buckets=10).analyze(_frame(rows))
    assert vp.poc == pytest.approx(100.5)
    assert vp.val == pytest.approx(100.0)
    assert vp.vah == pytest.approx(110.0)
    assert _enclosed_volume(rows, vp) >= 0.7 * vp.total_volume


def test_volume_profile_only_uses_lookback():
    rows = [(500.0, 500.0, 500.0, 500.0, 1000.0)] * 5 + [(100.0, 101.0, 99.0, 100.0, 1.0)] * 50
    vp = VolumeProfileAnalyzer(lookback=50).analyze(_frame(rows))
    assert vp.total_volume == pytest.approx(50.0)
    assert vp.vah <= 101.0 + 1e-9


def test_market_delta_counts_up_candles_as_buying():
    rows = [(100.0, 102.0, 99.0, 101.0, 10.0)] * 3 + [(101.0, 102.0, 99.0, 100.0, 10.0)]
    md = MarketDeltaAnalyzer().analyze(_frame(rows))
    assert md.buy_volume == 30.0
    assert md.sell_volume == 10.0
    assert md.delta == 20.0
    assert md.delta_pct == pytest.approx(50.0)
    assert md.imbalance == "strong_buy"


def test_market_delta_without_volume_is_neutral():
    md = MarketDeltaAnalyzer().analyze(_frame([(100.0, 101.0, 99.0, 100.5, 0.0)] * 5))
    assert md.delta_pct == 0.0
    assert md.imbalance == "neutral"


@pytest.mark.parametrize(
    "pct,expected",
    [(31, "strong_buy"), (30, "buy"), (11, "buy"), (0, "neutral"), (-10, "sell"), (-30, "strong_sell")],
)
def test_classify_imbalance_thresholds(pct, expected):
    assert classify_imbalance(pct) == expected


def test_squeeze_active_iff_bollinger_inside_keltner():
    keltner = Bands(upper=103.0, middle=100.0, lower=97.0)
    inside = Bands(upper=100.7, middle=100.0, lower=99.3)
    outside = Bands(upper=104.0, middle=100.0, lower=99.3)
    assert detect_squeeze(inside, keltner).is_active is True
    assert detect_squeeze(outside, keltner).is_active is False


def test_squeeze_intensity_from_band_width():
    assert squeeze_intensity(Bands(upper=100.5, middle=100.0, lower=99.5)) == "high"
    assert squeeze_intensity(Bands(upper=101.0, middle=100.0, lower=99.0)) == "medium"
    assert squeeze_intensity(Bands(upper=102.0, middle=100.0, lower=98.0)) == "low"
