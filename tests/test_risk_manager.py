from datetime import datetime, timezone

import pytest

from algo.risk.manager import RiskManager
from shared.config.schema import RiskConfig
from shared.models.models import Decision, PerformanceStats, PortfolioState, Position

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _buy(quantity=None, stop_loss=None):
    return Decision(action="BUY", confidence=0.8, reasoning="setup", quantity=quantity, stop_loss=stop_loss)


def _position():
    return Position(
        symbol="BTC/USD", entry_price=100.0, quantity=1.0, entry_time=T0, stop_loss=98.0, take_profit=103.0
    )


@pytest.fixture
def risk():
    return RiskManager(RiskConfig())


@pytest.fixture
def portfolio():
    return PortfolioState(cash=10_000.0, total_equity=10_000.0)


def test_position_size_takes_smallest_limit(risk, portfolio):
    # 风险：200 / (100 * 2%) = 100；仓位上限：10000 * 25% / 100 = 25
    assert risk.calculate_position_size(_buy(), portfolio, 100.0) == pytest.approx(25.0)
    # 建议比例：10000 * 10% / 100 = 10
    assert risk.calculate_position_size(_buy(quantity=0.1), portfolio, 100.0) == pytest.approx(10.0)
    # 建议止损 99 -> 200 / 1 = 200，仍被上限 25 截断
    assert risk.calculate_position_size(_buy(stop_loss=99.0), portfolio, 100.0) == pytest.approx(25.0)
    # 建议止损很远 -> 风险约束最紧：200 / 50 = 4
    assert risk.calculate_position_size(_buy(stop_loss=50.0), portfolio, 100.0) == pytest.approx(4.0)


@pytest.mark.parametrize("price", [100.0, 42_000.0])
@pytest.mark.parametrize("max_risk_per_trade", [0.02, 0.5])
def test_full_allocation_is_capped_by_max_position_size(portfolio, price, max_risk_per_trade):
    risk = RiskManager(RiskConfig(max_risk_per_trade=max_risk_per_trade))
    size = risk.calculate_position_size(_buy(quantity=1.0), portfolio, price)
    cap = 0.25 * portfolio.total_equity / price
    assert size <= cap + 1e-12
    assert size == pytest.approx(cap)


def test_position_size_rejects_non_positive_price(risk, portfolio):
    with pytest.raises(ValueError):
        risk.calculate_position_size(_buy(), portfolio, 0.0)


def test_stop_loss_accepts_reasonable_suggestion(risk):
    assert risk.calculate_stop_loss(100.0, "long", 98.5) == pytest.approx(98.5)
    assert risk.calculate_stop_loss(100.0, "long", 99.9) == pytest.approx(98.0)
    assert risk.calculate_stop_loss(100.0, "long") == pytest.approx(98.0)
    assert risk.calculate_stop_loss(100.0, "short") == pytest.approx(102.0)


def test_take_profit_accepts_reasonable_suggestion(risk):
    assert risk.calculate_take_profit(100.0, "long", 104.0) == pytest.approx(104.0)
    assert risk.calculate_take_profit(100.0, "long", 120.0) == pytest.approx(103.0)
    assert risk.calculate_take_profit(100.0, "short") == pytest.approx(97.0)


def test_buy_rejected_without_cash(risk):
    poor = PortfolioState(cash=100.0, total_equity=10_000.0)
    check = risk.check_trade_allowed(_buy(quantity=0.2), poor, PerformanceStats(), None, T0)
    assert check.allowed is False
    assert check.reason == "Insufficient cash: Required $2000.00, Available: $100.00"


def test_buy_rejected_with_open_position(risk, portfolio):
    check = risk.check_trade_allowed(_buy(quantity=0.1), portfolio, PerformanceStats(), _position(), T0)
    assert check.allowed is False
    assert check.reason.startswith("Position already open")


def test_sell_requires_position(risk, portfolio):
    sell = Decision(action="SELL", confidence=0.7, reasoning="exit")
    assert risk.check_trade_allowed(sell, portfolio, PerformanceStats(), None, T0).reason == "No open position to sell."
    assert risk.check_trade_allowed(sell, portfolio, PerformanceStats(), _position(), T0).allowed


def test_oversized_buy_is_clamped(risk, portfolio):
    check = risk.check_trade_allowed(_buy(quantity=0.5), portfolio, PerformanceStats(), None, T0)
    assert check.allowed is True
    assert check.adjusted_quantity == pytest.approx(0.25)


def test_buy_within_limits_not_adjusted(risk, portfolio):
    check = risk.check_trade_allowed(_buy(quantity=0.1), portfolio, PerformanceStats(), None, T0)
    assert check.allowed is True
    assert check.adjusted_quantity is None


def test_update_parameters_validates_and_applies(risk):
    params = risk.update_parameters(stop_loss_pct=0.03, circuit_breaker_recovery_minutes=30)
    assert params.stop_loss_pct == 0.03
    assert risk.breaker.recovery_minutes == 30

    with pytest.raises(ValueError):
        risk.update_parameters(max_position_size=2.0)
    assert risk.parameters().max_position_size == 0.25

    with pytest.raises(ValueError):
        risk.update_parameters(take_profit_pct=0.05, max_risk_per_trade=0.0)
    assert risk.parameters().take_profit_pct == 0.03


def test_parameters_returns_copy(risk):
    params = risk.parameters()
    params.stop_loss_pct = 0.5
    assert risk.parameters().stop_loss_pct == 0.02
