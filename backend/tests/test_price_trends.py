"""
price_trends 테스트

- 일간 / 주간 / 월간 변동률 가중 점수
- 거래량 확인 가감점
- 데이터 부족 / 거래량 결측 처리
"""
import pytest

from conftest import rising_closes
from stock_advisor.services.price_trends import analyze_price_trends, price_trend_label


def test_insufficient_history(make_bars):
    result = analyze_price_trends(make_bars(rising_closes(9)))
    assert result.score == 50
    assert result.label == "NEUTRAL"
    assert result.insufficient_data is True
    assert result.reasons == ["Insufficient price history"]


def test_flat_prices(make_bars):
    result = analyze_price_trends(make_bars([100.0] * 20))
    # SMA5 == SMA20 → 하락 쪽 -5
    assert result.score == pytest.approx(45)
    assert result.reasons == ["Short-term moving average below long-term (bearish)"]
    assert result.details.volume_ratio == pytest.approx(1.0)


def test_volume_confirmed_gain(make_bars):
    closes = [100.0] * 19 + [102.0]
    volumes = [1000] * 19 + [3000]
    result = analyze_price_trends(make_bars(closes, volumes))
    # 50 + 2*2 + 2*1 + 2*0.5 + 5 (SMA) + 5 (거래량 확인)
    assert result.score == pytest.approx(67)
    assert result.label == "UPTREND"
    assert result.details.daily_change == pytest.approx(2.0)
    assert "Strong daily gain of 2.00%" in result.reasons
    assert "Trading on above-average volume" in result.reasons


def test_volume_confirmed_loss(make_bars):
    closes = [100.0] * 19 + [98.0]
    volumes = [1000] * 19 + [3000]
    result = analyze_price_trends(make_bars(closes, volumes))
    # 50 - 4 - 2 - 1 - 5 - 5
    assert result.score == pytest.approx(33)
    assert "Significant daily loss of -2.00%" in result.reasons


def test_missing_latest_volume_defaults_ratio(make_bars):
    bars = [b.model_copy(update={"volume": None}) if i == 19 else b
            for i, b in enumerate(make_bars([100.0] * 20))]
    result = analyze_price_trends(bars)
    assert result.details.volume_ratio == pytest.approx(1.0)


def test_score_clamped(make_bars):
    closes = [10.0] * 19 + [100.0]
    assert analyze_price_trends(make_bars(closes)).score == 100


def test_price_trend_label():
    assert price_trend_label(70) == "STRONG_UPTREND"
    assert price_trend_label(60) == "UPTREND"
    assert price_trend_label(50) == "NEUTRAL"
    assert price_trend_label(40) == "DOWNTREND"
    assert price_trend_label(30) == "STRONG_DOWNTREND"
