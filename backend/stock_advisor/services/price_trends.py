"""가격 모멘텀 분석 서비스"""
import pandas as pd
from loguru import logger

from stock_advisor.schemas.recommendation import PriceAnalysis, PriceDetails
from stock_advisor.services.technical_indicators import BarsInput, bars_to_frame, calculate_sma

MIN_PRICE_BARS = 10
WEEK_LOOKBACK = 6
MONTH_LOOKBACK = 21
VOLUME_SURGE_RATIO = 1.2
VOLUME_DRY_RATIO = 0.8


def price_trend_label(score: float) -> str:
    if score >= 70:
        return "STRONG_UPTREND"
    if score >= 60:
        return "UPTREND"
    if score <= 30:
        return "STRONG_DOWNTREND"
    if score <= 40:
        return "DOWNTREND"
    return "NEUTRAL"


def _pct(latest: float, base: float) -> float:
    return (latest - base) / base * 100


def _no_data(reason: str) -> PriceAnalysis:
    return PriceAnalysis(score=50, label="NEUTRAL", reasons=[reason], insufficient_data=True)


def analyze_price_trends(bars: BarsInput) -> PriceAnalysis:
    """
    가격 모멘텀 0-100 점수

    50 + 일간*2 + 주간*1 + 월간*0.5
    SMA5 > SMA20: +5 / 아니면 -5
    거래량 확인 (최근 5봉 평균 대비 1.2배 초과): 상승일 +5, 하락일 -5
    """
    try:
        df = bars_to_frame(bars)
        if len(df) < MIN_PRICE_BARS:
            return _no_data("Insufficient price history")

        closes = df["close"]
        n = len(closes)
        latest_close = float(closes.iloc[-1])
        prev_close = float(closes.iloc[-2])
        week_ago = float(closes.iloc[max(0, n - WEEK_LOOKBACK)])
        month_ago = float(closes.iloc[max(0, n - MONTH_LOOKBACK)])

        daily_change = _pct(latest_close, prev_close)
        weekly_change = _pct(latest_close, week_ago)
        monthly_change = _pct(latest_close, month_ago)

        # 거래량 비율: 최근 5봉(결측 제외) 평균 대비 최신 거래량
        recent_volumes = df["volume"].iloc[-5:].dropna()
        latest_volume = df["volume"].iloc[-1]
        avg_volume = float(recent_volumes.mean()) if len(recent_volumes) else 0.0
        if avg_volume > 0 and pd.notna(latest_volume):
            volume_ratio = float(latest_volume) / avg_volume
        else:
            volume_ratio = 1.0

        sma5 = calculate_sma(closes, 5)
        sma20 = calculate_sma(closes, 20)

        score = 50.0 + daily_change * 2 + weekly_change * 1 + monthly_change * 0.5
        if sma5 is not None and sma20 is not None:
            score += 5 if sma5 > sma20 else -5
        if daily_change > 0 and volume_ratio > VOLUME_SURGE_RATIO:
            score += 5
        elif daily_change < 0 and volume_ratio > VOLUME_SURGE_RATIO:
            score -= 5
        score = min(100.0, max(0.0, score))

        reasons = []
        if daily_change > 1:
            reasons.append(f"Strong daily gain of {daily_change:.2f}%")
        elif daily_change < -1:
            reasons.append(f"Significant daily loss of {daily_change:.2f}%")

        if weekly_change > 5:
            reasons.append(f"Strong weekly gain of {weekly_change:.2f}%")
        elif weekly_change < -5:
            reasons.append(f"Significant weekly loss of {weekly_change:.2f}%")

        if sma5 is not None and sma20 is not None:
            if sma5 > sma20:
                reasons.append("Short-term moving average above long-term (bullish)")
            else:
                reasons.append("Short-term moving average below long-term (bearish)")

        if volume_ratio > VOLUME_SURGE_RATIO:
            reasons.append("Trading on above-average volume")
        elif volume_ratio < VOLUME_DRY_RATIO:
            reasons.append("Trading on below-average volume")

        return PriceAnalysis(
            score=score,
            label=price_trend_label(score),
            reasons=reasons,
            details=PriceDetails(
                daily_change=daily_change,
                weekly_change=weekly_change,
                monthly_change=monthly_change,
                latest_close=latest_close,
                volume_ratio=volume_ratio,
                sma5=sma5,
                sma20=sma20,
            ),
        )
    except Exception as e:
        logger.error(f"가격 추세 분석 실패: {e}")
        return _no_data("Error analyzing price data")
