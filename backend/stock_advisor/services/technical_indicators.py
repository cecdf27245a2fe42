"""기술적 분석 서비스 - 추세 구간 + 이동평균 가감점 방식의 0-100 점수"""
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd
import ta
from loguru import logger

from stock_advisor.config.settings import Settings, settings
from stock_advisor.schemas.market import IndicatorSeries, PriceBar
from stock_advisor.schemas.recommendation import (
    IndicatorSnapshot,
    TechnicalAnalysis,
    TechnicalDetails,
    TrendWindow,
)

BarsInput = Union[Iterable[PriceBar], Iterable[dict], pd.DataFrame, None]

MIN_TECHNICAL_BARS = 5
TREND_WINDOWS = (5, 14, 30)


def bars_to_frame(bars: BarsInput) -> pd.DataFrame:
    """
    PriceBar 목록 → DataFrame (시간순 유지)
    종가가 없거나 0 이하인 행, 형식이 맞지 않는 항목은 제외
    """
    columns = ["timestamp", "open", "high", "low", "close", "volume"]
    if bars is None:
        return pd.DataFrame(columns=columns)

    if isinstance(bars, pd.DataFrame):
        df = bars.copy()
    else:
        rows = []
        for bar in bars:
            if isinstance(bar, PriceBar):
                rows.append(bar.model_dump())
            elif isinstance(bar, dict):
                rows.append(bar)
        df = pd.DataFrame(rows)

    if df.empty or "close" not in df.columns:
        return pd.DataFrame(columns=columns)

    df["close"] = pd.to_numeric(df["close"], errors="coerce")
    if "volume" in df.columns:
        df["volume"] = pd.to_numeric(df["volume"], errors="coerce")
    else:
        df["volume"] = np.nan
    df = df[df["close"].notna() & (df["close"] > 0)]
    return df.reset_index(drop=True)


def calculate_trend(close: pd.Series) -> dict:
    """구간 첫 종가 대비 마지막 종가 변화율과 방향 (±1% 초과 시 up/down)"""
    if close is None or len(close) < 2:
        return {"direction": "neutral", "percent_change": 0.0}
    first = float(close.iloc[0])
    last = float(close.iloc[-1])
    percent_change = (last - first) / first * 100
    direction = "neutral"
    if percent_change > 1:
        direction = "up"
    elif percent_change < -1:
        direction = "down"
    return {"direction": direction, "percent_change": percent_change}


def calculate_sma(close: pd.Series, period: int) -> Optional[float]:
    """최근 period개 종가의 단순이동평균 (데이터 부족 시 None)"""
    if close is None or len(close) < period:
        return None
    return float(close.iloc[-period:].mean())


def normalize_trend_score(percent_change: float) -> float:
    """-10%~+10% → 0~100"""
    return min(100.0, max(0.0, 50.0 + percent_change * 5))


def calculate_rsi(close: pd.Series, window: int = 14) -> Optional[float]:
    if len(close) <= window:
        return None
    try:
        rsi = ta.momentum.RSIIndicator(close=close, window=window).rsi()
        return float(rsi.iloc[-1]) if not pd.isna(rsi.iloc[-1]) else None
    except Exception as e:
        logger.error(f"RSI 계산 실패: {e}")
        return None


def calculate_macd(close: pd.Series) -> dict:
    if len(close) < 35:
        return {"macd": None, "signal": None, "hist": None}
    try:
        macd_ind = ta.trend.MACD(close=close, window_slow=26, window_fast=12, window_sign=9)
        return {
            "macd": float(macd_ind.macd().iloc[-1]),
            "signal": float(macd_ind.macd_signal().iloc[-1]),
            "hist": float(macd_ind.macd_diff().iloc[-1]),
        }
    except Exception as e:
        logger.error(f"MACD 계산 실패: {e}")
        return {"macd": None, "signal": None, "hist": None}


def calculate_indicator_snapshot(close: pd.Series) -> IndicatorSnapshot:
    """참고용 RSI / MACD (점수에는 반영하지 않음)"""
    macd_data = calculate_macd(close)
    return IndicatorSnapshot(
        rsi_14=calculate_rsi(close),
        macd=macd_data["macd"],
        macd_signal=macd_data["signal"],
        macd_hist=macd_data["hist"],
    )


def technical_label(score: float) -> str:
    if score >= 70:
        return "STRONG_BUY"
    if score >= 60:
        return "BUY"
    if score <= 30:
        return "SELL"
    if score <= 40:
        return "WEAK_HOLD"
    return "HOLD"


def _trend_window(close: pd.Series, window: int) -> TrendWindow:
    trend = calculate_trend(close.iloc[-window:])
    pct = trend["percent_change"]
    return TrendWindow(
        direction=trend["direction"],
        percent_change=pct,
        score=normalize_trend_score(pct),
        description=f"{'+' if pct > 0 else ''}{pct:.2f}% over {window} days",
    )


def _insufficient(reason: str) -> TechnicalAnalysis:
    return TechnicalAnalysis(score=0, label="NEUTRAL", reasons=[reason], insufficient_data=True)


def _signed(flag: Optional[bool], points: float) -> float:
    """비교 불가(None)는 0점"""
    if flag is None:
        return 0.0
    return points if flag else -points


def _above(left: Optional[float], right: Optional[float]) -> Optional[bool]:
    if left is None or right is None:
        return None
    return left > right


def analyze_technical(
    bars: BarsInput,
    indicator_series: Optional[IndicatorSeries] = None,
    config: Settings = settings,
) -> TechnicalAnalysis:
    """
    기술적 분석 0-100 점수 (중립 50점에서 가감)

    - 단기(5봉) / 중기(14봉) / 장기(30봉) 추세: ±10 / ±7 / ±5
    - SMA5 > SMA20: ±5, SMA5 > SMA10: ±3
    - 현재가 > SMA5: ±5, 현재가 > SMA20: ±5
    외부 지표(SMA 20)가 주어지면 로컬 SMA20 대신 사용
    """
    try:
        df = bars_to_frame(bars)
        if len(df) < MIN_TECHNICAL_BARS:
            return _insufficient("Insufficient price history")

        close = df["close"]
        short_w, inter_w, long_w = (_trend_window(close, w) for w in TREND_WINDOWS)

        latest_close = float(close.iloc[-1])
        sma5 = calculate_sma(close, 5)
        sma10 = calculate_sma(close, 10)
        sma20 = calculate_sma(close, 20)
        sma20_source = "local"
        if indicator_series is not None and indicator_series.kind == "sma" and indicator_series.window == 20:
            external = indicator_series.latest()
            if external is not None:
                sma20 = float(external)
                sma20_source = "indicator"

        sma5_above_20 = _above(sma5, sma20)
        sma5_above_10 = _above(sma5, sma10)
        price_above_5 = _above(latest_close, sma5)
        price_above_20 = _above(latest_close, sma20)

        direction_points = {
            "up": 1.0,
            "down": -1.0,
            "neutral": 0.0,
        }
        score = 50.0
        score += direction_points[short_w.direction] * config.SHORT_TERM_POINTS
        score += direction_points[inter_w.direction] * config.INTERMEDIATE_TERM_POINTS
        score += direction_points[long_w.direction] * config.LONG_TERM_POINTS
        score += _signed(sma5_above_20, 5)
        score += _signed(sma5_above_10, 3)
        score += _signed(price_above_5, 5)
        score += _signed(price_above_20, 5)
        score = min(100.0, max(0.0, score))

        reasons = []
        for label, window in (("short-term", short_w), ("intermediate-term", inter_w), ("long-term", long_w)):
            if window.direction == "up":
                reasons.append(f"Positive {label} price trend")
            elif window.direction == "down":
                reasons.append(f"Negative {label} price trend")

        if sma5_above_20 is True:
            reasons.append("Short-term moving average above long-term (bullish)")
        elif sma5_above_20 is False:
            reasons.append("Short-term moving average below long-term (bearish)")

        if price_above_5 is True and price_above_20 is True:
            reasons.append("Price above key moving averages")
        elif price_above_5 is False and price_above_20 is False:
            reasons.append("Price below key moving averages")

        return TechnicalAnalysis(
            score=score,
            label=technical_label(score),
            reasons=reasons,
            details=TechnicalDetails(
                short_term=short_w,
                intermediate_term=inter_w,
                long_term=long_w,
                latest_close=latest_close,
                sma5=sma5,
                sma10=sma10,
                sma20=sma20,
                sma20_source=sma20_source,
                indicators=calculate_indicator_snapshot(close),
            ),
        )
    except Exception as e:
        logger.error(f"기술적 분석 실패: {e}")
        return _insufficient("Error analyzing technical data")
