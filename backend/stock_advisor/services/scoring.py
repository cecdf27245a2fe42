"""통합 추천 점수 계산 서비스"""
import math
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from loguru import logger

from stock_advisor.config.settings import Settings, settings
from stock_advisor.config.universe import readable_name
from stock_advisor.schemas.market import IndicatorSeries, InsiderTransaction, TickerMeta
from stock_advisor.schemas.recommendation import (
    AnalysisResult,
    InsiderAnalysis,
    PriceAnalysis,
    Recommendation,
    RecommendationAnalysis,
    RecommendationLabel,
    RecommendationMetadata,
    TechnicalAnalysis,
)
from stock_advisor.services.insider_analysis import analyze_insider_trading
from stock_advisor.services.price_trends import analyze_price_trends
from stock_advisor.services.technical_indicators import BarsInput, analyze_technical, bars_to_frame

KEY_REASONS_LIMIT = 5
INSUFFICIENT_DATA_REASON = "Insufficient data for strong recommendation"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def composite_score(
    technical_score: float,
    insider_score: float,
    price_score: float,
    config: Settings = settings,
) -> int:
    """
    통합 점수 = TECH_WEIGHT * 기술 + INSIDER_WEIGHT * 내부자 + PRICE_WEIGHT * 가격
    기본값: 0.4 / 0.4 / 0.2, 반올림 후 0-100 범위
    """
    combined = (
        config.TECH_WEIGHT * technical_score
        + config.INSIDER_WEIGHT * insider_score
        + config.PRICE_WEIGHT * price_score
    )
    return min(100, max(0, round_half_up(combined)))


def recommendation_label(score: float) -> RecommendationLabel:
    if score >= 75:
        return RecommendationLabel.STRONG_BUY
    if score >= 65:
        return RecommendationLabel.BUY
    if score <= 35:
        return RecommendationLabel.STRONG_SELL
    if score <= 45:
        return RecommendationLabel.SELL
    return RecommendationLabel.HOLD


def _is_noise(reason: str) -> bool:
    lowered = reason.lower()
    return "error" in lowered or "insufficient" in lowered


def select_key_reasons(*analyses: AnalysisResult) -> list[str]:
    """기술 → 내부자 → 가격 순으로 근거를 모아 데이터 부족/오류 문구 제외 후 5개"""
    reasons = [
        reason
        for analysis in analyses
        if not analysis.insufficient_data
        for reason in analysis.reasons
        if not _is_noise(reason)
    ]
    return reasons[:KEY_REASONS_LIMIT] or [INSUFFICIENT_DATA_REASON]


def neutral_recommendation(
    symbol: str,
    reason: str = "Insufficient data available for a strong recommendation",
    label: RecommendationLabel = RecommendationLabel.HOLD,
    meta: Optional[TickerMeta] = None,
    price: Optional[float] = None,
    analysis: Optional[RecommendationAnalysis] = None,
    config: Settings = settings,
) -> Recommendation:
    """데이터가 없거나 계산이 실패했을 때 반환하는 중립 추천"""
    symbol = symbol.upper()
    return Recommendation(
        symbol=symbol,
        name=(meta.name if meta and meta.name else readable_name(symbol)),
        score=50,
        recommendation=label,
        key_reasons=[reason],
        analysis=analysis or RecommendationAnalysis(),
        metadata=RecommendationMetadata(
            price=price,
            currency=config.CURRENCY,
            exchange=meta.exchange if meta else "Unknown",
        ),
    )


def compose_recommendation(
    symbol: str,
    bars: BarsInput,
    meta: Optional[TickerMeta] = None,
    transactions: Optional[Iterable[InsiderTransaction]] = None,
    indicator_series: Optional[IndicatorSeries] = None,
    today: Optional[date] = None,
    config: Settings = settings,
) -> Recommendation:
    """
    기술적(40%) + 내부자(40%) + 가격(20%) 통합 추천 생성
    세 분석 모두 데이터 부족이면 중립(50점, HOLD) 추천
    내부 예외 발생 시 NEUTRAL 추천을 반환하며 예외를 전파하지 않음
    """
    try:
        symbol = symbol.upper()
        technical: TechnicalAnalysis = analyze_technical(bars, indicator_series, config=config)
        insider: InsiderAnalysis = analyze_insider_trading(transactions, today=today, config=config)
        price: PriceAnalysis = analyze_price_trends(bars)
        analysis = RecommendationAnalysis(technical=technical, insider=insider, price=price)

        df = bars_to_frame(bars)
        last_price = float(df["close"].iloc[-1]) if len(df) else None

        if technical.insufficient_data and insider.insufficient_data and price.insufficient_data:
            return neutral_recommendation(
                symbol,
                reason=INSUFFICIENT_DATA_REASON,
                meta=meta,
                price=last_price,
                analysis=analysis,
                config=config,
            )

        score = composite_score(technical.score, insider.score, price.score, config=config)
        return Recommendation(
            symbol=symbol,
            name=(meta.name if meta and meta.name else readable_name(symbol)),
            score=score,
            recommendation=recommendation_label(score),
            key_reasons=select_key_reasons(technical, insider, price),
            analysis=analysis,
            metadata=RecommendationMetadata(
                price=last_price,
                currency=config.CURRENCY,
                exchange=meta.exchange if meta else "Unknown",
            ),
            last_updated=datetime.now(timezone.utc),
        )
    except Exception as e:
        logger.error(f"{symbol} 추천 생성 실패: {e}")
        return neutral_recommendation(
            str(symbol),
            reason="Unable to generate recommendation",
            label=RecommendationLabel.NEUTRAL,
        )
