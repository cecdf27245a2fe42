"""내부자 거래 심리 분석 서비스"""
from datetime import date, timedelta
from typing import Iterable, Optional

from loguru import logger

from stock_advisor.config.settings import Settings, settings
from stock_advisor.schemas.market import InsiderTransaction, TransactionKind
from stock_advisor.schemas.recommendation import (
    InsiderAnalysis,
    InsiderDetails,
    InsiderTransactionView,
)

RECENT_TRANSACTIONS_LIMIT = 5


def insider_sentiment(score: float) -> str:
    if score >= 70:
        return "VERY_BULLISH"
    if score >= 60:
        return "BULLISH"
    if score <= 30:
        return "VERY_BEARISH"
    if score <= 40:
        return "BEARISH"
    return "NEUTRAL"


def _no_data(reason: str = "No recent insider trading data") -> InsiderAnalysis:
    return InsiderAnalysis(score=50, label="NEUTRAL", reasons=[reason], insufficient_data=True)


def _coerce(item) -> Optional[InsiderTransaction]:
    if isinstance(item, InsiderTransaction):
        return item
    if isinstance(item, dict):
        try:
            return InsiderTransaction.model_validate(item)
        except ValueError as e:
            logger.warning(f"내부자 거래 형식 오류, 제외: {e}")
    return None


def analyze_insider_trading(
    transactions: Optional[Iterable[InsiderTransaction]],
    today: Optional[date] = None,
    config: Settings = settings,
) -> InsiderAnalysis:
    """
    최근 30일 내부자 거래 기반 0-100 심리 점수

    score = round((주식수 매수비율 * 0.7 + 건수 매수비율 * 0.3) * 100)
    주식수 비중을 더 크게 반영 (건수보다 확신도를 잘 나타냄)
    매수/매도 거래가 없으면 중립 50점
    """
    try:
        items = [t for t in (_coerce(i) for i in (transactions or [])) if t is not None]
        if not items:
            return _no_data()

        today = today or date.today()
        cutoff = today - timedelta(days=config.INSIDER_LOOKBACK_DAYS)
        recent = [t for t in items if t.filing_date >= cutoff]

        buy_count = sell_count = 0
        buy_shares = sell_shares = 0.0
        for t in recent:
            shares = t.share_count or 0
            if t.transaction_kind == TransactionKind.BUY:
                buy_count += 1
                buy_shares += shares
            elif t.transaction_kind == TransactionKind.SELL:
                sell_count += 1
                sell_shares += shares

        score = 50
        if buy_count or sell_count:
            transaction_ratio = buy_count / (buy_count + sell_count)
            total_shares = buy_shares + sell_shares
            volume_ratio = buy_shares / total_shares if total_shares > 0 else 0.5
            volume_weight = config.INSIDER_VOLUME_WEIGHT
            score = round((volume_ratio * volume_weight + transaction_ratio * (1 - volume_weight)) * 100)

        reasons = []
        if buy_count > sell_count:
            reasons.append(f"More insider buys ({buy_count}) than sells ({sell_count})")
        elif sell_count > buy_count:
            reasons.append(f"More insider sells ({sell_count}) than buys ({buy_count})")

        if buy_shares > sell_shares:
            reasons.append("Higher volume of shares bought than sold by insiders")
        elif sell_shares > buy_shares:
            reasons.append("Higher volume of shares sold than bought by insiders")

        if not reasons:
            reasons.append("Limited or balanced insider trading activity")

        # 최근 공시 순 상위 5건 (입력 목록은 변경하지 않음)
        latest = sorted(recent, key=lambda t: t.filing_date, reverse=True)[:RECENT_TRANSACTIONS_LIMIT]
        return InsiderAnalysis(
            score=score,
            label=insider_sentiment(score),
            reasons=reasons,
            details=InsiderDetails(
                buy_count=buy_count,
                sell_count=sell_count,
                buy_shares=buy_shares,
                sell_shares=sell_shares,
                recent_transactions=[
                    InsiderTransactionView(
                        name=t.insider_name,
                        relation=t.role,
                        date=t.filing_date.isoformat(),
                        shares=t.share_count,
                        type=t.transaction_kind,
                    )
                    for t in latest
                ],
            ),
        )
    except Exception as e:
        logger.error(f"내부자 거래 분석 실패: {e}")
        return _no_data("Error analyzing insider trading data")
