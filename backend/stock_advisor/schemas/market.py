"""시장 데이터 공급자 입력 Pydantic 스키마"""
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PriceBar(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    volume: Optional[float] = None


class TickerMeta(BaseModel):
    symbol: str
    name: Optional[str] = None
    exchange: str = "Unknown"


class TransactionKind(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    OTHER = "OTHER"


# SEC Form 4 거래 코드 / 공급자 설명 문구 → 거래 종류
_BUY_CODES = {"P", "A"}
_SELL_CODES = {"S", "D"}
_BUY_WORDS = ("purchase", "acquisition", "buy")
_SELL_WORDS = ("sale", "disposition", "sell")


def classify_transaction(code: Optional[str]) -> TransactionKind:
    """거래 코드(P/A/S/D) 또는 설명 문구를 BUY/SELL/OTHER로 분류"""
    if not code:
        return TransactionKind.OTHER
    text = code.strip()
    if text.upper() in _BUY_CODES:
        return TransactionKind.BUY
    if text.upper() in _SELL_CODES:
        return TransactionKind.SELL
    lowered = text.lower()
    if any(word in lowered for word in _BUY_WORDS):
        return TransactionKind.BUY
    if any(word in lowered for word in _SELL_WORDS):
        return TransactionKind.SELL
    return TransactionKind.OTHER


class InsiderTransaction(BaseModel):
    insider_name: str = "Unknown"
    role: str = "Insider"
    filing_date: date
    share_count: float = 0
    transaction_kind: TransactionKind = TransactionKind.OTHER
    transaction_code: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_kind(cls, data):
        if isinstance(data, dict) and data.get("transaction_kind") is None and data.get("transaction_code"):
            data = {**data, "transaction_kind": classify_transaction(data["transaction_code"])}
        return data


class IndicatorValue(BaseModel):
    timestamp: datetime
    value: float


class IndicatorSeries(BaseModel):
    kind: str
    window: int
    values: list[IndicatorValue] = Field(default_factory=list)

    def latest(self) -> Optional[float]:
        """가장 최근 시점의 지표 값 (공급자 정렬 순서와 무관)"""
        if not self.values:
            return None
        return max(self.values, key=lambda v: v.timestamp).value


class MarketDataBundle(BaseModel):
    """단일 종목 조회 결과 (일부 필드만 채워질 수 있음)"""
    symbol: str
    bars: Optional[list[PriceBar]] = None
    meta: Optional[TickerMeta] = None
    insider_transactions: Optional[list[InsiderTransaction]] = None
    indicator_series: Optional[IndicatorSeries] = None

    @property
    def is_empty(self) -> bool:
        # 빈 내부자 거래 목록은 "거래 없음"과 "공급자 미지원"을 구분할 수 없어 데이터로 보지 않음
        return (
            not self.bars
            and self.meta is None
            and not self.insider_transactions
            and self.indicator_series is None
        )
