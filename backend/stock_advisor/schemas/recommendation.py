"""추천 관련 Pydantic 스키마"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from stock_advisor.schemas.market import TransactionKind


class RecommendationLabel(str, Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"
    NEUTRAL = "NEUTRAL"


BUY_LABELS = (RecommendationLabel.BUY, RecommendationLabel.STRONG_BUY)


class TrendWindow(BaseModel):
    direction: str            # "up" | "down" | "neutral"
    percent_change: float
    score: float              # -10%~+10% → 0~100 정규화
    description: str


class IndicatorSnapshot(BaseModel):
    rsi_14: Optional[float] = None
    macd: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_hist: Optional[float] = None


class TechnicalDetails(BaseModel):
    short_term: TrendWindow
    intermediate_term: TrendWindow
    long_term: TrendWindow
    latest_close: float
    sma5: Optional[float] = None
    sma10: Optional[float] = None
    sma20: Optional[float] = None
    sma20_source: str = "local"   # "local" | "indicator"
    indicators: IndicatorSnapshot = Field(default_factory=IndicatorSnapshot)


class InsiderTransactionView(BaseModel):
    name: str
    relation: str
    date: str
    shares: float
    type: TransactionKind


class InsiderDetails(BaseModel):
    buy_count: int = 0
    sell_count: int = 0
    buy_shares: float = 0
    sell_shares: float = 0
    recent_transactions: list[InsiderTransactionView] = Field(default_factory=list)


class PriceDetails(BaseModel):
    daily_change: float
    weekly_change: float
    monthly_change: float
    latest_close: float
    volume_ratio: float
    sma5: Optional[float] = None
    sma20: Optional[float] = None


class AnalysisResult(BaseModel):
    score: float
    label: str
    reasons: list[str] = Field(default_factory=list)
    insufficient_data: bool = False


class TechnicalAnalysis(AnalysisResult):
    details: Optional[TechnicalDetails] = None


class InsiderAnalysis(AnalysisResult):
    details: Optional[InsiderDetails] = None


class PriceAnalysis(AnalysisResult):
    details: Optional[PriceDetails] = None


class RecommendationAnalysis(BaseModel):
    technical: Optional[TechnicalAnalysis] = None
    insider: Optional[InsiderAnalysis] = None
    price: Optional[PriceAnalysis] = None


class RecommendationMetadata(BaseModel):
    price: Optional[float] = None
    currency: str = "USD"
    exchange: str = "Unknown"


class Recommendation(BaseModel):
    symbol: str
    name: str
    score: int
    recommendation: RecommendationLabel
    key_reasons: list[str]
    analysis: RecommendationAnalysis = Field(default_factory=RecommendationAnalysis)
    metadata: RecommendationMetadata = Field(default_factory=RecommendationMetadata)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_buy(self) -> bool:
        return self.recommendation in BUY_LABELS


class RecommendationListResponse(BaseModel):
    success: bool
    count: int
    recommendations: list[Recommendation]
    timestamp: datetime


class StockDetailResponse(BaseModel):
    success: bool
    data: Recommendation
    timestamp: datetime


class MarketOverviewResponse(BaseModel):
    indices: list[Recommendation]
    sectors: list[Recommendation]
    last_global_refresh: Optional[datetime] = None
    stale: bool
    last_updated: datetime


class BulkRefreshResponse(BaseModel):
    success: bool
    message: str
    count: int
    refreshed_at: datetime
    time_taken_ms: int
