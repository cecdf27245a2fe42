"""오케스트레이터 - 공급자 / 파이프라인 / 캐시 / 갱신 스케줄러 중앙 조율"""
import time
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from loguru import logger

from stock_advisor.config.settings import Settings, settings
from stock_advisor.config.universe import SECTORS, STOCK_INDICES, TECH_STOCKS
from stock_advisor.schemas.recommendation import (
    BulkRefreshResponse,
    MarketOverviewResponse,
    Recommendation,
)
from stock_advisor.schemas.refresh import (
    RefreshError,
    RefreshRateLimited,
    RefreshSuccess,
    SchedulerStatus,
    TickOutcome,
)
from stock_advisor.services.fetch_pipeline import FetchPipeline
from stock_advisor.services.market_data import MarketDataProvider, get_provider
from stock_advisor.services.market_hours import format_est, get_market_status
from stock_advisor.services.recommendation_cache import RecommendationCache
from stock_advisor.services.refresh_events import RefreshEventBroadcaster
from stock_advisor.services.refresh_scheduler import RefreshScheduler


class AdvisorOrchestrator:
    """
    구성 요소:
    - MarketDataProvider: 시세 / 종목 정보 / 내부자 거래 / 지표 조회
    - FetchPipeline: 호출별 장애 격리 + 배치 조회
    - RecommendationCache: TTL 캐시 + 마지막 정상 값 폴백
    - RefreshScheduler: 분당 호출 예산 내 라운드로빈 백그라운드 갱신
    - RefreshEventBroadcaster: 틱 결과 SSE 전파
    """

    def __init__(
        self,
        provider: Optional[MarketDataProvider] = None,
        config: Settings = settings,
        symbols: Optional[list[str]] = None,
    ):
        self.config = config
        self.provider = provider or get_provider(config)
        self.pipeline = FetchPipeline(self.provider, config=config)
        self.cache = RecommendationCache(self.pipeline, config=config)
        self.scheduler = RefreshScheduler(self.cache, symbols=symbols, config=config)
        self.events = RefreshEventBroadcaster()

    # ── 조회 ───────────────────────────────────────────────────

    async def get_top_recommendations(self, limit: int = 5, tech_only: bool = False) -> list[Recommendation]:
        """tech_only: 기술주 상위 10개 대상, 기본: 기술주 5 + 섹터 ETF 5"""
        symbols = TECH_STOCKS[:10] if tech_only else TECH_STOCKS[:5] + SECTORS[:5]
        market_status = get_market_status()
        logger.info(f"추천 요청 (limit={limit}, tech_only={tech_only}). 시장 상태: {market_status['message']}")
        return await self.cache.get_top_recommendations(limit=limit, symbols=symbols)

    async def get_stock(self, symbol: str, refresh: bool = False) -> Recommendation:
        return await self.cache.get_or_compute(symbol, force_refresh=refresh)

    async def get_market_overview(self) -> MarketOverviewResponse:
        """지수 ETF 3개 + 섹터 ETF 5개 요약"""
        indices = await self.cache.get_many(STOCK_INDICES[:3])
        sectors = await self.cache.get_many(SECTORS[:5])
        return MarketOverviewResponse(
            indices=indices,
            sectors=sectors,
            last_global_refresh=self.cache.last_global_refresh,
            stale=self.cache.global_refresh_stale,
            last_updated=datetime.now(timezone.utc),
        )

    # ── 갱신 ───────────────────────────────────────────────────

    async def refresh_all(self) -> BulkRefreshResponse:
        """갱신 대상 전체 강제 재계산 (배치 단위, 공급자 한도 보호용 배치 간 지연)"""
        symbols = self.scheduler.symbols
        started = time.perf_counter()
        logger.info(f"[{format_est()}] 전체 갱신 시작: {len(symbols)}개 종목")
        results = await self.cache.get_many(symbols, force_refresh=True)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(f"[{format_est()}] 전체 갱신 완료: {len(results)}개 종목, {elapsed_ms}ms")
        return BulkRefreshResponse(
            success=True,
            message=f"{len(results)}개 종목 갱신 완료",
            count=len(results),
            refreshed_at=datetime.now(timezone.utc),
            time_taken_ms=elapsed_ms,
        )

    async def force_refresh(self) -> TickOutcome:
        outcome = await self.scheduler.force_refresh()
        # 스케줄러 미가동 시 콜백이 없으므로 직접 전파
        if not self.scheduler.is_active and not isinstance(outcome, RefreshRateLimited):
            self._handle_tick(outcome)
        return outcome

    def refresh_status(self) -> SchedulerStatus:
        return self.scheduler.get_status()

    def start_refresh(self, interval_seconds: Optional[float] = None) -> None:
        self.scheduler.start(on_tick=self._handle_tick, interval_seconds=interval_seconds)

    def stop_refresh(self) -> None:
        self.scheduler.stop()

    def _handle_tick(self, outcome: TickOutcome) -> None:
        match outcome:
            case RefreshSuccess(symbols=symbols):
                logger.debug(f"갱신 이벤트 전파: {', '.join(symbols)}")
            case RefreshRateLimited(retry_at=retry_at):
                logger.debug(f"호출 한도 이벤트 전파 (재시도 {format_est(retry_at)})")
            case RefreshError(detail=detail, symbol=symbol):
                logger.debug(f"갱신 오류 이벤트 전파: {symbol or '-'} {detail}")
        self.events.publish(outcome)


@lru_cache
def get_orchestrator() -> AdvisorOrchestrator:
    return AdvisorOrchestrator()
