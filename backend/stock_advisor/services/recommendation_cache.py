"""
종목별 추천 결과 인메모리 캐시

- TTL 경과 항목은 get_or_compute에서 미스로 처리
- get은 만료 여부와 관계없이 마지막 정상 값을 반환 (업스트림 장애 시 우아한 저하)
- 항목은 프로세스 수명 동안 유지되며 명시적으로 삭제하지 않음
"""
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from loguru import logger

from stock_advisor.config.settings import Settings, settings
from stock_advisor.config.universe import SECTORS, TECH_STOCKS
from stock_advisor.schemas.recommendation import Recommendation
from stock_advisor.services.fetch_pipeline import FallbackPolicy, FetchPipeline

DEFAULT_TOP_SYMBOLS = TECH_STOCKS[:5] + SECTORS[:5]


@dataclass
class CacheEntry:
    recommendation: Recommendation
    computed_at: float


class RecommendationCache:
    def __init__(
        self,
        pipeline: FetchPipeline,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        config: Settings = settings,
    ):
        self.pipeline = pipeline
        self.ttl_seconds = config.CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._policy = FallbackPolicy(pipeline, self.get)
        self._global_refresh_at: Optional[float] = None
        self.last_global_refresh: Optional[datetime] = None

    @staticmethod
    def _key(symbol: str) -> str:
        return symbol.strip().upper()

    def get(self, symbol: str) -> Optional[Recommendation]:
        entry = self._entries.get(self._key(symbol))
        return entry.recommendation if entry else None

    def put(self, symbol: str, recommendation: Recommendation) -> None:
        self._entries[self._key(symbol)] = CacheEntry(recommendation, self._clock())

    def is_fresh(self, symbol: str) -> bool:
        entry = self._entries.get(self._key(symbol))
        return entry is not None and self._clock() - entry.computed_at < self.ttl_seconds

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def global_refresh_stale(self) -> bool:
        """일괄 조회(시장 개요 등)용 캐시 전체 신선도"""
        if self._global_refresh_at is None:
            return True
        return self._clock() - self._global_refresh_at >= self.ttl_seconds

    def _mark_global_refresh(self) -> None:
        self._global_refresh_at = self._clock()
        self.last_global_refresh = datetime.now(timezone.utc)

    async def get_or_compute(self, symbol: str, force_refresh: bool = False) -> Recommendation:
        """캐시 적중(TTL 이내)이면 그대로 반환, 미스/만료/강제 갱신이면 재계산"""
        key = self._key(symbol)
        if not force_refresh and self.is_fresh(key):
            return self._entries[key].recommendation

        recommendation, fresh = await self._policy.resolve(key)
        if fresh:
            self.put(key, recommendation)
            self._mark_global_refresh()
            logger.debug(f"{key} 추천 갱신: {recommendation.score}점 {recommendation.recommendation.value}")
        return recommendation

    async def get_many(self, symbols: Iterable[str], force_refresh: bool = False) -> list[Recommendation]:
        """여러 종목 배치 조회 (배치 크기 / 배치 간 지연은 파이프라인 설정)"""
        unique = list(dict.fromkeys(self._key(s) for s in symbols))

        async def fetch_one(symbol: str) -> Recommendation:
            return await self.get_or_compute(symbol, force_refresh=force_refresh)

        return await self.pipeline.fetch_in_batches(unique, fetch_one)

    async def get_top_recommendations(
        self,
        limit: int = 5,
        filter_predicate: Optional[Callable[[Recommendation], bool]] = None,
        symbols: Optional[Iterable[str]] = None,
    ) -> list[Recommendation]:
        """
        점수 내림차순 상위 추천
        BUY / STRONG_BUY 종목 우선, 없으면 전체 중 고득점 순
        """
        candidates = await self.get_many(symbols if symbols is not None else DEFAULT_TOP_SYMBOLS)
        if filter_predicate is not None:
            candidates = [r for r in candidates if filter_predicate(r)]

        ranked = sorted(candidates, key=lambda r: r.score, reverse=True)
        buys = [r for r in ranked if r.is_buy]
        return (buys or ranked)[:limit]
