"""종목 데이터 수집 파이프라인 - 호출별 장애 격리 + 폴백"""
import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger

from stock_advisor.config.settings import Settings, settings
from stock_advisor.config.universe import is_fund_symbol
from stock_advisor.schemas.market import MarketDataBundle
from stock_advisor.schemas.recommendation import Recommendation
from stock_advisor.services.market_data import MarketDataProvider, run_provider_call
from stock_advisor.services.scoring import compose_recommendation, neutral_recommendation


def compose_from_bundle(bundle: MarketDataBundle, config: Settings = settings) -> Recommendation:
    return compose_recommendation(
        bundle.symbol,
        bundle.bars,
        meta=bundle.meta,
        transactions=bundle.insider_transactions,
        indicator_series=bundle.indicator_series,
        config=config,
    )


class FetchPipeline:
    """MarketDataProvider 호출을 조율해 분석용 데이터 묶음을 만든다"""

    def __init__(
        self,
        provider: MarketDataProvider,
        config: Settings = settings,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ):
        self.provider = provider
        self.config = config
        self.batch_size = max(1, batch_size or config.BATCH_SIZE)
        self.batch_delay = config.BATCH_DELAY_SECONDS if batch_delay is None else batch_delay

    async def _guarded(self, symbol: str, label: str, fn: Callable, *args):
        """단일 공급자 호출 실패는 None으로 변환 (다른 호출에 영향 없음)"""
        try:
            return await run_provider_call(fn, *args)
        except Exception as e:
            logger.error(f"{symbol} {label} 조회 실패: {e}")
            return None

    async def fetch_bundle(self, symbol: str) -> MarketDataBundle:
        """가격 / 메타 / 내부자 거래(ETF·지수 제외) / SMA 지표 동시 조회"""
        symbol = symbol.upper()
        calls = {
            "bars": self._guarded(
                symbol, "가격", self.provider.get_price_bars, symbol, self.config.PRICE_HISTORY_DAYS
            ),
            "meta": self._guarded(symbol, "종목 정보", self.provider.get_ticker_meta, symbol),
            "indicator": self._guarded(
                symbol, "SMA 지표", self.provider.get_indicator_series, symbol, "sma", self.config.INDICATOR_WINDOW
            ),
        }
        if not is_fund_symbol(symbol):
            calls["insider"] = self._guarded(
                symbol, "내부자 거래", self.provider.get_insider_transactions, symbol
            )

        results = dict(zip(calls.keys(), await asyncio.gather(*calls.values())))
        return MarketDataBundle(
            symbol=symbol,
            bars=results["bars"],
            meta=results["meta"],
            insider_transactions=results.get("insider"),
            indicator_series=results["indicator"],
        )

    async def fetch_recommendation(self, symbol: str) -> Recommendation:
        """데이터가 전혀 없으면 중립 추천 반환 (예외 전파 없음)"""
        bundle = await self.fetch_bundle(symbol)
        if bundle.is_empty:
            logger.warning(f"{bundle.symbol}: 모든 데이터 조회 실패, 중립 추천 반환")
            return neutral_recommendation(bundle.symbol, config=self.config)
        return compose_from_bundle(bundle, config=self.config)

    async def fetch_in_batches(
        self,
        symbols: list[str],
        fetch_one: Optional[Callable[[str], Awaitable[Recommendation]]] = None,
    ) -> list[Recommendation]:
        """
        BATCH_SIZE개씩 동시 조회, 배치 사이 BATCH_DELAY_SECONDS 대기 (공급자 호출 한도 보호)
        개별 종목 실패는 중립 추천으로 대체
        """
        fetch_one = fetch_one or self.fetch_recommendation
        results: list[Recommendation] = []

        for start in range(0, len(symbols), self.batch_size):
            batch = symbols[start:start + self.batch_size]
            batch_results = await asyncio.gather(*(fetch_one(s) for s in batch), return_exceptions=True)
            for symbol, result in zip(batch, batch_results):
                if isinstance(result, Exception):
                    logger.error(f"{symbol} 배치 조회 오류: {result}")
                    result = neutral_recommendation(symbol, config=self.config)
                results.append(result)

            if start + self.batch_size < len(symbols) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        return results


class FallbackPolicy:
    """
    공급자 → 마지막 정상 캐시 → 중립 추천 순서의 단일 폴백 정책
    시세가 없는 데이터 묶음은 공급자 실패로 간주 (캐시 덮어쓰기 금지)
    """

    def __init__(
        self,
        pipeline: FetchPipeline,
        last_known: Callable[[str], Optional[Recommendation]],
    ):
        self.pipeline = pipeline
        self.last_known = last_known

    async def resolve(self, symbol: str) -> tuple[Recommendation, bool]:
        """(추천, 신규 계산 여부) 반환"""
        symbol = symbol.upper()
        try:
            bundle = await self.pipeline.fetch_bundle(symbol)
        except Exception as e:
            logger.error(f"{symbol} 데이터 수집 파이프라인 오류: {e}")
            bundle = None

        if bundle is not None and bundle.bars:
            return compose_from_bundle(bundle, config=self.pipeline.config), True

        cached = self.last_known(symbol)
        if cached is not None:
            logger.warning(f"{symbol}: 공급자 시세 없음, 마지막 캐시 반환 ({cached.last_updated.isoformat()})")
            return cached, False

        if bundle is not None and not bundle.is_empty:
            # 부분 데이터로 계산하되 캐시에는 저장하지 않음
            logger.warning(f"{symbol}: 시세 없이 부분 데이터로 계산 (캐시 미저장)")
            return compose_from_bundle(bundle, config=self.pipeline.config), False

        logger.warning(f"{symbol}: 공급자 응답 및 캐시 없음, 중립 추천 반환")
        return neutral_recommendation(symbol, config=self.pipeline.config), False
