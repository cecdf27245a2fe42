"""종목 상세 / 시장 개요 API 라우터"""
import re
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from stock_advisor.agents.orchestrator import AdvisorOrchestrator, get_orchestrator
from stock_advisor.config.universe import SECTORS, STOCK_INDICES, TECH_STOCKS, refresh_universe
from stock_advisor.schemas.recommendation import MarketOverviewResponse, StockDetailResponse
from stock_advisor.services.market_hours import get_market_status as nyse_market_status

router = APIRouter()

SYMBOL_PATTERN = re.compile(r"^\^?[A-Z][A-Z0-9.\-]{0,9}$")


def _validate_symbol(symbol: str) -> str:
    symbol = symbol.strip().upper()
    if not SYMBOL_PATTERN.match(symbol):
        raise HTTPException(status_code=400, detail=f"잘못된 종목 코드: {symbol}")
    return symbol


@router.get("/stocks/{symbol}", response_model=StockDetailResponse, summary="종목 추천 상세")
async def get_stock(
    symbol: str,
    refresh: bool = False,
    orchestrator: AdvisorOrchestrator = Depends(get_orchestrator),
):
    """
    단일 종목 통합 추천 (기술적 / 내부자 / 가격 추세 상세 포함).
    refresh=true 이면 캐시를 무시하고 재계산합니다.
    """
    symbol = _validate_symbol(symbol)
    recommendation = await orchestrator.get_stock(symbol, refresh=refresh)
    return StockDetailResponse(success=True, data=recommendation, timestamp=datetime.now(timezone.utc))


@router.get("/market-overview", response_model=MarketOverviewResponse, summary="시장 개요")
async def get_market_overview(orchestrator: AdvisorOrchestrator = Depends(get_orchestrator)):
    """주요 지수 ETF 3개 + 섹터 ETF 5개 추천 요약"""
    return await orchestrator.get_market_overview()


@router.get("/tickers", summary="추적 종목 목록")
async def get_tickers():
    universe = refresh_universe()
    return {
        "total": len(universe),
        "tech_stocks": TECH_STOCKS,
        "indices": STOCK_INDICES,
        "sectors": SECTORS,
    }


@router.get("/market-status", summary="시장 상태 조회")
async def get_market_status():
    """NYSE 현재 장 운영 상태 반환"""
    return nyse_market_status()
