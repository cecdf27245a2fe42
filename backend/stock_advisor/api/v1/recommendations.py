"""매수 추천 API 라우터"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from stock_advisor.agents.orchestrator import AdvisorOrchestrator, get_orchestrator
from stock_advisor.schemas.recommendation import RecommendationListResponse

router = APIRouter()


@router.get("/recommendations", response_model=RecommendationListResponse, summary="상위 매수 추천")
async def get_recommendations(
    limit: int = Query(5, ge=1, le=20),
    tech_only: bool = False,
    orchestrator: AdvisorOrchestrator = Depends(get_orchestrator),
):
    """
    기술적 분석(40%) + 내부자 거래(40%) + 가격 추세(20%) 통합 점수 상위 종목.

    BUY / STRONG_BUY 종목을 우선 반환하며, 없으면 전체 중 고득점 순.
    캐시 TTL 이내 결과는 공급자 호출 없이 반환됩니다.
    """
    recommendations = await orchestrator.get_top_recommendations(limit=limit, tech_only=tech_only)
    return RecommendationListResponse(
        success=True,
        count=len(recommendations),
        recommendations=recommendations,
        timestamp=datetime.now(timezone.utc),
    )
