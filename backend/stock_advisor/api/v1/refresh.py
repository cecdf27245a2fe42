"""수동 갱신 / 갱신 스케줄러 상태 API 라우터"""
from typing import Union

from fastapi import APIRouter, Depends

from stock_advisor.agents.orchestrator import AdvisorOrchestrator, get_orchestrator
from stock_advisor.schemas.recommendation import BulkRefreshResponse
from stock_advisor.schemas.refresh import RefreshError, RefreshRateLimited, RefreshSuccess, SchedulerStatus

router = APIRouter()


@router.post("/refresh", response_model=Union[RefreshSuccess, RefreshRateLimited, RefreshError], summary="즉시 1종목 갱신")
async def force_refresh(orchestrator: AdvisorOrchestrator = Depends(get_orchestrator)):
    """
    타이머를 기다리지 않고 라운드로빈 다음 종목을 갱신합니다.
    분당 호출 한도 초과 시 status=rate_limited 와 retry_at 반환.
    """
    return await orchestrator.force_refresh()


@router.post("/refresh/all", response_model=BulkRefreshResponse, summary="전체 종목 일괄 갱신")
async def refresh_all(orchestrator: AdvisorOrchestrator = Depends(get_orchestrator)):
    """유니버스 전체 강제 재계산 (배치 간 지연으로 수 초 이상 소요)"""
    return await orchestrator.refresh_all()


@router.get("/refresh/status", response_model=SchedulerStatus, summary="갱신 스케줄러 상태")
async def refresh_status(orchestrator: AdvisorOrchestrator = Depends(get_orchestrator)):
    return orchestrator.refresh_status()
