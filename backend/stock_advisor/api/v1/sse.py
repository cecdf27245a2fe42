"""Server-Sent Events (SSE) 실시간 스트림 API"""
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from stock_advisor.agents.orchestrator import AdvisorOrchestrator, get_orchestrator

router = APIRouter()


@router.get("/events", summary="SSE 실시간 이벤트 스트림")
async def sse_endpoint(orchestrator: AdvisorOrchestrator = Depends(get_orchestrator)):
    """
    Server-Sent Events 스트림.
    백그라운드 갱신 틱 결과(success / rate_limited / error) 실시간 수신.
    """
    return StreamingResponse(
        orchestrator.events.stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            "Access-Control-Allow-Origin": "*",
        },
    )
