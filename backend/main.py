"""FastAPI 애플리케이션 진입점 - 주식 추천 어드바이저"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from stock_advisor.agents.orchestrator import get_orchestrator
from stock_advisor.api.v1 import recommendations, refresh, sse, stocks
from stock_advisor.config.settings import settings
from stock_advisor.services.market_hours import get_market_status


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 시작/종료 이벤트 처리"""
    logger.info(f"주식 추천 어드바이저 시작 (공급자: {settings.DATA_PROVIDER})")
    market = get_market_status()
    logger.info(f"시장 상태: {market['message']} ({market['current_time_est']})")

    orchestrator = get_orchestrator()
    if settings.REFRESH_ENABLED:
        orchestrator.start_refresh()
    yield
    orchestrator.stop_refresh()
    logger.info("주식 추천 어드바이저 종료")


app = FastAPI(
    title="주식 추천 어드바이저",
    description="""
## 기술주 / 섹터 ETF 매수·매도 추천 API

### 주요 기능
- **상위 추천**: 기술주 + 섹터 ETF 통합 점수 상위 종목
- **종목 상세**: 기술적 / 내부자 거래 / 가격 추세 분석 상세
- **시장 개요**: 주요 지수 ETF + 섹터 ETF 요약
- **백그라운드 갱신**: 분당 호출 한도 내 라운드로빈 1종목씩 갱신
- **실시간 알림**: SSE 기반 갱신 결과 수신

### 점수 계산
- 기술적 분석 (40%): 단기 / 중기 / 장기 추세, SMA5 / SMA10 / SMA20
- 내부자 거래 (40%): 최근 30일 매수·매도 거래량 및 건수 비율
- 가격 추세 (20%): 일간 / 주간 / 월간 변동률, 거래량 비율
- STRONG_BUY 75점 이상, BUY 65점 이상, SELL 45점 이하, STRONG_SELL 35점 이하
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# CORS 설정 (개인 도구 - 모든 origin 허용)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API 라우터 등록
app.include_router(recommendations.router, prefix="/api/v1", tags=["추천"])
app.include_router(stocks.router, prefix="/api/v1", tags=["종목"])
app.include_router(refresh.router, prefix="/api/v1", tags=["갱신"])
app.include_router(sse.router, prefix="/api/v1", tags=["실시간"])


@app.get("/", summary="루트")
async def root():
    return {
        "message": "주식 추천 어드바이저 API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health", summary="헬스체크")
async def health():
    """서비스 상태, 시장 정보, 갱신 스케줄러 상태 반환"""
    return {
        "status": "ok",
        "market": get_market_status(),
        "refresh": get_orchestrator().refresh_status().model_dump(mode="json"),
    }
