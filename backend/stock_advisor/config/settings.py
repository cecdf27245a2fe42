from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # 시장 데이터 공급자 ("yfinance" | "polygon")
    DATA_PROVIDER: str = "yfinance"
    POLYGON_API_KEY: str = ""
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    PROVIDER_MAX_WORKERS: int = 8
    PRICE_HISTORY_DAYS: int = 60      # 일봉 조회 기간 (달력일, 약 40거래일)
    INDICATOR_WINDOW: int = 20        # 외부 SMA 지표 기간 (로컬 SMA20 대체)

    # 추천 캐시
    CACHE_TTL_SECONDS: float = 60.0

    # 백그라운드 갱신 스케줄러
    REFRESH_ENABLED: bool = True
    REFRESH_INTERVAL_SECONDS: float = 60.0
    REFRESH_INITIAL_DELAY_SECONDS: float = 0.1
    # 무료 티어 분당 호출 한도 (틱당 1종목만 갱신)
    MAX_CALLS_PER_MINUTE: int = 5
    RATE_LIMIT_WINDOW_SECONDS: float = 60.0

    # 다종목 일괄 조회
    BATCH_SIZE: int = 3
    BATCH_DELAY_SECONDS: float = 1.0

    # 통합 점수 가중치
    TECH_WEIGHT: float = 0.4
    INSIDER_WEIGHT: float = 0.4
    PRICE_WEIGHT: float = 0.2

    # 기술적 점수 추세 가감점
    SHORT_TERM_POINTS: float = 10.0
    INTERMEDIATE_TERM_POINTS: float = 7.0
    LONG_TERM_POINTS: float = 5.0

    # 내부자 거래 분석
    INSIDER_LOOKBACK_DAYS: int = 30
    INSIDER_VOLUME_WEIGHT: float = 0.7   # 거래 건수 가중치 = 1 - 0.7

    CURRENCY: str = "USD"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
