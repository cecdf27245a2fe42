"""
공통 pytest 픽스처

- FakeProvider: 네트워크 없이 MarketDataProvider 동작 재현 (호출 기록 / 장애 주입)
- FakeClock: TTL / 호출 예산 창 테스트용 수동 시계
- make_bars: 종가 목록 → PriceBar 목록
"""
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from stock_advisor.config.settings import Settings
from stock_advisor.schemas.market import InsiderTransaction, PriceBar, TickerMeta
from stock_advisor.services.market_data import MarketDataProvider, ProviderError


def build_bars(closes, volumes=None, start: Optional[datetime] = None) -> list[PriceBar]:
    start = start or datetime(2024, 1, 2, tzinfo=timezone.utc)
    volumes = volumes or [1_000_000] * len(closes)
    return [
        PriceBar(
            timestamp=start + timedelta(days=i),
            open=close,
            high=close,
            low=close,
            close=close,
            volume=volume,
        )
        for i, (close, volume) in enumerate(zip(closes, volumes))
    ]


def rising_closes(n: int = 40, start: float = 100.0, step: float = 1.0) -> list[float]:
    return [start + i * step for i in range(n)]


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(MarketDataProvider):
    """
    bars: 종목별 시세 (없으면 default_bars)
    failures: 작업명("bars" / "meta" / "insider" / "indicator") → 발생시킬 예외
    """

    def __init__(self, bars=None, default_bars=None, insider=None, failures=None):
        self.bars = bars or {}
        self.default_bars = default_bars if default_bars is not None else build_bars(rising_closes())
        self.insider = insider or {}
        self.failures = failures or {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def _record(self, operation: str, symbol: str) -> None:
        with self._lock:
            self.calls.append((operation, symbol))
        error = self.failures.get(operation)
        if error is not None:
            raise error

    def fail_all(self, message: str = "upstream down") -> None:
        for operation in ("bars", "meta", "insider", "indicator"):
            self.failures[operation] = ProviderError("*", operation, message)

    def calls_for(self, operation: str) -> list[str]:
        with self._lock:
            return [symbol for op, symbol in self.calls if op == operation]

    def get_price_bars(self, symbol: str, days: int) -> list[PriceBar]:
        self._record("bars", symbol)
        return self.bars.get(symbol, self.default_bars)

    def get_ticker_meta(self, symbol: str) -> Optional[TickerMeta]:
        self._record("meta", symbol)
        return TickerMeta(symbol=symbol, name=f"{symbol} Corp", exchange="NASDAQ")

    def get_insider_transactions(self, symbol: str) -> list[InsiderTransaction]:
        self._record("insider", symbol)
        return self.insider.get(symbol, [])

    def get_indicator_series(self, symbol: str, kind: str = "sma", window: int = 20):
        self._record("indicator", symbol)
        return None


@pytest.fixture
def make_bars():
    return build_bars


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def test_settings() -> Settings:
    """배치 지연 없는 테스트용 설정"""
    return Settings(BATCH_DELAY_SECONDS=0, REFRESH_ENABLED=False, REFRESH_INITIAL_DELAY_SECONDS=0)
