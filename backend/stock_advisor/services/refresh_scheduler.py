"""
백그라운드 갱신 스케줄러 - 분당 호출 예산 + 라운드로빈 단일 종목 갱신

틱마다 1종목만 갱신하므로 수동 갱신을 반복해도 전체 호출 수가
MAX_CALLS_PER_MINUTE를 넘지 않으며, 유니버스 크기만큼의 틱이면 전 종목을 한 바퀴 돈다.
"""
import asyncio
import inspect
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from stock_advisor.config.settings import Settings, settings
from stock_advisor.config.universe import refresh_universe
from stock_advisor.schemas.refresh import (
    RefreshError,
    RefreshRateLimited,
    RefreshSuccess,
    SchedulerStatus,
    TickOutcome,
)
from stock_advisor.services.market_hours import format_est
from stock_advisor.services.recommendation_cache import RecommendationCache

TickCallback = Callable[[TickOutcome], Any]


@dataclass
class SchedulerState:
    cycle_index: int = 0
    calls_in_window: int = 0
    window_started_at: float = 0.0


class RefreshScheduler:
    """
    상태: Idle(타이머 없음) / Running(타이머 등록)
    start()는 기존 타이머를 취소하고 새로 등록 (마지막 호출 우선)
    틱 본문은 락으로 직렬화되어 두 틱이 같은 카운터를 동시에 변경하지 않음
    """

    def __init__(
        self,
        cache: RecommendationCache,
        symbols: Optional[Iterable[str]] = None,
        max_calls_per_minute: Optional[int] = None,
        window_seconds: Optional[float] = None,
        initial_delay: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        config: Settings = settings,
    ):
        self.cache = cache
        self.config = config
        self.symbols = [s.upper() for s in symbols] if symbols is not None else refresh_universe()
        self.max_calls_per_minute = (
            config.MAX_CALLS_PER_MINUTE if max_calls_per_minute is None else max_calls_per_minute
        )
        self.window_seconds = config.RATE_LIMIT_WINDOW_SECONDS if window_seconds is None else window_seconds
        self.initial_delay = config.REFRESH_INITIAL_DELAY_SECONDS if initial_delay is None else initial_delay
        self._clock = clock

        self.state = SchedulerState(window_started_at=clock())
        self._tick_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._ticks: set[asyncio.Future] = set()
        self._on_tick: Optional[TickCallback] = None
        self._interval: Optional[float] = None
        self._generation = 0

    # ── 수명 주기 ──────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, on_tick: Optional[TickCallback] = None, interval_seconds: Optional[float] = None) -> None:
        """기존 타이머 취소 후 즉시(짧은 지연) 첫 틱 + 주기 틱 등록"""
        self.stop()
        interval = self.config.REFRESH_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self._on_tick = on_tick
        self._interval = interval
        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._generation, interval), name="refresh-scheduler"
        )
        logger.info(f"[{format_est()}] 갱신 스케줄러 시작 ({interval:g}초 주기, {len(self.symbols)}개 종목)")

    def stop(self) -> None:
        """타이머 취소. 진행 중인 틱의 조회는 완료되어 캐시에 반영됨"""
        if self._task is None:
            return
        self._generation += 1
        self._task.cancel()
        self._task = None
        self._interval = None
        logger.info(f"[{format_est()}] 갱신 스케줄러 중지")

    async def _run(self, generation: int, interval: float) -> None:
        await asyncio.sleep(self.initial_delay)
        while generation == self._generation:
            inflight = asyncio.ensure_future(self.tick())
            self._ticks.add(inflight)
            inflight.add_done_callback(self._ticks.discard)
            # 루프가 취소되어도 진행 중 틱은 끝까지 실행
            outcome = await asyncio.shield(inflight)
            if generation != self._generation:
                break
            await self._notify(outcome)
            await asyncio.sleep(interval)

    async def _notify(self, outcome: TickOutcome) -> None:
        if self._on_tick is None:
            return
        try:
            result = self._on_tick(outcome)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"갱신 콜백 오류: {e}")

    # ── 호출 예산 ──────────────────────────────────────────────

    def _reset_window_if_elapsed(self, now: float) -> None:
        if now - self.state.window_started_at >= self.window_seconds:
            self.state.calls_in_window = 0
            self.state.window_started_at = now

    def _window_reset_at(self, now: float) -> datetime:
        remaining = max(0.0, self.state.window_started_at + self.window_seconds - now)
        return datetime.now(timezone.utc) + timedelta(seconds=remaining)

    def can_make_call(self) -> bool:
        now = self._clock()
        if now - self.state.window_started_at >= self.window_seconds:
            return True
        return self.state.calls_in_window < self.max_calls_per_minute

    # ── 틱 ─────────────────────────────────────────────────────

    async def tick(self) -> TickOutcome:
        """예산 확인 → 라운드로빈 다음 종목 선택 → 조회·분석·캐시 갱신"""
        async with self._tick_lock:
            now = self._clock()
            self._reset_window_if_elapsed(now)

            if self.state.calls_in_window >= self.max_calls_per_minute:
                retry_at = self._window_reset_at(now)
                logger.warning(
                    f"[{format_est()}] 호출 한도 도달 ({self.state.calls_in_window}/{self.max_calls_per_minute}), "
                    f"{format_est(retry_at)}까지 갱신 건너뜀"
                )
                return RefreshRateLimited(retry_at=retry_at, calls_in_window=self.state.calls_in_window)

            if not self.symbols:
                return RefreshError(detail="갱신 대상 종목이 없습니다")

            self.state.calls_in_window += 1
            symbol = self.symbols[self.state.cycle_index % len(self.symbols)]
            self.state.cycle_index = (self.state.cycle_index + 1) % len(self.symbols)

            try:
                recommendation = await self.cache.get_or_compute(symbol, force_refresh=True)
            except Exception as e:
                logger.error(f"[{format_est()}] {symbol} 갱신 실패: {e}")
                return RefreshError(detail=str(e), symbol=symbol)

            logger.info(
                f"[{format_est()}] {symbol} 갱신 완료 ({recommendation.score}점 "
                f"{recommendation.recommendation.value}, 호출 {self.state.calls_in_window}/{self.max_calls_per_minute})"
            )
            return RefreshSuccess(symbols=[symbol])

    async def force_refresh(self) -> TickOutcome:
        """타이머를 기다리지 않고 즉시 1틱 실행. 한도 초과 시 상태 변경 없이 rate_limited 반환"""
        outcome = await self.tick()
        if not isinstance(outcome, RefreshRateLimited):
            await self._notify(outcome)
        return outcome

    def get_status(self) -> SchedulerStatus:
        now = self._clock()
        window_expired = now - self.state.window_started_at >= self.window_seconds
        calls = 0 if window_expired else self.state.calls_in_window
        return SchedulerStatus(
            active=self.is_active,
            calls_in_window=calls,
            max_calls_per_minute=self.max_calls_per_minute,
            window_reset_at=datetime.now(timezone.utc) if window_expired else self._window_reset_at(now),
            can_make_call=self.can_make_call(),
            cycle_index=self.state.cycle_index,
            universe_size=len(self.symbols),
            interval_seconds=self._interval,
        )
