"""
refresh_scheduler 테스트

- 라운드로빈 순서 / 틱당 1종목
- 분당 호출 한도 (초과 시 순번 유지, 창 경과 후 재개)
- 갱신 실패 → error 결과
- start / stop / 재시작 (마지막 호출 우선), 조회 중 stop 시 조회 완료 + 알림 없음
- 수동 갱신
"""
import asyncio

import pytest

from stock_advisor.schemas.refresh import RefreshError, RefreshRateLimited, RefreshSuccess
from stock_advisor.services.refresh_scheduler import RefreshScheduler
from stock_advisor.services.scoring import neutral_recommendation


class RecordingCache:
    """get_or_compute 호출만 기록하는 캐시 대역"""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.refreshed: list[str] = []

    async def get_or_compute(self, symbol: str, force_refresh: bool = False):
        assert force_refresh is True
        self.refreshed.append(symbol)
        if symbol in self.failing:
            raise RuntimeError(f"{symbol} upstream failure")
        return neutral_recommendation(symbol)


class SlowCache:
    """조회 도중 멈춰 있다가 release 이후 완료되는 캐시 대역"""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.completed: list[str] = []

    async def get_or_compute(self, symbol: str, force_refresh: bool = False):
        self.started.set()
        await self.release.wait()
        self.completed.append(symbol)
        return neutral_recommendation(symbol)


def _scheduler(cache, clock, symbols=("AAA", "BBB", "CCC"), max_calls=100, initial_delay=0.0, config=None):
    kwargs = {"config": config} if config is not None else {}
    return RefreshScheduler(
        cache,
        symbols=list(symbols),
        max_calls_per_minute=max_calls,
        window_seconds=60.0,
        initial_delay=initial_delay,
        clock=clock,
        **kwargs,
    )


class TestTick:
    @pytest.mark.asyncio
    async def test_round_robin_covers_universe(self, fake_clock):
        cache = RecordingCache()
        scheduler = _scheduler(cache, fake_clock)

        outcomes = [await scheduler.tick() for _ in range(7)]

        assert cache.refreshed == ["AAA", "BBB", "CCC", "AAA", "BBB", "CCC", "AAA"]
        assert all(isinstance(o, RefreshSuccess) for o in outcomes)
        assert outcomes[1].symbols == ["BBB"]
        assert scheduler.state.cycle_index == 1

    @pytest.mark.asyncio
    async def test_rate_limited_does_not_advance(self, fake_clock):
        cache = RecordingCache()
        scheduler = _scheduler(cache, fake_clock, max_calls=2)

        await scheduler.tick()
        await scheduler.tick()
        limited = await scheduler.tick()

        assert isinstance(limited, RefreshRateLimited)
        assert limited.status == "rate_limited"
        assert limited.calls_in_window == 2
        assert limited.retry_at > limited.at
        assert scheduler.state.cycle_index == 2
        assert cache.refreshed == ["AAA", "BBB"]
        assert not scheduler.can_make_call()

        fake_clock.advance(60)
        resumed = await scheduler.tick()

        assert isinstance(resumed, RefreshSuccess)
        assert resumed.symbols == ["CCC"]
        assert scheduler.state.calls_in_window == 1

    @pytest.mark.asyncio
    async def test_failure_reports_error_and_advances(self, fake_clock):
        cache = RecordingCache(failing={"BBB"})
        scheduler = _scheduler(cache, fake_clock)

        await scheduler.tick()
        failed = await scheduler.tick()
        after = await scheduler.tick()

        assert isinstance(failed, RefreshError)
        assert failed.symbol == "BBB"
        assert "upstream failure" in failed.detail
        assert isinstance(after, RefreshSuccess)
        assert after.symbols == ["CCC"]

    @pytest.mark.asyncio
    async def test_empty_universe(self, fake_clock):
        scheduler = _scheduler(RecordingCache(), fake_clock, symbols=())

        outcome = await scheduler.tick()

        assert isinstance(outcome, RefreshError)
        assert scheduler.state.calls_in_window == 0

    @pytest.mark.asyncio
    async def test_concurrent_ticks_are_serialized(self, fake_clock):
        cache = RecordingCache()
        scheduler = _scheduler(cache, fake_clock)

        await asyncio.gather(*(scheduler.tick() for _ in range(3)))

        assert sorted(cache.refreshed) == ["AAA", "BBB", "CCC"]
        assert scheduler.state.calls_in_window == 3


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_ticks_and_stop_halts(self, fake_clock):
        cache = RecordingCache()
        scheduler = _scheduler(cache, fake_clock)
        outcomes = []

        scheduler.start(on_tick=outcomes.append, interval_seconds=0.01)
        assert scheduler.is_active
        await asyncio.sleep(0.1)
        scheduler.stop()
        count = len(outcomes)
        await asyncio.sleep(0.05)

        assert count >= 2
        assert len(outcomes) == count
        assert not scheduler.is_active

    @pytest.mark.asyncio
    async def test_restart_replaces_timer(self, fake_clock):
        cache = RecordingCache()
        scheduler = _scheduler(cache, fake_clock, initial_delay=0.02)
        first, second = [], []

        scheduler.start(on_tick=first.append, interval_seconds=10)
        scheduler.start(on_tick=second.append, interval_seconds=10)
        await asyncio.sleep(0.1)
        scheduler.stop()

        assert first == []
        assert len(second) == 1
        assert cache.refreshed == ["AAA"]

    @pytest.mark.asyncio
    async def test_async_callback_errors_are_contained(self, fake_clock):
        scheduler = _scheduler(RecordingCache(), fake_clock)
        calls = []

        async def broken(outcome):
            calls.append(outcome)
            raise ValueError("subscriber failed")

        scheduler.start(on_tick=broken, interval_seconds=0.01)
        await asyncio.sleep(0.08)
        scheduler.stop()

        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_stop_mid_fetch_lets_fetch_finish_without_notifying(self, fake_clock):
        cache = SlowCache()
        scheduler = _scheduler(cache, fake_clock)
        notified = []

        scheduler.start(on_tick=notified.append, interval_seconds=10)
        await asyncio.wait_for(cache.started.wait(), timeout=1)
        scheduler.stop()
        cache.release.set()
        await asyncio.sleep(0.05)

        assert cache.completed == ["AAA"]
        assert notified == []
        assert not scheduler.is_active
        assert scheduler.state.calls_in_window == 1

    def test_stop_when_idle_is_noop(self, fake_clock):
        scheduler = _scheduler(RecordingCache(), fake_clock)
        scheduler.stop()
        assert not scheduler.is_active


class TestForceRefresh:
    @pytest.mark.asyncio
    async def test_notifies_running_observer(self, fake_clock):
        cache = RecordingCache()
        scheduler = _scheduler(cache, fake_clock, initial_delay=10)
        outcomes = []
        scheduler.start(on_tick=outcomes.append, interval_seconds=10)

        outcome = await scheduler.force_refresh()
        scheduler.stop()

        assert isinstance(outcome, RefreshSuccess)
        assert outcomes == [outcome]

    @pytest.mark.asyncio
    async def test_rate_limited_without_side_effects(self, fake_clock):
        cache = RecordingCache()
        scheduler = _scheduler(cache, fake_clock, max_calls=1)
        await scheduler.force_refresh()

        outcome = await scheduler.force_refresh()

        assert isinstance(outcome, RefreshRateLimited)
        assert scheduler.state.cycle_index == 1
        assert cache.refreshed == ["AAA"]


@pytest.mark.asyncio
async def test_status_reports_budget(fake_clock):
    scheduler = _scheduler(RecordingCache(), fake_clock, max_calls=5)
    await scheduler.tick()

    status = scheduler.get_status()

    assert status.active is False
    assert status.calls_in_window == 1
    assert status.max_calls_per_minute == 5
    assert status.can_make_call is True
    assert status.cycle_index == 1
    assert status.universe_size == 3

    fake_clock.advance(61)
    assert scheduler.get_status().calls_in_window == 0
