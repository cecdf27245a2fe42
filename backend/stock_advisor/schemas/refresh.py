"""갱신 스케줄러 틱 결과 / 상태 스키마"""
from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshSuccess(BaseModel):
    status: Literal["success"] = "success"
    symbols: list[str]
    at: datetime = Field(default_factory=_utcnow)


class RefreshRateLimited(BaseModel):
    status: Literal["rate_limited"] = "rate_limited"
    retry_at: datetime
    calls_in_window: int
    at: datetime = Field(default_factory=_utcnow)


class RefreshError(BaseModel):
    status: Literal["error"] = "error"
    detail: str
    symbol: Optional[str] = None
    at: datetime = Field(default_factory=_utcnow)


TickOutcome = Annotated[
    Union[RefreshSuccess, RefreshRateLimited, RefreshError],
    Field(discriminator="status"),
]


class SchedulerStatus(BaseModel):
    active: bool
    calls_in_window: int
    max_calls_per_minute: int
    window_reset_at: datetime
    can_make_call: bool
    cycle_index: int
    universe_size: int
    interval_seconds: Optional[float] = None
