"""NYSE 거래 시간 / 휴장일 확인 및 EST 시각 표기"""
from datetime import date, datetime, time, timedelta
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

EASTERN_TZ = ZoneInfo("America/New_York")
MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 0)


def get_market_time() -> datetime:
    """현재 미국 동부 시간"""
    return datetime.now(EASTERN_TZ)


def format_est(moment: Optional[datetime] = None) -> str:
    """로그용 동부 시간 문자열 (예: 2:05:31 PM EST)"""
    moment = (moment or datetime.now(EASTERN_TZ)).astimezone(EASTERN_TZ)
    return moment.strftime("%I:%M:%S %p EST").lstrip("0")


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def _last_weekday(year: int, month: int, weekday: int) -> date:
    next_month = date(year + month // 12, month % 12 + 1, 1)
    last = next_month - timedelta(days=1)
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def _easter(year: int) -> date:
    """그레고리력 부활절 (Anonymous Gregorian algorithm)"""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def _observed(day: date) -> date:
    # 토요일 → 금요일, 일요일 → 월요일 대체
    if day.weekday() == 5:
        return day - timedelta(days=1)
    if day.weekday() == 6:
        return day + timedelta(days=1)
    return day


@lru_cache(maxsize=8)
def nyse_holidays(year: int) -> frozenset:
    """해당 연도 NYSE 휴장일"""
    fixed = [date(year, 1, 1), date(year, 6, 19), date(year, 7, 4), date(year, 12, 25)]
    floating = [
        _nth_weekday(year, 1, 0, 3),            # MLK Day
        _nth_weekday(year, 2, 0, 3),            # 대통령의 날
        _easter(year) - timedelta(days=2),      # 성금요일
        _last_weekday(year, 5, 0),              # 메모리얼 데이
        _nth_weekday(year, 9, 0, 1),            # 노동절
        _nth_weekday(year, 11, 3, 4),           # 추수감사절
    ]
    return frozenset([_observed(d) for d in fixed] + floating)


def is_trading_day(day: date) -> bool:
    return day.weekday() < 5 and day not in nyse_holidays(day.year)


def is_market_open(now: Optional[datetime] = None) -> bool:
    """NYSE 장 운영 중 여부 (9:30 AM - 4:00 PM EST)"""
    now = now or get_market_time()
    return is_trading_day(now.date()) and MARKET_OPEN <= now.time() <= MARKET_CLOSE


def get_market_status(now: Optional[datetime] = None) -> dict:
    """시장 상태 상세 정보"""
    now = now or get_market_time()
    trading_day = is_trading_day(now.date())
    is_open = is_market_open(now)

    if is_open:
        message = "장 운영 중"
    elif trading_day and now.time() < MARKET_OPEN:
        message = "장 시작 전"
    elif trading_day:
        message = "장 마감"
    else:
        message = "휴장일"

    return {
        "is_open": is_open,
        "is_trading_day": trading_day,
        "current_time_est": now.strftime("%Y-%m-%d %H:%M:%S EST"),
        "market_open": "09:30 EST",
        "market_close": "16:00 EST",
        "message": message,
    }
