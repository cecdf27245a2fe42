"""시장 데이터 공급자 (yfinance 기본, Polygon.io 선택)

공급자 메서드는 모두 동기 호출이며 fetch 파이프라인이 ThreadPool에서 실행한다.
네트워크/파싱 실패는 ProviderError로 변환해 올린다.
"""
import asyncio
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

import pandas as pd
import requests
import ta
import yfinance as yf
from loguru import logger

from stock_advisor.config.settings import Settings, settings
from stock_advisor.schemas.market import (
    IndicatorSeries,
    IndicatorValue,
    InsiderTransaction,
    PriceBar,
    TickerMeta,
    classify_transaction,
)

SUPPORTED_INDICATORS = ("sma", "ema", "rsi", "macd")

_executor = ThreadPoolExecutor(max_workers=settings.PROVIDER_MAX_WORKERS)


class ProviderError(Exception):
    """공급자 호출 실패 (네트워크 / 타임아웃 / 응답 형식 오류)"""

    def __init__(self, symbol: str, operation: str, message: str):
        self.symbol = symbol
        self.operation = operation
        super().__init__(f"{symbol} {operation} 실패: {message}")


def _check_indicator(kind: str) -> str:
    kind = kind.lower()
    if kind not in SUPPORTED_INDICATORS:
        raise ValueError(f"Unsupported indicator: {kind}")
    return kind


class MarketDataProvider(ABC):
    """시장 데이터 공급자 인터페이스"""

    name = "abstract"

    @abstractmethod
    def get_price_bars(self, symbol: str, days: int) -> list[PriceBar]:
        ...

    @abstractmethod
    def get_ticker_meta(self, symbol: str) -> Optional[TickerMeta]:
        ...

    @abstractmethod
    def get_insider_transactions(self, symbol: str) -> list[InsiderTransaction]:
        ...

    def get_indicator_series(self, symbol: str, kind: str = "sma", window: int = 20) -> Optional[IndicatorSeries]:
        """선택 기능: 지원하지 않는 공급자는 None"""
        return None


class YFinanceProvider(MarketDataProvider):
    """
    시세 / 지표 모두 같은 일봉 이력을 쓰므로 (종목, 기간)별 이력을 짧게 재사용
    동시 요청은 종목별 락으로 한 번만 다운로드
    """

    name = "yfinance"

    # Yahoo 심볼 표기가 다른 종목
    SYMBOL_ALIASES = {"VIX": "^VIX"}

    def __init__(self, history_days: int = settings.PRICE_HISTORY_DAYS, history_ttl: float = 30.0):
        self.history_days = history_days
        self.history_ttl = history_ttl
        self._history_cache: dict[tuple[str, int], tuple[float, pd.DataFrame]] = {}
        self._history_locks: dict[tuple[str, int], threading.Lock] = {}
        self._guard = threading.Lock()

    def _ticker(self, symbol: str) -> yf.Ticker:
        symbol = symbol.upper()
        return yf.Ticker(self.SYMBOL_ALIASES.get(symbol, symbol))

    def _history(self, symbol: str, days: int) -> pd.DataFrame:
        key = (symbol.upper(), days)
        with self._guard:
            lock = self._history_locks.setdefault(key, threading.Lock())
        with lock:
            cached = self._history_cache.get(key)
            if cached is not None and time.monotonic() - cached[0] < self.history_ttl:
                return cached[1].copy()
            df = self._download_history(symbol, days)
            self._history_cache[key] = (time.monotonic(), df)
            return df.copy()

    def _download_history(self, symbol: str, days: int) -> pd.DataFrame:
        try:
            start = (datetime.now() - timedelta(days=days)).strftime("%Y-%m-%d")
            df = self._ticker(symbol).history(start=start, interval="1d")
        except Exception as e:
            raise ProviderError(symbol, "history", str(e)) from e
        if df is None or df.empty:
            return pd.DataFrame()
        df.columns = [c.lower() for c in df.columns]
        df.index = pd.to_datetime(df.index)
        return df

    def get_price_bars(self, symbol: str, days: int) -> list[PriceBar]:
        df = self._history(symbol, days)
        if df.empty:
            logger.warning(f"{symbol}: 가격 데이터 없음")
            return []
        bars = []
        for ts, row in df.iterrows():
            bars.append(PriceBar(
                timestamp=ts.to_pydatetime(),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row["volume"]) if not pd.isna(row["volume"]) else None,
            ))
        return bars

    def get_ticker_meta(self, symbol: str) -> Optional[TickerMeta]:
        try:
            info = self._ticker(symbol).info or {}
        except Exception as e:
            raise ProviderError(symbol, "ticker info", str(e)) from e
        name = info.get("longName") or info.get("shortName")
        if not name:
            return None
        return TickerMeta(
            symbol=symbol.upper(),
            name=name,
            exchange=info.get("fullExchangeName") or info.get("exchange") or "Unknown",
        )

    def get_insider_transactions(self, symbol: str) -> list[InsiderTransaction]:
        try:
            df = self._ticker(symbol).insider_transactions
        except Exception as e:
            raise ProviderError(symbol, "insider transactions", str(e)) from e
        if df is None or df.empty:
            return []

        transactions = []
        for _, row in df.iterrows():
            filed = pd.to_datetime(row.get("Start Date"), errors="coerce")
            if pd.isna(filed):
                continue
            # "Transaction" 컬럼이 비어 있으면 "Text" 설명 문구로 분류
            code = row.get("Transaction") or row.get("Text") or ""
            shares = row.get("Shares")
            transactions.append(InsiderTransaction(
                insider_name=row.get("Insider") or "Unknown",
                role=row.get("Position") or "Insider",
                filing_date=filed.date(),
                share_count=float(shares) if shares is not None and not pd.isna(shares) else 0.0,
                transaction_kind=classify_transaction(str(code)),
                transaction_code=str(code)[:40] or None,
            ))
        return transactions

    def get_indicator_series(self, symbol: str, kind: str = "sma", window: int = 20) -> Optional[IndicatorSeries]:
        """yfinance에는 지표 API가 없으므로 시세와 같은 일봉 이력으로 ta 계산"""
        kind = _check_indicator(kind)
        df = self._history(symbol, self.history_days)
        if df.empty or len(df) < window:
            return None

        close = df["close"]
        if kind == "sma":
            series = ta.trend.SMAIndicator(close=close, window=window).sma_indicator()
        elif kind == "ema":
            series = ta.trend.EMAIndicator(close=close, window=window).ema_indicator()
        elif kind == "rsi":
            series = ta.momentum.RSIIndicator(close=close, window=window).rsi()
        else:
            series = ta.trend.MACD(close=close, window_slow=26, window_fast=12, window_sign=9).macd()

        values = [
            IndicatorValue(timestamp=ts.to_pydatetime(), value=float(v))
            for ts, v in series.dropna().items()
        ]
        return IndicatorSeries(kind=kind, window=window, values=values)


class PolygonProvider(MarketDataProvider):
    name = "polygon"
    BASE_URL = "https://api.polygon.io"

    def __init__(self, api_key: str, timeout: float = 10.0):
        if not api_key:
            raise ValueError("POLYGON_API_KEY가 설정되지 않았습니다.")
        self.api_key = api_key
        self.timeout = timeout
        self._session = requests.Session()

    def _request(self, symbol: str, operation: str, path: str, params: Optional[dict] = None) -> dict:
        query = dict(params or {})
        query["apiKey"] = self.api_key
        try:
            resp = self._session.get(f"{self.BASE_URL}{path}", params=query, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(symbol, operation, str(e)) from e

        if resp.status_code == 429:
            raise ProviderError(symbol, operation, "rate limited (HTTP 429)")
        if resp.status_code == 404:
            return {}
        if resp.status_code != 200:
            raise ProviderError(symbol, operation, f"HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(symbol, operation, "malformed JSON response") from e

    def get_price_bars(self, symbol: str, days: int) -> list[PriceBar]:
        symbol = symbol.upper()
        end = date.today()
        start = end - timedelta(days=days)
        data = self._request(
            symbol,
            "aggregates",
            f"/v2/aggs/ticker/{symbol}/range/1/day/{start.isoformat()}/{end.isoformat()}",
            params={"adjusted": "true", "sort": "asc", "limit": 120},
        )
        try:
            return [
                PriceBar(
                    timestamp=datetime.fromtimestamp(r["t"] / 1000, tz=timezone.utc),
                    open=r.get("o"),
                    high=r.get("h"),
                    low=r.get("l"),
                    close=r.get("c"),
                    volume=r.get("v"),
                )
                for r in data.get("results") or []
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(symbol, "aggregates", f"unexpected bar format: {e}") from e

    def get_ticker_meta(self, symbol: str) -> Optional[TickerMeta]:
        symbol = symbol.upper()
        data = self._request(symbol, "ticker details", f"/v3/reference/tickers/{symbol}")
        details = data.get("results") or {}
        if not details:
            return None
        return TickerMeta(
            symbol=symbol,
            name=details.get("name"),
            exchange=details.get("primary_exchange") or "Unknown",
        )

    def get_insider_transactions(self, symbol: str) -> list[InsiderTransaction]:
        # Polygon REST에는 Form 4 내부자 거래 엔드포인트가 없음
        logger.debug(f"{symbol}: Polygon 공급자는 내부자 거래를 제공하지 않음")
        return []

    def get_indicator_series(self, symbol: str, kind: str = "sma", window: int = 20) -> Optional[IndicatorSeries]:
        symbol = symbol.upper()
        kind = _check_indicator(kind)
        data = self._request(
            symbol,
            f"{kind} indicator",
            f"/v1/indicators/{kind}/{symbol}",
            params={
                "timespan": "day",
                "adjusted": "true",
                "window": window,
                "series_type": "close",
                "order": "desc",
                "limit": 30,
            },
        )
        raw_values = (data.get("results") or {}).get("values") or []
        try:
            values = [
                IndicatorValue(
                    timestamp=datetime.fromtimestamp(v["timestamp"] / 1000, tz=timezone.utc),
                    value=float(v["value"]),
                )
                for v in raw_values
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(symbol, f"{kind} indicator", f"unexpected value format: {e}") from e
        if not values:
            return None
        return IndicatorSeries(kind=kind, window=window, values=values)


def get_provider(config: Settings = settings) -> MarketDataProvider:
    """설정값 DATA_PROVIDER에 맞는 공급자 생성"""
    name = config.DATA_PROVIDER.lower()
    if name == "yfinance":
        return YFinanceProvider(history_days=config.PRICE_HISTORY_DAYS)
    if name == "polygon":
        return PolygonProvider(config.POLYGON_API_KEY, timeout=config.PROVIDER_TIMEOUT_SECONDS)
    raise ValueError(f"알 수 없는 DATA_PROVIDER: {config.DATA_PROVIDER}")


async def run_provider_call(fn: Callable, *args):
    """동기 공급자 호출을 ThreadPool에서 비동기 실행"""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(_executor, fn, *args)
