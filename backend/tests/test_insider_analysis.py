"""
insider_analysis 테스트

- 30일 조회 기간 필터
- 주식수(0.7) / 건수(0.3) 가중 점수
- 분모 0 처리 / OTHER 거래 제외
"""
from datetime import date, timedelta

import pytest

from stock_advisor.schemas.market import InsiderTransaction, TransactionKind, classify_transaction
from stock_advisor.services.insider_analysis import analyze_insider_trading, insider_sentiment

TODAY = date(2024, 6, 30)


def _txn(kind: TransactionKind, shares: float, days_ago: int = 1, name: str = "Jane Doe") -> InsiderTransaction:
    return InsiderTransaction(
        insider_name=name,
        role="Director",
        filing_date=TODAY - timedelta(days=days_ago),
        share_count=shares,
        transaction_kind=kind,
    )


class TestClassifyTransaction:
    @pytest.mark.parametrize("code,expected", [
        ("P", TransactionKind.BUY),
        ("a", TransactionKind.BUY),
        ("S", TransactionKind.SELL),
        ("D", TransactionKind.SELL),
        ("Purchase at price 12.50", TransactionKind.BUY),
        ("Sale at price 190.00", TransactionKind.SELL),
        ("Stock Gift", TransactionKind.OTHER),
        (None, TransactionKind.OTHER),
    ])
    def test_codes(self, code, expected):
        assert classify_transaction(code) == expected

    def test_kind_derived_from_code(self):
        txn = InsiderTransaction.model_validate({"filing_date": "2024-06-01", "transaction_code": "P"})
        assert txn.transaction_kind == TransactionKind.BUY


class TestAnalyzeInsiderTrading:
    def test_no_data(self):
        result = analyze_insider_trading([], today=TODAY)
        assert result.score == 50
        assert result.label == "NEUTRAL"
        assert result.insufficient_data is True
        assert result.reasons == ["No recent insider trading data"]

    def test_only_buys(self):
        result = analyze_insider_trading(
            [_txn(TransactionKind.BUY, 1000), _txn(TransactionKind.BUY, 1000)], today=TODAY
        )
        assert result.score == 100
        assert result.label == "VERY_BULLISH"
        assert result.reasons == [
            "More insider buys (2) than sells (0)",
            "Higher volume of shares bought than sold by insiders",
        ]

    def test_volume_weighted_more_than_count(self):
        transactions = [_txn(TransactionKind.BUY, 9000)] + [_txn(TransactionKind.SELL, 1000) for _ in range(3)]
        result = analyze_insider_trading(transactions, today=TODAY)
        # (0.75 * 0.7 + 0.25 * 0.3) * 100
        assert result.score == 60
        assert result.label == "BULLISH"
        assert "More insider sells (3) than buys (1)" in result.reasons
        assert "Higher volume of shares bought than sold by insiders" in result.reasons

    def test_old_filings_excluded(self):
        result = analyze_insider_trading([_txn(TransactionKind.SELL, 5000, days_ago=45)], today=TODAY)
        assert result.score == 50
        assert result.insufficient_data is False
        assert result.reasons == ["Limited or balanced insider trading activity"]
        assert result.details.sell_count == 0

    def test_other_kind_ignored(self):
        result = analyze_insider_trading([_txn(TransactionKind.OTHER, 5000)], today=TODAY)
        assert result.score == 50
        assert result.details.buy_count == 0

    def test_zero_shares_uses_neutral_volume_ratio(self):
        result = analyze_insider_trading(
            [_txn(TransactionKind.BUY, 0), _txn(TransactionKind.SELL, 0)], today=TODAY
        )
        assert result.score == 50

    def test_dict_input_accepted(self):
        result = analyze_insider_trading(
            [{"filing_date": (TODAY - timedelta(days=2)).isoformat(), "transaction_code": "P", "share_count": 10}],
            today=TODAY,
        )
        assert result.details.buy_count == 1

    def test_recent_transactions_latest_first_and_capped(self):
        transactions = [_txn(TransactionKind.BUY, 100, days_ago=d, name=f"insider-{d}") for d in range(1, 9)]
        original_order = [t.insider_name for t in transactions]
        result = analyze_insider_trading(transactions, today=TODAY)
        recent = result.details.recent_transactions
        assert len(recent) == 5
        assert [r.name for r in recent] == [f"insider-{d}" for d in range(1, 6)]
        assert [t.insider_name for t in transactions] == original_order


def test_insider_sentiment_thresholds():
    assert insider_sentiment(70) == "VERY_BULLISH"
    assert insider_sentiment(60) == "BULLISH"
    assert insider_sentiment(50) == "NEUTRAL"
    assert insider_sentiment(40) == "BEARISH"
    assert insider_sentiment(30) == "VERY_BEARISH"


def test_repeated_analysis_is_identical():
    transactions = [_txn(TransactionKind.BUY, 300, days_ago=4), _txn(TransactionKind.SELL, 100, days_ago=2)]
    first = analyze_insider_trading(transactions, today=TODAY)
    second = analyze_insider_trading(transactions, today=TODAY)
    assert first == second


def test_malformed_transactions_ignored():
    result = analyze_insider_trading([{"bad": 1}, 42, None], today=TODAY)
    assert result.score == 50
    assert result.insufficient_data is True
