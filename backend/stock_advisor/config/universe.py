"""추적 종목 유니버스 (기술주 / 섹터 ETF / 지수 ETF)"""

# 미국 주요 기술주
TECH_STOCKS = [
    "AAPL",   # Apple
    "MSFT",   # Microsoft
    "GOOGL",  # Alphabet
    "AMZN",   # Amazon
    "META",   # Meta Platforms
    "NVDA",   # NVIDIA
    "TSLA",   # Tesla
    "INTC",   # Intel
    "AMD",    # Advanced Micro Devices
    "CRM",    # Salesforce
    "ADBE",   # Adobe
    "ORCL",   # Oracle
    "CSCO",   # Cisco
    "IBM",    # IBM
    "PYPL",   # PayPal
    "NFLX",   # Netflix
    "QCOM",   # Qualcomm
    "TXN",    # Texas Instruments
    "MU",     # Micron Technology
    "AMAT",   # Applied Materials
]

# 시장 지수 ETF / 벤치마크
STOCK_INDICES = [
    "SPY",   # S&P 500 ETF
    "DIA",   # Dow Jones Industrial Average ETF
    "QQQ",   # NASDAQ-100 ETF
    "IWM",   # Russell 2000 ETF
    "VIX",   # Volatility Index
]

# 섹터 ETF
SECTORS = [
    "XLK",   # Technology
    "XLF",   # Financial
    "XLV",   # Healthcare
    "XLE",   # Energy
    "XLY",   # Consumer Discretionary
    "XLP",   # Consumer Staples
    "XLI",   # Industrial
    "XLB",   # Materials
    "XLU",   # Utilities
    "XLRE",  # Real Estate
]

# 내부자 거래 공시가 구조적으로 없는 종목
FUND_SYMBOLS = frozenset(STOCK_INDICES + SECTORS)

READABLE_NAMES = {
    "SPY": "S&P 500 ETF",
    "QQQ": "NASDAQ-100 ETF",
    "DIA": "Dow Jones Industrial Average ETF",
    "IWM": "Russell 2000 ETF",
    "VIX": "CBOE Volatility Index",
    "XLK": "Technology Sector ETF",
    "XLF": "Financial Sector ETF",
    "XLV": "Healthcare Sector ETF",
    "XLE": "Energy Sector ETF",
    "XLY": "Consumer Discretionary Sector ETF",
    "XLP": "Consumer Staples Sector ETF",
    "XLI": "Industrial Sector ETF",
    "XLB": "Materials Sector ETF",
    "XLU": "Utilities Sector ETF",
    "XLRE": "Real Estate Sector ETF",
    "AAPL": "Apple Inc.",
    "MSFT": "Microsoft Corporation",
    "GOOGL": "Alphabet Inc.",
    "AMZN": "Amazon.com Inc.",
    "META": "Meta Platforms Inc.",
    "NVDA": "NVIDIA Corporation",
    "TSLA": "Tesla Inc.",
    "INTC": "Intel Corporation",
    "AMD": "Advanced Micro Devices Inc.",
    "CRM": "Salesforce Inc.",
    "ADBE": "Adobe Inc.",
    "ORCL": "Oracle Corporation",
    "CSCO": "Cisco Systems Inc.",
    "IBM": "International Business Machines",
    "PYPL": "PayPal Holdings Inc.",
    "NFLX": "Netflix Inc.",
    "QCOM": "Qualcomm Inc.",
    "TXN": "Texas Instruments Inc.",
    "MU": "Micron Technology Inc.",
    "AMAT": "Applied Materials Inc.",
}


def refresh_universe() -> list[str]:
    """라운드로빈 갱신 순서: 지수 → 기술주 → 섹터 (중복 제거, 순서 유지)"""
    return list(dict.fromkeys(STOCK_INDICES + TECH_STOCKS + SECTORS))


def is_fund_symbol(symbol: str) -> bool:
    return symbol.upper() in FUND_SYMBOLS


def readable_name(symbol: str) -> str:
    """티커 메타데이터가 없을 때 사용할 표시 이름"""
    symbol = symbol.upper()
    return READABLE_NAMES.get(symbol, f"{symbol} Inc.")
