"""Dividend ingestion engine for stock tickers"""

__version__ = "1.0.0"
