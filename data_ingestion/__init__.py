"""
Data Ingestion Package.

This package gathers the market, news and historical context the
recommendation engine drafts from. No business logic - only data
acquisition.

Sub-packages:
- collectors: One collector per context source
"""

from data_ingestion.collectors import (
    BaseCollector,
    BraveNewsCollector,
    HistoricalNotesCollector,
    MarketContextCollector,
)
from data_ingestion.types import (
    CandleSummary,
    IngestionSource,
    NewsItem,
)


__all__ = [
    # Collectors
    "BaseCollector",
    "BraveNewsCollector",
    "HistoricalNotesCollector",
    "MarketContextCollector",
    # Types
    "CandleSummary",
    "IngestionSource",
    "NewsItem",
]
