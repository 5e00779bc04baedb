"""
Data Ingestion - Collectors Package.

Each collector produces one context snapshot for the aggregator.

Collectors:
- market: Broker candles summarized per instrument
- brave_news: News search results from Brave
- historical: Historical notes (placeholder)
"""

from data_ingestion.collectors.base import BaseCollector
from data_ingestion.collectors.market import MarketContextCollector
from data_ingestion.collectors.brave_news import BraveNewsCollector
from data_ingestion.collectors.historical import HistoricalNotesCollector


__all__ = [
    "BaseCollector",
    "MarketContextCollector",
    "BraveNewsCollector",
    "HistoricalNotesCollector",
]
