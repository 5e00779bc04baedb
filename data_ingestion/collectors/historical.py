"""
Data Ingestion - Historical Context Collector.

Placeholder snapshot: no historical analysis source is wired yet,
so the drafter sees {"notes": "pending"}.
"""

from typing import Any, Dict, List

from data_ingestion.collectors.base import BaseCollector
from data_ingestion.types import IngestionSource


class HistoricalNotesCollector(BaseCollector):
    """Static historical notes."""

    def __init__(self, notes: str = "pending") -> None:
        super().__init__(IngestionSource.HISTORICAL)
        self._notes = notes

    def collect(self, instruments: List[str]) -> Dict[str, Any]:
        return {"notes": self._notes, "instruments": list(instruments)}
