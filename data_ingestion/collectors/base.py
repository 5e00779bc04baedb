"""
Data Ingestion - Base Collector.

============================================================
PURPOSE
============================================================
Abstract base class for context collectors.

A collector turns an instrument list into one JSON-compatible
snapshot. Collectors are plain callables so the aggregator can
take them as fetchers:

    aggregator = ContextAggregator(market, news, historical)

============================================================
DESIGN PRINCIPLES
============================================================
- No business logic - collection only
- No retries; errors surface as the source's CollaboratorError
- Every call logged with its duration

============================================================
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from data_ingestion.types import IngestionSource


class BaseCollector(ABC):
    """
    Abstract base class for context collectors.

    ============================================================
    LIFECYCLE
    ============================================================
    1. Initialize with config and collaborators
    2. Call the collector (or fetch()) with instruments
    3. Receive the snapshot dict

    ============================================================
    """

    def __init__(self, source: IngestionSource) -> None:
        self._source = source
        self._logger = logging.getLogger(f"collector.{source.value}")

    @property
    def source_name(self) -> str:
        return self._source.value

    # =========================================================
    # ABSTRACT METHODS - Must be implemented by subclasses
    # =========================================================

    @abstractmethod
    def collect(self, instruments: List[str]) -> Dict[str, Any]:
        """
        Build the snapshot for instruments.

        Raises:
            CollaboratorError subclass on source failure
        """
        pass

    # =========================================================
    # COLLECTION WORKFLOW
    # =========================================================

    def fetch(self, instruments: List[str]) -> Dict[str, Any]:
        """Run collect() with timing and logging."""
        started = time.monotonic()
        self._logger.info(f"Collecting {self.source_name} for instruments={instruments}")
        try:
            snapshot = self.collect(instruments)
        except Exception:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            self._logger.warning(f"{self.source_name} collection failed after {elapsed_ms}ms")
            raise

        elapsed_ms = int((time.monotonic() - started) * 1000)
        self._logger.info(f"{self.source_name} collected in {elapsed_ms}ms")
        return snapshot

    __call__ = fetch
