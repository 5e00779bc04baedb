"""
Data Ingestion - Type Definitions.

============================================================
PURPOSE
============================================================
Shared types for the context collectors.

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable data structures where possible
- No business logic
- JSON-serializable snapshots

============================================================
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict


# =============================================================
# ENUMS
# =============================================================

class IngestionSource(str, Enum):
    """Identifiers for context sources."""
    BROKER_CANDLES = "broker_candles"
    BRAVE_NEWS = "brave_news"
    HISTORICAL = "historical"


# =============================================================
# ITEMS
# =============================================================

@dataclass(frozen=True)
class NewsItem:
    """One news search result."""
    title: str
    url: str
    snippet: str = ""
    source: str = ""
    published: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_brave(cls, raw: Dict[str, Any]) -> "NewsItem":
        """Build from one entry of a Brave news search "results" list."""
        source = raw.get("source") or {}
        return cls(
            title=raw.get("title") or "",
            url=raw.get("url") or "",
            snippet=raw.get("description") or "",
            source=source.get("name", "") if isinstance(source, dict) else str(source),
            published=raw.get("published") or raw.get("age") or "",
        )


@dataclass(frozen=True)
class CandleSummary:
    """Per-instrument entry of the market snapshot."""
    granularity: str
    last_close: float
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
