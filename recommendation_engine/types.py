"""
Recommendation Engine - Types.

============================================================
PURPOSE
============================================================
All type definitions for the recommendation lifecycle:
requests, context, drafts, priced recommendations, tagged
price quotes and the status state machine.

PRINCIPLE:
    "A recommendation is drafted, priced, stored, and only
    then executed. Execution never happens implicitly."

============================================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Union
from dataclasses import dataclass, field
from enum import Enum

from core.exceptions import InputError


# ============================================================
# ENUMS
# ============================================================

class Direction(str, Enum):
    """Trade direction."""

    BUY = "BUY"
    SELL = "SELL"

    @property
    def sign(self) -> int:
        """+1 for BUY, -1 for SELL."""
        return 1 if self is Direction.BUY else -1

    def signed_units(self, units: float) -> float:
        """Units as sent to the broker (SELL negative)."""
        return self.sign * abs(units)


class RiskLevel(str, Enum):
    """Risk appetite of a request. Selects the stop distance."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RiskLevel":
        """Case-insensitive parse; unknown or empty values mean MEDIUM."""
        if not value:
            return cls.MEDIUM
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.MEDIUM


class RecommendationStatus(str, Enum):
    """
    Recommendation lifecycle state.

    PENDING ──► EXECUTED

    APPROVED and REJECTED are reserved for a review workflow;
    no operation of this engine produces them.
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXECUTED = "EXECUTED"


class RecommendationForm(str, Enum):
    """Which store a recommendation lives in."""

    AI = "ai"
    LEGACY = "legacy"

    @property
    def table(self) -> str:
        return "ai_recommendations" if self is RecommendationForm.AI else "recommendations"

    @property
    def counterpart(self) -> "RecommendationForm":
        """The other store."""
        return RecommendationForm.LEGACY if self is RecommendationForm.AI else RecommendationForm.AI


class DraftSource(str, Enum):
    """Where a draft came from."""

    MODEL = "MODEL"
    HEURISTIC = "HEURISTIC"


class SizingMethod(str, Enum):
    """How the final units were chosen."""

    EXPLICIT = "EXPLICIT"
    """Caller supplied units."""

    RISK_BASED = "RISK_BASED"
    """Derived from equity, risk fraction and stop distance."""

    DRAFT = "DRAFT"
    """Draft units kept unchanged."""


class AuditAction(str, Enum):
    CREATE = "CREATE"
    EXECUTE = "EXECUTE"
    DELETE = "DELETE"
    UPDATE = "UPDATE"


class TradeStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


# ============================================================
# STATE MACHINE
# ============================================================

VALID_TRANSITIONS: Dict[RecommendationStatus, Set[RecommendationStatus]] = {
    RecommendationStatus.PENDING: {RecommendationStatus.EXECUTED},
    # Reserved states, never entered
    RecommendationStatus.APPROVED: set(),
    RecommendationStatus.REJECTED: set(),
    # Terminal
    RecommendationStatus.EXECUTED: set(),
}


def can_transition(from_state: RecommendationStatus, to_state: RecommendationStatus) -> bool:
    return to_state in VALID_TRANSITIONS.get(from_state, set())


# ============================================================
# PRICE QUOTES
# ============================================================

@dataclass(frozen=True)
class KnownPrice:
    """A price the broker (or a candle close) actually reported."""

    value: float


@dataclass(frozen=True)
class UnknownPrice:
    """No usable price. Brackets are skipped, entry is recorded as 0."""

    reason: str = "unavailable"


PriceQuote = Union[KnownPrice, UnknownPrice]


def price_value(quote: PriceQuote) -> Optional[float]:
    """The numeric price, or None for UnknownPrice."""
    if isinstance(quote, KnownPrice):
        return quote.value
    return None


# ============================================================
# REQUEST
# ============================================================

@dataclass
class RecommendationRequest:
    """Parameters for generating one recommendation."""

    instruments: List[str]
    """Candidate instruments, e.g. ["EUR_USD", "USD_JPY"]."""

    risk_level: RiskLevel = RiskLevel.MEDIUM
    """Selects the default stop distance."""

    time_horizon: str = "intraday"
    """Free-text horizon passed to the drafter."""

    risk_fraction: Optional[float] = None
    """Fraction of equity risked, e.g. 0.01 for 1%."""

    units: Optional[float] = None
    """Explicit position size; wins over risk sizing."""

    stop_loss_pips: Optional[float] = None
    """Explicit stop distance in pips."""

    context: Optional[str] = None
    """Free-text guidance for the drafter."""

    recommendation_id: Optional[str] = None
    """Caller-proposed id; replaced when not UUID-shaped."""

    def validate(self) -> None:
        """
        Reject malformed requests before any external call.

        Raises:
            InputError: On empty instruments or out-of-range numbers
        """
        cleaned = [i.strip() for i in self.instruments or [] if i and i.strip()]
        if not cleaned:
            raise InputError("At least one instrument is required", field="instruments")
        self.instruments = cleaned

        if self.risk_fraction is not None and not (0 < self.risk_fraction < 1):
            raise InputError(
                "risk_fraction must be between 0 and 1",
                field="risk_fraction",
                value=self.risk_fraction,
            )
        if self.units is not None and self.units <= 0:
            raise InputError("units must be positive", field="units", value=self.units)
        if self.stop_loss_pips is not None and self.stop_loss_pips <= 0:
            raise InputError(
                "stop_loss_pips must be positive",
                field="stop_loss_pips",
                value=self.stop_loss_pips,
            )


# ============================================================
# CONTEXT
# ============================================================

@dataclass
class TradingContext:
    """
    Snapshot of everything the drafter sees.

    The three snapshots are opaque JSON-compatible blobs owned by
    their collaborators.
    """

    market: Dict[str, Any]
    news: Dict[str, Any]
    historical: Dict[str, Any]
    timestamp: datetime

    def last_close(self, instrument: str) -> Optional[float]:
        """Last candle close the market snapshot holds for instrument."""
        entry = self.market.get(instrument)
        if isinstance(entry, dict):
            close = entry.get("last_close")
            if isinstance(close, (int, float)) and close > 0:
                return float(close)
        return None


# ============================================================
# DRAFTS AND PRICED RECOMMENDATIONS
# ============================================================

@dataclass
class ModelUsage:
    """Token accounting of one drafter call."""

    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    response_time_ms: int = 0


@dataclass
class DraftRecommendation:
    """Drafter output. Never carries stop-loss or take-profit."""

    instrument: str
    direction: Direction
    units: float
    confidence: float
    rationale: str
    source: DraftSource
    context: TradingContext
    expires_at: Optional[datetime] = None
    usage: Optional[ModelUsage] = None


@dataclass
class PricedRecommendation:
    """A draft with bracket levels and final units."""

    draft: DraftRecommendation
    units: float
    sizing_method: SizingMethod
    price: PriceQuote = field(default_factory=UnknownPrice)
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    distance_pips: Optional[float] = None
    recommendation_id: Optional[str] = None
    """Caller-proposed id before storage, stored id after."""

    @property
    def instrument(self) -> str:
        return self.draft.instrument

    @property
    def direction(self) -> Direction:
        return self.draft.direction

    @property
    def has_bracket(self) -> bool:
        return self.stop_loss is not None or self.take_profit is not None
