"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the exception hierarchy for the recommendation engine.

- Separates caller mistakes from collaborator failures
- Distinguishes terminal outcomes from transient ones
- Carries context for structured logging
- Maps cleanly onto transport status codes

============================================================
EXCEPTION HIERARCHY
============================================================
TradingException (base)
├── InputError
├── CollaboratorError
│   ├── MarketFetchFailed
│   ├── NewsFetchFailed
│   ├── HistoricalFetchFailed
│   ├── ModelUnavailableError
│   ├── ModelCallFailed
│   ├── BrokerError
│   └── BrokerRejection
├── NotFoundError
├── ConflictError
└── PersistenceError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Caller mistake or expected outcome."""

    MEDIUM = "medium"
    """Degraded collaborator, operation failed."""

    HIGH = "high"
    """State may be inconsistent, requires attention."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    TRANSIENT = "transient"
    """Temporary error, a later attempt may succeed."""

    TERMINAL = "terminal"
    """Repeating the same request will fail the same way."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class TradingException(Exception):
    """
    Base exception for all engine errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - classification: whether a retry could help
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.TERMINAL

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_transient(self) -> bool:
        """Check if a later attempt may succeed."""
        return self.classification == ErrorClassification.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging and error responses."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================
# INPUT ERRORS
# ============================================================

class InputError(TradingException):
    """Malformed request, rejected before any external call."""

    default_severity = Severity.LOW

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# COLLABORATOR ERRORS
# ============================================================

class CollaboratorError(TradingException):
    """Base class for failures of external collaborators."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.TRANSIENT

    collaborator: str = "collaborator"

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        context["collaborator"] = self.collaborator

        if endpoint:
            context["endpoint"] = endpoint
        if status_code is not None:
            context["status_code"] = status_code

        super().__init__(message, context=context, **kwargs)


class MarketFetchFailed(CollaboratorError):
    """Market snapshot could not be fetched."""

    collaborator = "market"


class NewsFetchFailed(CollaboratorError):
    """News snapshot could not be fetched."""

    collaborator = "news"


class HistoricalFetchFailed(CollaboratorError):
    """Historical snapshot could not be fetched."""

    collaborator = "historical"


class ModelUnavailableError(CollaboratorError):
    """Model client is not configured (e.g. no API key)."""

    collaborator = "model"
    default_severity = Severity.LOW


class ModelCallFailed(CollaboratorError):
    """Model call failed or produced unusable output."""

    collaborator = "model"


class BrokerError(CollaboratorError):
    """Broker transport or read failure (quotes, equity, candles)."""

    collaborator = "broker"


class BrokerRejection(CollaboratorError):
    """
    Broker refused an order.

    Terminal for the accept that triggered it: the recommendation
    stays PENDING and no trade exists.
    """

    collaborator = "broker"
    default_classification = ErrorClassification.TERMINAL

    def __init__(
        self,
        message: str,
        instrument: Optional[str] = None,
        error_code: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if instrument:
            context["instrument"] = instrument
        if error_code:
            context["error_code"] = error_code

        self.error_code = error_code
        super().__init__(message, context=context, **kwargs)


# ============================================================
# LOOKUP / STATE ERRORS
# ============================================================

class NotFoundError(TradingException):
    """No live record with the given id."""

    default_severity = Severity.LOW

    def __init__(self, entity: str, entity_id: str, **kwargs):
        context = kwargs.pop("context", {})
        context["entity"] = entity
        context["entity_id"] = entity_id

        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", context=context, **kwargs)


class ConflictError(TradingException):
    """Record exists but is not in a state that allows the operation."""

    default_severity = Severity.LOW

    def __init__(
        self,
        message: str,
        entity_id: Optional[str] = None,
        current_state: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if entity_id:
            context["entity_id"] = entity_id
        if current_state:
            context["current_state"] = current_state

        super().__init__(message, context=context, **kwargs)


# ============================================================
# PERSISTENCE ERRORS
# ============================================================

class PersistenceError(TradingException):
    """Primary write failed; the operation produced nothing durable."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if operation:
            context["operation"] = operation
        if table:
            context["table"] = table

        super().__init__(message, context=context, **kwargs)


__all__ = [
    "Severity",
    "ErrorClassification",
    "TradingException",
    "InputError",
    "CollaboratorError",
    "MarketFetchFailed",
    "NewsFetchFailed",
    "HistoricalFetchFailed",
    "ModelUnavailableError",
    "ModelCallFailed",
    "BrokerError",
    "BrokerRejection",
    "NotFoundError",
    "ConflictError",
    "PersistenceError",
]
