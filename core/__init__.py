"""
Core Module Package.

This package contains the infrastructure components
that all other modules depend on.

Components:
- clock: Testable time abstraction
- exceptions: Engine exception hierarchy
"""

from .clock import ClockProtocol, MockClock, SystemClock, get_clock
from .exceptions import (
    BrokerError,
    BrokerRejection,
    CollaboratorError,
    ConflictError,
    ErrorClassification,
    HistoricalFetchFailed,
    InputError,
    MarketFetchFailed,
    ModelCallFailed,
    ModelUnavailableError,
    NewsFetchFailed,
    NotFoundError,
    PersistenceError,
    Severity,
    TradingException,
)


__all__ = [
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "get_clock",
    "BrokerError",
    "BrokerRejection",
    "CollaboratorError",
    "ConflictError",
    "ErrorClassification",
    "HistoricalFetchFailed",
    "InputError",
    "MarketFetchFailed",
    "ModelCallFailed",
    "ModelUnavailableError",
    "NewsFetchFailed",
    "NotFoundError",
    "PersistenceError",
    "Severity",
    "TradingException",
]
