"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Repositories never let SQLAlchemy errors escape. Every database
failure is re-raised as one of these, carrying the repository
name and the operation that failed.

Services catch RepositoryException and decide whether the write
was primary (fatal) or best-effort (logged).

============================================================
"""

from typing import Any, Optional


class RepositoryException(Exception):
    """
    Base exception for all repository operations.

    Business layers can catch this for generic error handling.
    """

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict] = None
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(f"[{repository_name}] {operation}: {message}")


class DuplicateRecordError(RepositoryException):
    """Unique constraint violated on insert."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Duplicate record: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class IntegrityError(RepositoryException):
    """Other integrity constraint violated (check, foreign key, not null)."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Integrity constraint violated: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class DatabaseUnavailableError(RepositoryException):
    """Connection failed, timed out or the pool is exhausted."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Database connection failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class QueryError(RepositoryException):
    """Any other statement failure."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Query failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class TransactionError(RepositoryException):
    """Commit or rollback failed."""

    def __init__(
        self,
        repository_name: str,
        phase: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Transaction {phase} failed: {original_error}",
            repository_name=repository_name,
            operation=phase,
            details={"phase": phase, "original_error": original_error}
        )
        self.phase = phase


class ImmutableRecordError(RepositoryException):
    """Update or delete attempted on an append-only table."""

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        attempted_operation: str
    ) -> None:
        super().__init__(
            message=f"Cannot {attempted_operation} immutable record {record_id}",
            repository_name=repository_name,
            operation=attempted_operation,
            details={"record_id": str(record_id)}
        )
        self.record_id = record_id
