"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Every error a repository raises. Database errors are caught
and wrapped; page tree rule violations are raised before any
row is touched.

============================================================
HIERARCHY
============================================================
RepositoryException
├── RecordNotFoundError
│   └── PageTypeNotFoundError
├── DuplicateRecordError
├── IntegrityError
├── ConnectionError
├── QueryError
├── TransactionError
└── ValidationError
    ├── PageCopyError
    ├── PageDeleteError
    └── PageMoveError

============================================================
"""

from typing import Any, Optional


class RepositoryException(Exception):
    """
    Base exception for all repository operations.

    Callers can catch this for generic error handling.
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
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"[{self.repository_name}] {self.operation}: {self.message}"


class RecordNotFoundError(RepositoryException):
    """Raised when a record that must exist cannot be found."""

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        id_field: str = "id",
        operation: str = "get",
    ) -> None:
        super().__init__(
            message=f"Record with {id_field}={record_id} not found",
            repository_name=repository_name,
            operation=operation,
            details={id_field: str(record_id)}
        )
        self.record_id = record_id
        self.id_field = id_field


class PageTypeNotFoundError(RecordNotFoundError):
    """Raised when a page type id is not registered."""

    def __init__(self, repository_name: str, type_id: Any, operation: str = "create") -> None:
        super().__init__(
            repository_name=repository_name,
            record_id=type_id,
            id_field="page_type_id",
            operation=operation,
        )
        self.type_id = type_id


class DuplicateRecordError(RepositoryException):
    """Raised when an insert or update violates a unique constraint."""

    def __init__(
        self,
        repository_name: str,
        constraint_field: str,
        value: Any,
        operation: str = "save",
    ) -> None:
        super().__init__(
            message=f"Duplicate record: {constraint_field}={value} already exists",
            repository_name=repository_name,
            operation=operation,
            details={"field": constraint_field, "value": str(value)}
        )
        self.constraint_field = constraint_field
        self.value = value


class IntegrityError(RepositoryException):
    """Raised for foreign key and other constraint violations."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        constraint_name: str,
        message: str
    ) -> None:
        super().__init__(
            message=f"Integrity constraint violated ({constraint_name}): {message}",
            repository_name=repository_name,
            operation=operation,
            details={"constraint": constraint_name}
        )
        self.constraint_name = constraint_name


class ConnectionError(RepositoryException):
    """Raised when the database cannot be reached."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Database connection failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class QueryError(RepositoryException):
    """Raised when a statement fails for any other reason."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        query_description: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Query failed ({query_description}): {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={
                "query_description": query_description,
                "original_error": original_error
            }
        )


class TransactionError(RepositoryException):
    """Raised when commit or rollback fails."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        phase: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Transaction {phase} failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"phase": phase, "original_error": original_error}
        )
        self.phase = phase


class ValidationError(RepositoryException):
    """
    Raised when an operation would break a page tree rule.

    Nothing has been written when this is raised.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        field: str,
        reason: str
    ) -> None:
        super().__init__(
            message=f"Validation failed for {field}: {reason}",
            repository_name=repository_name,
            operation=operation,
            details={"field": field, "reason": reason}
        )
        self.field = field
        self.reason = reason


class PageCopyError(ValidationError):
    """Invalid copy: copy of a copy, type mismatch, or missing original."""

    def __init__(self, repository_name: str, page_id: Any, original_page_id: Any, reason: str) -> None:
        super().__init__(
            repository_name=repository_name,
            operation="save",
            field="original_page_id",
            reason=reason,
        )
        self.details.update(page_id=str(page_id), original_page_id=str(original_page_id))
        self.page_id = page_id
        self.original_page_id = original_page_id


class PageDeleteError(ValidationError):
    """Page still has children or copies."""

    def __init__(self, repository_name: str, page_id: Any, blocker: str, count: int) -> None:
        super().__init__(
            repository_name=repository_name,
            operation="delete",
            field=blocker,
            reason=f"page {page_id} has {count} {blocker}",
        )
        self.details.update(page_id=str(page_id), count=count)
        self.page_id = page_id
        self.blocker = blocker
        self.count = count


class PageMoveError(ValidationError):
    """Move target is inside the page's own subtree or belongs to another site."""

    def __init__(
        self,
        repository_name: str,
        page_id: Any,
        parent_id: Any,
        operation: str = "move",
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(
            repository_name=repository_name,
            operation=operation,
            field="parent_id",
            reason=reason or (
                f"page {page_id} cannot be placed under {parent_id}, which is inside its own subtree"
            ),
        )
        self.details.update(page_id=str(page_id), parent_id=str(parent_id))
        self.page_id = page_id
        self.parent_id = parent_id
