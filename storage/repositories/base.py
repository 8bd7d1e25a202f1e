"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Provides common functionality for all repositories including:
- Session handling
- Wrapping SQLAlchemy errors in repository exceptions
- Common query helpers
- Unit-of-work boundaries with rollback on failure

============================================================
USAGE
============================================================
Domain repositories inherit from BaseRepository and receive
the session through their constructor.

============================================================
"""

import logging
import re
from abc import ABC
from contextlib import contextmanager
from typing import Any, Dict, Generator, Generic, List, Optional, Sequence, Type, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    TransactionError,
)


# Type variable for ORM model
T = TypeVar("T", bound=Base)

# PostgreSQL names the constraint, SQLite lists the columns
_CONSTRAINT_PATTERNS = (
    re.compile(r'unique constraint "(?P<name>[^"]+)"', re.IGNORECASE),
    re.compile(r"UNIQUE constraint failed: (?P<name>[\w.]+(?:, [\w.]+)*)"),
)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for all repositories.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    - Wraps database errors in repository exceptions
    - Manages logging for all operations
    - Owns commit / rollback of each unit of work

    ============================================================
    USAGE
    ============================================================
    class MyRepository(BaseRepository[MyModel]):
        def __init__(self, session: Session):
            super().__init__(session, MyModel, "MyRepository")

    Subclasses map unique constraints to the field reported in
    DuplicateRecordError through _unique_fields.

    ============================================================
    """

    _unique_fields: Dict[str, str] = {}

    def __init__(
        self,
        session: Session,
        model_class: Type[T],
        repository_name: str
    ) -> None:
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy session (injected)
            model_class: The ORM model class this repository manages
            repository_name: Name for logging and error messages
        """
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def model_class(self) -> Type[T]:
        return self._model_class

    @property
    def repository_name(self) -> str:
        return self._repository_name

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _violated_constraint(self, error: Exception) -> Optional[str]:
        """Name (or SQLite column list) of the violated unique constraint."""
        message = str(getattr(error, "orig", None) or error)
        for pattern in _CONSTRAINT_PATTERNS:
            match = pattern.search(message)
            if match:
                return match.group("name")
        return None

    def _handle_db_error(
        self,
        error: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> None:
        """
        Wrap a database error in the matching repository exception.

        Raises:
            RepositoryException: Always
        """
        context = context or {}
        self._logger.error(
            f"Database error in {operation}: {error}",
            extra={"context": context},
            exc_info=True
        )

        if isinstance(error, OperationalError):
            raise ConnectionError(
                repository_name=self._repository_name,
                operation=operation,
                original_error=str(error)
            ) from error

        if isinstance(error, SQLAlchemyIntegrityError):
            error_str = str(error).lower()
            if "duplicate" in error_str or "unique" in error_str:
                field = self._unique_fields.get(self._violated_constraint(error), "unknown")
                raise DuplicateRecordError(
                    repository_name=self._repository_name,
                    constraint_field=field,
                    value=context.get(field, "unknown"),
                    operation=operation,
                ) from error

            raise IntegrityError(
                repository_name=self._repository_name,
                operation=operation,
                constraint_name="unknown",
                message=str(error.orig) if error.orig is not None else str(error)
            ) from error

        raise QueryError(
            repository_name=self._repository_name,
            operation=operation,
            query_description=operation,
            original_error=str(error)
        ) from error

    @contextmanager
    def _unit_of_work(
        self,
        operation: str,
        context: Optional[dict] = None,
    ) -> Generator[Session, None, None]:
        """
        Run a mutating operation and commit it.

        Pending changes are flushed before the commit so constraint
        violations surface as wrapped repository errors. Database
        errors roll the session back and are wrapped; other
        exceptions roll back and propagate unchanged.
        """
        try:
            yield self._session
            self._session.flush()
        except SQLAlchemyError as e:
            self._session.rollback()
            self._handle_db_error(e, operation, context)
        except Exception:
            self._session.rollback()
            raise
        self._commit(operation)

    def _get_by_id(
        self,
        record_id: UUID,
        options: Sequence[Any] = (),
        refresh: bool = False,
    ) -> Optional[T]:
        """
        Get an entity by its primary key, or None.

        With refresh, an entity already in the session is re-read
        from the database.
        """
        try:
            return self._session.get(
                self._model_class,
                record_id,
                options=list(options),
                populate_existing=refresh,
            )
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_by_id", {"id": str(record_id)})
            raise

    def _count(self, *conditions: Any) -> int:
        """Count entities matching the given conditions."""
        try:
            stmt = select(func.count()).select_from(self._model_class)
            if conditions:
                stmt = stmt.where(*conditions)
            return self._session.execute(stmt).scalar() or 0
        except SQLAlchemyError as e:
            self._handle_db_error(e, "count")
            raise

    def _execute_query(self, stmt: Any) -> List[T]:
        """Execute a select statement and return all entities."""
        try:
            result = self._session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query")
            raise

    def _execute_scalar(self, stmt: Any) -> Optional[Any]:
        """Execute a select statement and return the single result or None."""
        try:
            result = self._session.execute(stmt)
            return result.scalars().first()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query_scalar")
            raise

    def _commit(self, operation: str = "commit") -> None:
        """
        Commit the current transaction.

        Raises:
            TransactionError: If commit fails
        """
        try:
            self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            self._logger.error(f"Commit failed during {operation}: {e}")
            raise TransactionError(
                repository_name=self._repository_name,
                operation=operation,
                phase="commit",
                original_error=str(e)
            ) from e

