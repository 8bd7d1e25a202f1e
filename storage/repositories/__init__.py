"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to persistent storage.
All page tree access MUST go through PageRepository.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. Session Injection: Sessions are injected, not created internally
2. Explicit Methods: No generic 'execute', clear method names
3. Tree Order: Every mutation keeps sibling sort orders contiguous
4. Exception Handling: All DB errors wrapped in repository exceptions

============================================================
USAGE
============================================================

    from content.page_types import PageTypeRegistry
    from storage.database import get_db_session
    from storage.repositories import PageRepository

    with get_db_session() as session:
        repo = PageRepository(session, registry)
        page = repo.create(type_id="StandardPage")
        page.site_id = site_id
        page.title = "About"
        changed = repo.save(page)

============================================================
"""

# =============================================================
# EXCEPTIONS
# =============================================================
from storage.repositories.exceptions import (
    RepositoryException,
    RecordNotFoundError,
    PageTypeNotFoundError,
    DuplicateRecordError,
    IntegrityError,
    ConnectionError,
    QueryError,
    TransactionError,
    ValidationError,
    PageCopyError,
    PageDeleteError,
    PageMoveError,
)

# =============================================================
# REPOSITORIES
# =============================================================
from storage.repositories.base import BaseRepository
from storage.repositories.pages import PageRepository

# =============================================================
# PUBLIC API
# =============================================================
__all__ = [
    # Exceptions
    "RepositoryException",
    "RecordNotFoundError",
    "PageTypeNotFoundError",
    "DuplicateRecordError",
    "IntegrityError",
    "ConnectionError",
    "QueryError",
    "TransactionError",
    "ValidationError",
    "PageCopyError",
    "PageDeleteError",
    "PageMoveError",

    # Repositories
    "BaseRepository",
    "PageRepository",
]
