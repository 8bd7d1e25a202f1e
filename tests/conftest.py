"""
Shared fixtures for the page tree tests.

Every test gets a fresh in-memory SQLite database with foreign
keys enforced, and a registry holding a page type and a blog
type.
"""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from content.page_types import PageTypeRegistry
from core.clock import ClockFactory
from storage.config import DatabaseConfig
from storage.database import create_all_tables, create_database_engine, create_session_factory
from storage.models import Page
from storage.repositories import PageRepository


FIXED_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


STANDARD_PAGE = {
    "id": "StandardPage",
    "title": "Standard page",
    "regions": [
        {
            "id": "Hero",
            "fields": [
                {"id": "Heading", "type": "string", "default": ""},
                {"id": "Ingress", "type": "text"},
            ],
        },
        {
            "id": "Links",
            "collection": True,
            "fields": [
                {"id": "Label", "type": "string"},
                {"id": "Target", "type": "page_link"},
            ],
        },
    ],
}

BLOG_ARCHIVE = {
    "id": "BlogArchive",
    "title": "Blog archive",
    "content_type": "Blog",
    "regions": [
        {
            "id": "Settings",
            "fields": [{"id": "PageSize", "type": "number", "default": 10}],
        },
    ],
}


# ============================================================
# DATABASE
# ============================================================

@pytest.fixture
def engine():
    """In-memory database shared by every session of one test."""
    engine = create_database_engine(DatabaseConfig(url="sqlite://"))
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


# ============================================================
# CONTENT
# ============================================================

@pytest.fixture
def registry():
    registry = PageTypeRegistry()
    registry.load_definitions([STANDARD_PAGE, BLOG_ARCHIVE], source="tests")
    return registry


@pytest.fixture
def repo(session, registry):
    return PageRepository(session, registry)


@pytest.fixture
def reload(session_factory, registry):
    """Repository on a new session, to read what was committed."""
    sessions = []

    def _reload():
        session = session_factory()
        sessions.append(session)
        return PageRepository(session, registry)

    yield _reload
    for session in sessions:
        session.close()


@pytest.fixture
def positions(session_factory, site_id):
    """Committed (parent_id, sort_order) of every page in a site, by title."""

    def _positions(site=None):
        with session_factory() as session:
            rows = session.execute(
                select(Page.title, Page.parent_id, Page.sort_order)
                .where(Page.site_id == (site or site_id))
            ).all()
        return {title: (parent_id, sort_order) for title, parent_id, sort_order in rows}

    return _positions


@pytest.fixture
def site_id():
    return uuid.uuid4()


@pytest.fixture
def fixed_clock():
    with ClockFactory.use_mock(FIXED_TIME) as clock:
        yield clock


@pytest.fixture
def make_page(repo, site_id):
    """Create and save a StandardPage."""

    def _make(title, parent_id=None, sort_order=None, slug=None, type_id="StandardPage", **kwargs):
        page = repo.create(type_id=type_id)
        page.site_id = kwargs.pop("site", site_id)
        page.title = title
        page.slug = slug or title.lower().replace(" ", "-")
        page.parent_id = parent_id
        # Append to the end of the group unless told otherwise
        page.sort_order = 10_000 if sort_order is None else sort_order
        for key, value in kwargs.items():
            setattr(page, key, value)
        repo.save(page)
        return page

    return _make
