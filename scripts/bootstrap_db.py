"""
Scripts - Bootstrap Database.

============================================================
RESPONSIBILITY
============================================================
Initializes the page store for first-time setup.

- Creates the schema
- Validates that every required table exists
- Optionally seeds a start page for a site

============================================================
USAGE
============================================================
python -m scripts.bootstrap_db

Options:
  --drop-existing    Drop existing tables (DANGEROUS)
  --page-types PATH  Page type definitions (JSON), overrides PAGE_TYPES_PATH
  --seed-site UUID   Create a start page for this site if it has none
  --seed-type ID     Page type of the seeded start page
  --validate-only    Only validate, don't create

EXIT CODES:
- 0: Success
- 1: Configuration or connection failure
- 2: Table creation or validation failure
- 3: Seeding failure

============================================================
"""

import argparse
import logging
import sys
from typing import List, Optional
from uuid import UUID

from content.page_types import PageTypeRegistry
from core.exceptions import PageTreeException
from storage.config import DatabaseConfig
from storage.database import (
    DatabaseConnectionError,
    DatabasePersistenceError,
    create_database_engine,
    create_session_factory,
    drop_all_tables,
    initialize_database,
    missing_tables,
    verify_database_connection,
)
from storage.repositories import PageRepository, RepositoryException


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("bootstrap_db")


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="bootstrap_db",
        description="Create and validate the page store schema",
    )
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop all page store tables before creating them",
    )
    parser.add_argument(
        "--page-types",
        metavar="PATH",
        default=None,
        help="JSON file of page type definitions",
    )
    parser.add_argument(
        "--seed-site",
        metavar="UUID",
        type=UUID,
        default=None,
        help="Create a start page for this site if it has none",
    )
    parser.add_argument(
        "--seed-type",
        metavar="ID",
        default=None,
        help="Page type of the seeded start page (default: first registered type)",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only check that the required tables exist",
    )
    return parser


def seed_startpage(
    repo: PageRepository,
    site_id: UUID,
    type_id: Optional[str],
) -> bool:
    """
    Create an empty start page for a site.

    Returns:
        False when the site already has a start page
    """
    if repo.get_startpage(site_id) is not None:
        logger.info(f"Site {site_id} already has a start page")
        return False

    page = repo.create(type_id=type_id)
    page.site_id = site_id
    page.title = "Home"
    page.slug = "home"
    repo.save(page)
    logger.info(f"Seeded start page {page.id} ({page.type_id}) for site {site_id}")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """Bootstrap database entry point."""
    args = create_parser().parse_args(argv)

    try:
        config = DatabaseConfig.from_env()
    except PageTreeException as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    engine = create_database_engine(config)

    try:
        verify_database_connection(engine)
    except DatabaseConnectionError as e:
        logger.error(str(e))
        return 1

    if args.validate_only:
        missing = missing_tables(engine)
        if missing:
            logger.error(f"Missing tables: {', '.join(missing)}")
            return 2
        logger.info("All required tables exist")
        return 0

    try:
        if args.drop_existing:
            drop_all_tables(engine)
        initialize_database(engine)
    except DatabasePersistenceError as e:
        logger.error(str(e))
        return 2

    if args.seed_site is None:
        return 0

    registry = PageTypeRegistry()
    page_types_path = args.page_types or config.page_types_path
    try:
        if page_types_path:
            registry.load_file(page_types_path)
    except PageTreeException as e:
        logger.error(str(e))
        return 3

    type_id = args.seed_type
    if type_id is None:
        if not len(registry):
            logger.error("No page types registered, pass --page-types or set PAGE_TYPES_PATH")
            return 3
        type_id = registry.get_all()[0].id

    session = create_session_factory(engine)()
    try:
        seed_startpage(PageRepository(session, registry), args.seed_site, type_id)
    except RepositoryException as e:
        logger.error(f"Seeding failed: {e}")
        return 3
    finally:
        session.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
