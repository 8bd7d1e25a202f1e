"""
Page Query Builder.

============================================================
PURPOSE
============================================================
Builds the select statements PageRepository runs. Whether
blocks and region fields are eager-loaded depends on the
model class the caller asked for: full models need them,
summary models do not.

Page rows are always re-read (populate_existing) so positions
written by other sessions are seen.

============================================================
"""

from typing import Optional, Tuple, Type
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.orm import selectinload

from content.models import PageInfo
from content.transformer import is_full_model
from storage.models.content import Block, Page, PageBlock


def requires_full_content(model_cls: Type[PageInfo]) -> bool:
    """True when loading into model_cls needs blocks and fields."""
    return is_full_model(model_cls)


def content_load_options() -> tuple:
    """Eager-load options for a page's blocks, block fields and region fields."""
    return (
        selectinload(Page.blocks)
        .selectinload(PageBlock.block)
        .selectinload(Block.fields),
        selectinload(Page.fields),
    )


def build_page_query(model_cls: Type[PageInfo]) -> Tuple[Select, bool]:
    """
    Base page lookup for the given target model.

    Returns:
        (statement, full_model)
    """
    full_model = requires_full_content(model_cls)
    stmt = select(Page).execution_options(populate_existing=True)
    if full_model:
        stmt = stmt.options(*content_load_options())
    return stmt, full_model


def tree_order(stmt: Select) -> Select:
    """Order by (parent_id, sort_order) with the root group first."""
    return stmt.order_by(Page.parent_id.asc().nulls_first(), Page.sort_order.asc())


def site_pages_query(
    model_cls: Type[PageInfo],
    site_id: UUID,
    content_type: Optional[str] = None,
) -> Select:
    """All pages of a site in tree order, optionally one content type."""
    stmt, _ = build_page_query(model_cls)
    stmt = stmt.where(Page.site_id == site_id)
    if content_type is not None:
        stmt = stmt.where(Page.content_type == content_type)
    return tree_order(stmt)


def parent_filter(parent_id: Optional[UUID]):
    """parent_id comparison that matches NULL for the root group."""
    if parent_id is None:
        return Page.parent_id.is_(None)
    return Page.parent_id == parent_id


def sibling_query(
    site_id: UUID,
    parent_id: Optional[UUID],
    min_sort_order: int = 0,
    exclude_id: Optional[UUID] = None,
) -> Select:
    """Pages of one (site, parent) group at or after a sort order."""
    stmt = select(Page).execution_options(populate_existing=True).where(
        Page.site_id == site_id,
        parent_filter(parent_id),
        Page.sort_order >= min_sort_order,
    )
    if exclude_id is not None:
        stmt = stmt.where(Page.id != exclude_id)
    return stmt.order_by(Page.sort_order.asc())


def sibling_count_query(
    site_id: UUID,
    parent_id: Optional[UUID],
    exclude_id: Optional[UUID] = None,
) -> Select:
    """Number of pages in a (site, parent) group."""
    stmt = select(func.count()).select_from(Page).where(
        Page.site_id == site_id,
        parent_filter(parent_id),
    )
    if exclude_id is not None:
        stmt = stmt.where(Page.id != exclude_id)
    return stmt
