"""
Page Tree ORM Models.

============================================================
PURPOSE
============================================================
Persisted shape of the page tree: pages, their region fields,
content blocks with typed fields, and the ordered join rows
that attach blocks to pages.

============================================================
TREE INVARIANTS
============================================================
- (site_id, parent_id) groups hold a dense sort_order 0..n-1
- parent_id NULL + sort_order 0 is the site's start page
- original_page_id marks a copy; copies never chain

These are maintained by PageRepository, not by constraints;
sort_order shifts would violate a unique index mid-flush.

============================================================
MODELS
============================================================
- Page: A node in a site's page tree
- PageField: A region field value stored on a page
- Block: A content unit, page-owned or reusable
- BlockField: A field value stored on a block
- PageBlock: Ordered page -> block link, nestable via parent_id

============================================================
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import (
    CONTENT_TYPE_PAGE,
    MAX_ROUTE_LENGTH,
    MAX_SLUG_LENGTH,
    MAX_TITLE_LENGTH,
    MAX_TYPE_ID_LENGTH,
    MAX_TYPE_TAG_LENGTH,
)
from storage.models.base import Base, TimestampMixin, UTCDateTime


class Page(Base, TimestampMixin):
    """
    A node in a site's page tree.

    ============================================================
    POSITION
    ============================================================
    (site_id, parent_id, sort_order) locates the page. Moving a
    page rewrites sort_order of its old and new siblings.

    ============================================================
    COPIES
    ============================================================
    A page with original_page_id set stores only its own tree
    and identity properties; regions and blocks are read from
    the original.

    ============================================================
    """

    __tablename__ = "pages"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique page identifier"
    )

    site_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        comment="Owning site"
    )

    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("pages.id", ondelete="RESTRICT"),
        nullable=True,
        comment="Parent page, NULL for the root group"
    )

    sort_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Position within the (site, parent) group"
    )

    page_type_id: Mapped[str] = mapped_column(
        String(MAX_TYPE_ID_LENGTH),
        nullable=False,
        comment="Page type definition id"
    )

    content_type: Mapped[str] = mapped_column(
        String(MAX_TYPE_ID_LENGTH),
        nullable=False,
        default=CONTENT_TYPE_PAGE,
        comment="Page or Blog"
    )

    title: Mapped[str] = mapped_column(
        String(MAX_TITLE_LENGTH),
        nullable=False,
        comment="Main title"
    )

    navigation_title: Mapped[Optional[str]] = mapped_column(
        String(MAX_TITLE_LENGTH),
        nullable=True,
        comment="Optional title used in menus"
    )

    slug: Mapped[Optional[str]] = mapped_column(
        String(MAX_SLUG_LENGTH),
        nullable=True,
        comment="Unique slug within the site"
    )

    route: Mapped[Optional[str]] = mapped_column(
        String(MAX_ROUTE_LENGTH),
        nullable=True,
        comment="Optional custom route"
    )

    is_hidden: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Hidden from navigation"
    )

    published: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(),
        nullable=True,
        comment="Publication timestamp, NULL for drafts"
    )

    original_page_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("pages.id", ondelete="RESTRICT"),
        nullable=True,
        comment="Set when this page is a copy of another page"
    )

    fields: Mapped[List["PageField"]] = relationship(
        back_populates="page",
        cascade="all, delete-orphan",
        order_by=lambda: [PageField.region_id, PageField.sort_order, PageField.field_id],
    )

    blocks: Mapped[List["PageBlock"]] = relationship(
        back_populates="page",
        cascade="all, delete-orphan",
        order_by="PageBlock.sort_order",
    )

    __table_args__ = (
        UniqueConstraint("site_id", "slug", name="uq_pages_site_slug"),
        Index("idx_pages_site_parent_order", "site_id", "parent_id", "sort_order"),
        Index("idx_pages_original", "original_page_id"),
        Index("idx_pages_content_type", "site_id", "content_type"),
    )

    @property
    def is_copy(self) -> bool:
        return self.original_page_id is not None

    def __repr__(self) -> str:
        return (
            f"<Page {self.id} site={self.site_id} parent={self.parent_id} "
            f"sort_order={self.sort_order} title={self.title!r}>"
        )


class PageField(Base):
    """
    A region field value on a page.

    Collection regions store one row per item and field, with
    sort_order holding the item index.
    """

    __tablename__ = "page_fields"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    page_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"),
        nullable=False,
    )

    region_id: Mapped[str] = mapped_column(
        String(MAX_TYPE_ID_LENGTH),
        nullable=False,
        comment="Region id from the page type"
    )

    field_id: Mapped[str] = mapped_column(
        String(MAX_TYPE_ID_LENGTH),
        nullable=False,
        comment="Field id within the region"
    )

    sort_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Item index for collection regions"
    )

    value_type: Mapped[str] = mapped_column(
        String(MAX_TYPE_TAG_LENGTH),
        nullable=False,
        comment="Value codec type tag"
    )

    value: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Encoded value"
    )

    page: Mapped["Page"] = relationship(back_populates="fields")

    __table_args__ = (
        UniqueConstraint(
            "page_id", "region_id", "field_id", "sort_order",
            name="uq_page_fields_position",
        ),
    )


class Block(Base, TimestampMixin):
    """
    A content block.

    Non-reusable blocks belong to one page and are deleted with
    it or when detached from it. Reusable blocks outlive the
    pages that reference them.
    """

    __tablename__ = "blocks"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    block_type: Mapped[str] = mapped_column(
        String(MAX_TYPE_TAG_LENGTH),
        nullable=False,
        comment="Block type tag, e.g. TextBlock"
    )

    title: Mapped[Optional[str]] = mapped_column(
        String(MAX_TITLE_LENGTH),
        nullable=True,
    )

    is_reusable: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    fields: Mapped[List["BlockField"]] = relationship(
        back_populates="block",
        cascade="all, delete-orphan",
        order_by=lambda: [BlockField.sort_order, BlockField.field_id],
    )

    def __repr__(self) -> str:
        return f"<Block {self.id} type={self.block_type} reusable={self.is_reusable}>"


class BlockField(Base):
    """A field value on a block, unique per (block, field id)."""

    __tablename__ = "block_fields"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    block_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("blocks.id", ondelete="CASCADE"),
        nullable=False,
    )

    field_id: Mapped[str] = mapped_column(
        String(MAX_TYPE_ID_LENGTH),
        nullable=False,
    )

    sort_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    value_type: Mapped[str] = mapped_column(
        String(MAX_TYPE_TAG_LENGTH),
        nullable=False,
        comment="Value codec type tag"
    )

    value: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Encoded value"
    )

    block: Mapped["Block"] = relationship(back_populates="fields")

    __table_args__ = (
        UniqueConstraint("block_id", "field_id", name="uq_block_fields_field"),
    )


class PageBlock(Base):
    """
    Ordered link between a page and a block.

    parent_id points at another PageBlock of the same page when
    the block is an item of a block group.
    """

    __tablename__ = "page_blocks"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    page_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"),
        nullable=False,
    )

    block_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("blocks.id", ondelete="RESTRICT"),
        nullable=False,
    )

    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        nullable=True,
        comment="Owning group PageBlock, NULL for top-level blocks"
    )

    sort_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    page: Mapped["Page"] = relationship(back_populates="blocks")
    block: Mapped["Block"] = relationship()

    __table_args__ = (
        Index("idx_page_blocks_page_order", "page_id", "sort_order"),
        Index("idx_page_blocks_block", "block_id"),
    )
