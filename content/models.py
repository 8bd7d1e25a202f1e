"""
Content - Page and Block Models.

============================================================
PURPOSE
============================================================
Typed models callers work with. The repository maps them to
and from the Page / Block / field records.

============================================================
MODELS
============================================================
- PageInfo: Summary of a page, no regions or blocks
- PageModel: Full page with regions and blocks
- BlockModel: A content block, optionally a group of blocks
- SitemapItem: A node of the navigation tree

- StagedField / StagedBlock / StagedPageBlock: encoded block
  data produced by ContentTransformer.transform_blocks and
  written by the repository

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from core.constants import CONTENT_TYPE_PAGE, STARTPAGE_SORT_ORDER


# ============================================================
# PAGE MODELS
# ============================================================


@dataclass
class PageInfo:
    """
    Page summary.

    Loading into this class skips regions and blocks.
    """

    id: Optional[UUID] = None
    site_id: Optional[UUID] = None
    parent_id: Optional[UUID] = None
    sort_order: int = 0
    type_id: Optional[str] = None
    content_type: str = CONTENT_TYPE_PAGE
    title: str = ""
    navigation_title: Optional[str] = None
    slug: Optional[str] = None
    route: Optional[str] = None
    is_hidden: bool = False
    published: Optional[datetime] = None
    original_page_id: Optional[UUID] = None
    created: Optional[datetime] = None
    last_modified: Optional[datetime] = None

    @property
    def is_copy(self) -> bool:
        return self.original_page_id is not None

    @property
    def is_published(self) -> bool:
        return self.published is not None

    @property
    def is_startpage(self) -> bool:
        return self.parent_id is None and self.sort_order == STARTPAGE_SORT_ORDER


@dataclass
class PageModel(PageInfo):
    """
    Full page.

    regions maps region id to a dict of field values, or to a
    list of such dicts for collection regions. Setting blocks to
    None leaves the stored blocks untouched on save.
    """

    regions: Dict[str, Any] = field(default_factory=dict)
    blocks: Optional[List["BlockModel"]] = field(default_factory=list)


@dataclass
class BlockModel:
    """
    A content block.

    A block with items is a group; its items are stored as page
    blocks whose parent is the group's page block.
    """

    type: str
    fields: Dict[str, Any] = field(default_factory=dict)
    id: Optional[UUID] = None
    title: Optional[str] = None
    is_reusable: bool = False
    items: List["BlockModel"] = field(default_factory=list)
    page_block_id: Optional[UUID] = None


@dataclass
class SitemapItem:
    """A node in a site's navigation tree."""

    id: UUID
    title: str
    navigation_title: Optional[str]
    slug: Optional[str]
    route: Optional[str]
    parent_id: Optional[UUID]
    sort_order: int
    level: int
    page_type_id: str
    page_type_name: str
    is_hidden: bool = False
    published: Optional[datetime] = None
    original_page_id: Optional[UUID] = None
    items: List["SitemapItem"] = field(default_factory=list)

    @property
    def menu_title(self) -> str:
        return self.navigation_title or self.title


# ============================================================
# STAGED BLOCK DATA
# ============================================================


@dataclass
class StagedField:
    field_id: str
    sort_order: int
    value_type: str
    value: Optional[str]


@dataclass
class StagedBlock:
    id: UUID
    block_type: str
    title: Optional[str]
    is_reusable: bool
    fields: List[StagedField] = field(default_factory=list)


@dataclass
class StagedPageBlock:
    id: UUID
    parent_id: Optional[UUID]
    block: StagedBlock
