"""
Page Repository.

============================================================
PURPOSE
============================================================
CRUD over a site's page tree, keeping sibling order intact.

============================================================
TREE MAINTENANCE
============================================================
Every (site_id, parent_id) group holds sort orders 0..n-1.

- Moving a page first closes the gap at its old position
  (later siblings shift down), then opens a gap at the new
  position (siblings at/after the target shift up)
- Inserting a page opens a gap
- Deleting a page closes the gap it leaves

Target positions are clamped to the size of the new group so
no gaps can appear. Each shift is flushed before the next
query reads the group.

============================================================
COPIES
============================================================
A copy stores only its own position, titles and slug. Its
regions and blocks are read from the original, which must be
an existing non-copy page of the same page type.

============================================================
AFFECTED IDS
============================================================
move / save / delete return the ids of pages whose order
changed. save also returns the page's own id when it is new
or its title / navigation title changed, meaning the sitemap
must be rebuilt.

============================================================
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Type, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, selectinload

from content.models import PageInfo, PageModel, SitemapItem, StagedPageBlock
from content.page_types import PageTypeRegistry
from content.transformer import ContentTransformer
from core.clock import now_utc
from core.constants import CONTENT_TYPE_BLOG, STARTPAGE_SORT_ORDER
from storage.models.content import Block, BlockField, Page, PageBlock
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import (
    PageCopyError,
    PageDeleteError,
    PageMoveError,
    PageTypeNotFoundError,
    RecordNotFoundError,
)
from storage.repositories.page_queries import (
    build_page_query,
    content_load_options,
    sibling_count_query,
    sibling_query,
    site_pages_query,
)


M = TypeVar("M", bound=PageInfo)


def _unique(ids: Iterable[UUID]) -> List[UUID]:
    seen = set()
    result = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


class PageRepository(BaseRepository[Page]):
    """
    Repository for the page tree.

    ============================================================
    MODELS MANAGED
    ============================================================
    - Page, PageField: the page and its region values
    - Block, BlockField: page-owned blocks (reusable blocks are
      updated in place but never deleted here)
    - PageBlock: the page's ordered block sequence

    ============================================================
    UNIT OF WORK
    ============================================================
    move, save and delete each commit once. Rule violations
    are raised before anything is written.

    ============================================================
    """

    _unique_fields = {
        "uq_pages_site_slug": "slug",
        "pages.site_id, pages.slug": "slug",
        "pages_pkey": "page_id",
        "pages.id": "page_id",
        "blocks_pkey": "block_id",
        "blocks.id": "block_id",
        "page_blocks_pkey": "page_block_id",
        "page_blocks.id": "page_block_id",
        "uq_page_fields_position": "region_field",
        "page_fields.page_id, page_fields.region_id, page_fields.field_id, page_fields.sort_order": "region_field",
        "uq_block_fields_field": "block_field",
        "block_fields.block_id, block_fields.field_id": "block_field",
    }

    def __init__(
        self,
        session: Session,
        page_types: PageTypeRegistry,
        transformer: Optional[ContentTransformer] = None,
    ) -> None:
        super().__init__(session, Page, "PageRepository")
        self._page_types = page_types
        self._transformer = transformer or ContentTransformer()

    # =========================================================
    # MODEL CREATION
    # =========================================================

    def create(self, model_cls: Type[M] = PageModel, type_id: Optional[str] = None) -> M:
        """
        Create a blank page model of the given type.

        Args:
            model_cls: Model class to instantiate
            type_id: Page type id, defaults to the model class name

        Raises:
            PageTypeNotFoundError: If the page type is not registered
        """
        type_id = type_id or model_cls.__name__
        page_type = self._page_types.get_by_id(type_id)
        if page_type is None:
            raise PageTypeNotFoundError(self._repository_name, type_id)
        return self._transformer.create(model_cls, page_type)

    def copy(self, original: PageInfo, model_cls: Optional[Type[M]] = None) -> M:
        """
        Create a blank copy model of the given page.

        The copy shares the original's type and site, has no slug,
        and is not persisted until saved.
        """
        model = self.create(model_cls or type(original), original.type_id)
        model.original_page_id = original.id
        model.site_id = original.site_id
        model.slug = None
        return model

    # =========================================================
    # READ OPERATIONS
    # =========================================================

    def get_all(self, site_id: UUID, model_cls: Type[M] = PageModel) -> List[M]:
        """All pages of a site ordered by (parent_id, sort_order)."""
        pages = self._execute_query(site_pages_query(model_cls, site_id))
        return [self._to_model(page, model_cls) for page in pages]

    def get_all_blogs(self, site_id: UUID, model_cls: Type[M] = PageModel) -> List[M]:
        """All blog pages of a site ordered by (parent_id, sort_order)."""
        pages = self._execute_query(site_pages_query(model_cls, site_id, CONTENT_TYPE_BLOG))
        return [self._to_model(page, model_cls) for page in pages]

    def get_startpage(self, site_id: UUID, model_cls: Type[M] = PageModel) -> Optional[M]:
        """The site's start page: first page of the root group."""
        stmt, _ = build_page_query(model_cls)
        stmt = stmt.where(
            Page.site_id == site_id,
            Page.parent_id.is_(None),
            Page.sort_order == STARTPAGE_SORT_ORDER,
        )
        return self._load_one(stmt, model_cls)

    def get_by_id(self, page_id: UUID, model_cls: Type[M] = PageModel) -> Optional[M]:
        """Get a page by id, or None."""
        stmt, _ = build_page_query(model_cls)
        return self._load_one(stmt.where(Page.id == page_id), model_cls)

    def get_by_slug(self, slug: str, site_id: UUID, model_cls: Type[M] = PageModel) -> Optional[M]:
        """Get a page by slug within a site, or None."""
        stmt, _ = build_page_query(model_cls)
        return self._load_one(
            stmt.where(Page.site_id == site_id, Page.slug == slug),
            model_cls,
        )

    def get_sitemap(self, site_id: UUID) -> List[SitemapItem]:
        """
        Navigation tree of a site.

        Returns:
            Root items in sort order, each with its children nested
        """
        pages = self._execute_query(site_pages_query(PageInfo, site_id))

        by_parent: Dict[Optional[UUID], List[Page]] = defaultdict(list)
        for page in pages:
            by_parent[page.parent_id].append(page)

        return self._build_sitemap(by_parent, None, 0)

    def _build_sitemap(
        self,
        by_parent: Dict[Optional[UUID], List[Page]],
        parent_id: Optional[UUID],
        level: int,
    ) -> List[SitemapItem]:
        items = []
        for page in sorted(by_parent.get(parent_id, []), key=lambda p: p.sort_order):
            page_type = self._page_types.get_by_id(page.page_type_id)
            items.append(SitemapItem(
                id=page.id,
                title=page.title,
                navigation_title=page.navigation_title,
                slug=page.slug,
                route=page.route,
                parent_id=page.parent_id,
                sort_order=page.sort_order,
                level=level,
                page_type_id=page.page_type_id,
                page_type_name=page_type.display_title if page_type else page.page_type_id,
                is_hidden=page.is_hidden,
                published=page.published,
                original_page_id=page.original_page_id,
                items=self._build_sitemap(by_parent, page.id, level + 1),
            ))
        return items

    def _load_one(self, stmt, model_cls: Type[M]) -> Optional[M]:
        page = self._execute_scalar(stmt)
        if page is None:
            return None
        return self._to_model(page, model_cls)

    def _to_model(self, page: Page, model_cls: Type[M]) -> M:
        if page.original_page_id is not None:
            return self._map_original_page(page, model_cls)
        page_type = self._page_types.get_by_id(page.page_type_id)
        return self._transformer.to_model(page, page_type, model_cls)

    def _map_original_page(self, page: Page, model_cls: Type[M]) -> M:
        """Original's content overlaid with the copy's own properties."""
        stmt, _ = build_page_query(model_cls)
        original = self._execute_scalar(stmt.where(Page.id == page.original_page_id))
        source = page
        if original is None:
            self._logger.warning(
                f"Original page {page.original_page_id} of copy {page.id} not found"
            )
        else:
            source = original

        page_type = self._page_types.get_by_id(source.page_type_id)
        model = self._transformer.to_model(source, page_type, model_cls)

        model.id = page.id
        model.site_id = page.site_id
        model.parent_id = page.parent_id
        model.sort_order = page.sort_order
        model.title = page.title
        model.navigation_title = page.navigation_title
        model.slug = page.slug
        model.route = page.route
        model.is_hidden = page.is_hidden
        model.published = page.published
        model.original_page_id = page.original_page_id
        model.created = page.created_at
        model.last_modified = page.updated_at
        return model

    # =========================================================
    # MOVE
    # =========================================================

    def move(self, model: PageInfo, parent_id: Optional[UUID], sort_order: int) -> List[UUID]:
        """
        Move a page within its site's tree.

        The stored position is the source of truth; the model's
        parent_id and sort_order are updated to the final position.

        Args:
            model: The page to move
            parent_id: New parent, None for the root group
            sort_order: Target index in the new group (clamped)

        Returns:
            Ids of the other pages whose sort order changed

        Raises:
            RecordNotFoundError: If the page or new parent does not exist
            PageMoveError: If the new parent is inside the page's subtree
                or belongs to another site
        """
        affected: List[UUID] = []

        with self._unit_of_work("move", {"page_id": str(model.id)}):
            page = self._get_by_id(model.id, refresh=True)
            if page is None:
                raise RecordNotFoundError(
                    self._repository_name, model.id, "page_id", operation="move"
                )
            self._check_parent(page.id, page.site_id, parent_id, "move")
            affected = self._reposition(page, page.site_id, parent_id, sort_order)

        model.parent_id = page.parent_id
        model.sort_order = page.sort_order

        self._logger.info(
            f"Moved page {page.id} to parent={page.parent_id} "
            f"sort_order={page.sort_order}, {len(affected)} sibling(s) affected"
        )
        return affected

    def _reposition(
        self,
        page: Page,
        site_id: UUID,
        parent_id: Optional[UUID],
        sort_order: int,
    ) -> List[UUID]:
        """Close the gap at the page's stored position and open one at the target."""
        target = self._clamp_sort_order(site_id, parent_id, sort_order, exclude_id=page.id)
        if (page.site_id, page.parent_id, page.sort_order) == (site_id, parent_id, target):
            return []

        affected = self._move_pages(page.id, page.site_id, page.parent_id, page.sort_order + 1, False)
        affected += self._move_pages(page.id, site_id, parent_id, target, True)

        page.site_id = site_id
        page.parent_id = parent_id
        page.sort_order = target
        return _unique(affected)

    def _move_pages(
        self,
        page_id: UUID,
        site_id: UUID,
        parent_id: Optional[UUID],
        sort_order: int,
        increase: bool,
    ) -> List[UUID]:
        """
        Shift every page of a group at or after sort_order by one.

        Args:
            page_id: The page being moved, excluded from the shift
            increase: Open a gap when True, close one when False

        Returns:
            Ids of the shifted pages
        """
        pages = self._execute_query(
            sibling_query(site_id, parent_id, sort_order, exclude_id=page_id)
        )
        for page in pages:
            page.sort_order = page.sort_order + 1 if increase else page.sort_order - 1
        self._session.flush()

        self._logger.debug(
            f"Shifted {len(pages)} page(s) in group site={site_id} parent={parent_id} "
            f"from sort_order {sort_order} {'up' if increase else 'down'}"
        )
        return [page.id for page in pages]

    def _clamp_sort_order(
        self,
        site_id: UUID,
        parent_id: Optional[UUID],
        sort_order: int,
        exclude_id: Optional[UUID] = None,
    ) -> int:
        count = self._session.execute(
            sibling_count_query(site_id, parent_id, exclude_id)
        ).scalar() or 0
        return max(0, min(sort_order, count))

    def _check_parent(
        self,
        page_id: Optional[UUID],
        site_id: UUID,
        parent_id: Optional[UUID],
        operation: str,
    ) -> None:
        """
        Verify the parent exists in the same site and is not inside
        the page's subtree.

        Raises:
            RecordNotFoundError: If the parent does not exist
            PageMoveError: If the parent is the page, a descendant, or
                a page of another site
        """
        if parent_id is None:
            return

        ancestor_id: Optional[UUID] = parent_id
        while ancestor_id is not None:
            if ancestor_id == page_id:
                raise PageMoveError(self._repository_name, page_id, parent_id, operation)
            ancestor = self._get_by_id(ancestor_id, refresh=True)
            if ancestor is None:
                raise RecordNotFoundError(
                    self._repository_name, ancestor_id, "parent_id", operation=operation
                )
            if ancestor_id == parent_id and ancestor.site_id != site_id:
                raise PageMoveError(
                    self._repository_name, page_id, parent_id, operation,
                    reason=f"parent {parent_id} belongs to site {ancestor.site_id}, not {site_id}",
                )
            ancestor_id = ancestor.parent_id

    # =========================================================
    # SAVE
    # =========================================================

    def save(self, model: PageInfo) -> List[UUID]:
        """
        Insert or update a page.

        New pages get an id (written back to the model) and a gap is
        opened at their position. Moved pages are re-positioned.
        Copies are validated and store only their own properties;
        other pages have their region fields and blocks reconciled.

        Returns:
            Ids of re-ordered siblings, plus the page's own id when it
            is new or its title / navigation title changed. Empty when
            the page type is not registered.

        Raises:
            PageCopyError: If the copy relationship is invalid
            PageMoveError: If the parent is inside the page's subtree or
                belongs to another site
            RecordNotFoundError: If the parent does not exist
            DuplicateRecordError: If the slug is taken within the site
            ValueCodecError: If a region value does not fit its field
        """
        page_type = self._page_types.get_by_id(model.type_id)
        if page_type is None:
            self._logger.warning(
                f"Page type {model.type_id!r} is not registered, page {model.id} not saved"
            )
            return []

        model.content_type = page_type.content_type
        affected: List[UUID] = []
        now = now_utc()

        context = {"page_id": str(model.id), "slug": model.slug}
        with self._unit_of_work("save", context):
            page = self._get_by_id(model.id, content_load_options(), refresh=True) if model.id else None
            is_new = page is None

            if model.original_page_id is not None:
                self._validate_copy(model)
            self._check_parent(model.id, model.site_id, model.parent_id, "save")

            if is_new:
                page_id = model.id or uuid4()
                context["page_id"] = str(page_id)
                sort_order = self._clamp_sort_order(model.site_id, model.parent_id, model.sort_order)
                affected += self._move_pages(page_id, model.site_id, model.parent_id, sort_order, True)
                page = Page(id=page_id, created_at=now)
            elif (page.site_id, page.parent_id, page.sort_order) != (
                model.site_id, model.parent_id, model.sort_order
            ):
                affected += self._reposition(page, model.site_id, model.parent_id, model.sort_order)
                sort_order = page.sort_order
            else:
                sort_order = page.sort_order

            if is_new or page.title != model.title or page.navigation_title != model.navigation_title:
                affected.append(page.id)

            is_copy = model.original_page_id is not None
            self._transformer.transform(model, page_type, page, include_content=not is_copy)
            page.sort_order = sort_order
            page.updated_at = now
            if is_new:
                self._session.add(page)

            blocks = getattr(model, "blocks", None)
            if not is_copy and blocks is not None:
                if page_type.use_blocks:
                    self._save_blocks(page, self._transformer.transform_blocks(blocks), now)
                elif blocks:
                    self._logger.warning(
                        f"Page type {page_type.id} does not use blocks, "
                        f"{len(blocks)} block(s) on page {page.id} ignored"
                    )

        # Only written back once the page is committed
        model.id = page.id
        model.sort_order = page.sort_order
        model.created = page.created_at
        model.last_modified = page.updated_at
        affected = _unique(affected)

        self._logger.info(
            f"Saved {'new ' if is_new else ''}page {page.id} ({page_type.id}), "
            f"{len(affected)} page(s) affected"
        )
        return affected

    def _validate_copy(self, model: PageInfo) -> None:
        """
        Check the copy relationship before anything is written.

        Raises:
            PageCopyError: On any violated copy rule
        """
        def reject(reason: str) -> None:
            raise PageCopyError(self._repository_name, model.id, model.original_page_id, reason)

        if model.original_page_id == model.id:
            reject("a page can not be a copy of itself")

        original = self._get_by_id(model.original_page_id, refresh=True)
        if original is None:
            reject("original page not found")
        if original.original_page_id is not None:
            reject("can not set copy of a copy")
        if original.page_type_id != model.type_id:
            reject("copy can not have a different page type")

        if model.id is not None and self._count(Page.original_page_id == model.id):
            reject("a page with copies can not become a copy")

    def _save_blocks(self, page: Page, staged: List[StagedPageBlock], now) -> None:
        """
        Reconcile the page's blocks with the staged list.

        Non-reusable blocks no longer on the page are deleted. The
        page block sequence is rebuilt with fresh sort orders.
        """
        current = {s.block.id for s in staged}
        removed = [
            pb.block for pb in page.blocks
            if pb.block_id not in current and not pb.block.is_reusable
        ]

        page.blocks.clear()
        for block in removed:
            self._session.delete(block)
        # Old page blocks must be gone before rows with reused ids are inserted
        self._session.flush()

        # Pending blocks are invisible to session.get without autoflush
        written: Dict[UUID, Block] = {}

        for index, staged_page_block in enumerate(staged):
            staged_block = staged_page_block.block
            block = written.get(staged_block.id)
            if block is None:
                block = self._session.get(
                    Block, staged_block.id, options=[selectinload(Block.fields)]
                )
            if block is None:
                block = Block(id=staged_block.id, created_at=now)
                self._session.add(block)
            written[staged_block.id] = block

            block.block_type = staged_block.block_type
            block.is_reusable = staged_block.is_reusable
            block.title = staged_block.title
            block.updated_at = now

            current_fields = {f.field_id for f in staged_block.fields}
            for block_field in list(block.fields):
                if block_field.field_id not in current_fields:
                    block.fields.remove(block_field)

            existing = {f.field_id: f for f in block.fields}
            for staged_field in staged_block.fields:
                block_field = existing.get(staged_field.field_id)
                if block_field is None:
                    block_field = BlockField(field_id=staged_field.field_id)
                    block.fields.append(block_field)
                    existing[staged_field.field_id] = block_field
                block_field.sort_order = staged_field.sort_order
                block_field.value_type = staged_field.value_type
                block_field.value = staged_field.value

            page.blocks.append(PageBlock(
                id=staged_page_block.id,
                parent_id=staged_page_block.parent_id,
                block=block,
                sort_order=index,
            ))

        self._logger.debug(
            f"Page {page.id}: {len(staged)} block(s) written, {len(removed)} removed"
        )

    # =========================================================
    # DELETE
    # =========================================================

    def delete(self, page_id: UUID) -> List[UUID]:
        """
        Delete a page and its page-owned blocks.

        Returns:
            Ids of the siblings shifted to close the gap; empty when
            the page does not exist

        Raises:
            PageDeleteError: If the page has copies or children
        """
        affected: List[UUID] = []

        with self._unit_of_work("delete", {"page_id": str(page_id)}):
            page = self._get_by_id(page_id, content_load_options(), refresh=True)
            if page is None:
                return affected

            copies = self._count(Page.original_page_id == page.id)
            if copies:
                raise PageDeleteError(self._repository_name, page.id, "copies", copies)

            children = self._count(Page.parent_id == page.id)
            if children:
                raise PageDeleteError(self._repository_name, page.id, "children", children)

            owned = [pb.block for pb in page.blocks if not pb.block.is_reusable]
            self._session.delete(page)
            for block in owned:
                self._session.delete(block)
            self._session.flush()

            affected = self._move_pages(
                page.id, page.site_id, page.parent_id, page.sort_order + 1, False
            )

        self._logger.info(
            f"Deleted page {page_id} with {len(owned)} block(s), "
            f"{len(affected)} sibling(s) affected"
        )
        return affected
