"""
Tests for PageRepository.

============================================================
PURPOSE
============================================================
Covers the page tree store end to end on SQLite:
1. Model creation and copies
2. Reads (by id, slug, start page, blogs, tree order)
3. Insert / update and region fields
4. Move and sibling re-ordering
5. Block reconciliation
6. Delete rules
7. Sitemap
8. Naming the field of unique violations

============================================================
"""

import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError as SQLAlchemyIntegrityError

from content.models import BlockModel, PageInfo, PageModel
from content.values import ValueCodecError
from storage.models import Block, BlockField, Page, PageBlock, PageField
from storage.repositories import (
    DuplicateRecordError,
    PageCopyError,
    PageDeleteError,
    PageMoveError,
    PageTypeNotFoundError,
    RecordNotFoundError,
)


def assert_dense(positions):
    """Every (parent) group holds sort orders 0..n-1."""
    groups = defaultdict(list)
    for parent_id, sort_order in positions.values():
        groups[parent_id].append(sort_order)
    for orders in groups.values():
        assert sorted(orders) == list(range(len(orders)))


def count_rows(session_factory, model, *conditions):
    with session_factory() as session:
        stmt = select(func.count()).select_from(model)
        if conditions:
            stmt = stmt.where(*conditions)
        return session.execute(stmt).scalar()


# ============================================================
# CREATE / COPY
# ============================================================

class TestCreate:
    """Tests for blank model creation."""

    def test_create_fills_regions_from_page_type(self, repo):
        page = repo.create(type_id="StandardPage")

        assert isinstance(page, PageModel)
        assert page.id is None
        assert page.type_id == "StandardPage"
        assert page.content_type == "Page"
        assert page.regions == {"Hero": {"Heading": "", "Ingress": None}, "Links": []}
        assert page.blocks == []

    def test_create_blog_type_sets_content_type(self, repo):
        page = repo.create(type_id="BlogArchive")

        assert page.content_type == "Blog"
        assert page.regions == {"Settings": {"PageSize": 10}}

    def test_create_summary_model(self, repo):
        page = repo.create(PageInfo, "StandardPage")

        assert type(page) is PageInfo
        assert not hasattr(page, "regions")

    def test_type_id_defaults_to_class_name(self, repo):
        class StandardPage(PageModel):
            pass

        page = repo.create(StandardPage)

        assert isinstance(page, StandardPage)
        assert page.type_id == "StandardPage"

    def test_create_unknown_type_raises(self, repo):
        with pytest.raises(PageTypeNotFoundError) as exc_info:
            repo.create(type_id="Missing")

        assert exc_info.value.type_id == "Missing"

    def test_create_defaults_are_not_shared(self, repo):
        first = repo.create(type_id="StandardPage")
        first.regions["Hero"]["Heading"] = "changed"

        second = repo.create(type_id="StandardPage")

        assert second.regions["Hero"]["Heading"] == ""

    def test_copy_references_original(self, repo, make_page):
        original = make_page("About")

        copy = repo.copy(original)

        assert copy.id is None
        assert copy.original_page_id == original.id
        assert copy.type_id == original.type_id
        assert copy.site_id == original.site_id
        assert copy.slug is None
        assert copy.is_copy


# ============================================================
# READS
# ============================================================

class TestReads:
    """Tests for page lookups."""

    def test_get_by_id_missing_returns_none(self, repo):
        assert repo.get_by_id(uuid.uuid4()) is None

    def test_get_by_slug_is_scoped_to_site(self, repo, make_page, site_id):
        page = make_page("About")
        make_page("About", site=uuid.uuid4())

        found = repo.get_by_slug("about", site_id)

        assert found.id == page.id
        assert repo.get_by_slug("about", uuid.uuid4()) is None

    def test_get_startpage(self, repo, make_page, site_id):
        home = make_page("Home")
        make_page("About")
        make_page("Team", parent_id=home.id)

        startpage = repo.get_startpage(site_id)

        assert startpage.id == home.id
        assert startpage.is_startpage

    def test_get_startpage_empty_site(self, repo, site_id):
        assert repo.get_startpage(site_id) is None

    def test_get_all_is_tree_ordered(self, reload, make_page, site_id):
        home = make_page("Home")
        make_page("About")
        make_page("Child B", parent_id=home.id)
        make_page("Child A", parent_id=home.id, sort_order=0)

        pages = reload().get_all(site_id)

        assert [p.title for p in pages] == ["Home", "About", "Child A", "Child B"]

    def test_get_all_blogs_only_returns_blog_pages(self, repo, make_page, site_id):
        make_page("Home")
        blog = make_page("News", type_id="BlogArchive")

        blogs = repo.get_all_blogs(site_id)

        assert [b.id for b in blogs] == [blog.id]
        assert blogs[0].content_type == "Blog"

    def test_summary_load_skips_content(self, reload, make_page):
        page = make_page("About")

        info = reload().get_by_id(page.id, PageInfo)

        assert type(info) is PageInfo
        assert info.title == "About"
        assert info.type_id == "StandardPage"


# ============================================================
# SAVE
# ============================================================

class TestSave:
    """Tests for insert and update."""

    def test_new_page_gets_id_and_is_affected(self, repo, site_id):
        page = repo.create(type_id="StandardPage")
        page.site_id = site_id
        page.title = "Home"

        affected = repo.save(page)

        assert page.id is not None
        assert affected == [page.id]

    def test_new_page_keeps_given_id(self, repo, site_id):
        page_id = uuid.uuid4()
        page = repo.create(type_id="StandardPage")
        page.id = page_id
        page.site_id = site_id
        page.title = "Home"

        repo.save(page)

        assert repo.get_by_id(page_id).title == "Home"

    def test_insert_opens_gap(self, make_page, positions):
        make_page("A")
        make_page("B")
        make_page("C")

        d = make_page("D", sort_order=1)

        assert positions() == {"A": (None, 0), "D": (None, 1), "B": (None, 2), "C": (None, 3)}
        assert d.sort_order == 1

    def test_insert_returns_shifted_siblings(self, repo, make_page, site_id):
        make_page("A")
        b = make_page("B")
        c = make_page("C")

        page = repo.create(type_id="StandardPage")
        page.site_id = site_id
        page.title = "D"
        page.slug = "d"
        page.sort_order = 1
        affected = repo.save(page)

        assert set(affected) == {b.id, c.id, page.id}

    def test_insert_clamps_sort_order(self, make_page, positions):
        make_page("A")
        make_page("B", sort_order=42)

        assert positions() == {"A": (None, 0), "B": (None, 1)}

    def test_unchanged_save_returns_nothing(self, reload, make_page):
        page = make_page("About")
        loaded = reload().get_by_id(page.id)

        assert reload().save(loaded) == []

    def test_title_change_returns_page_id(self, reload, make_page):
        page = make_page("About")
        writer = reload()
        loaded = writer.get_by_id(page.id)
        loaded.title = "About us"

        assert writer.save(loaded) == [page.id]
        assert reload().get_by_id(page.id).title == "About us"

    def test_navigation_title_change_returns_page_id(self, reload, make_page):
        page = make_page("About")
        writer = reload()
        loaded = writer.get_by_id(page.id)
        loaded.navigation_title = "Us"

        assert writer.save(loaded) == [page.id]

    def test_unknown_page_type_is_not_saved(self, repo, session_factory, site_id):
        page = PageModel(type_id="Missing", site_id=site_id, title="Lost")

        assert repo.save(page) == []
        assert page.id is None
        assert count_rows(session_factory, Page) == 0

    def test_regions_round_trip(self, reload, make_page):
        target = make_page("Target")
        published = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)
        page = make_page(
            "About",
            published=published,
            regions={
                "Hero": {"Heading": "Welcome", "Ingress": "Hello there"},
                "Links": [
                    {"Label": "Target", "Target": target.id},
                    {"Label": "Nowhere", "Target": None},
                ],
            },
        )

        loaded = reload().get_by_id(page.id)

        assert loaded.regions == {
            "Hero": {"Heading": "Welcome", "Ingress": "Hello there"},
            "Links": [
                {"Label": "Target", "Target": target.id},
                {"Label": "Nowhere", "Target": None},
            ],
        }
        assert loaded.published == published

    def test_shrinking_collection_removes_fields(self, reload, session_factory, make_page):
        page = make_page("About", regions={
            "Hero": {"Heading": "x"},
            "Links": [{"Label": "one"}, {"Label": "two"}, {"Label": "three"}],
        })
        writer = reload()
        loaded = writer.get_by_id(page.id)
        loaded.regions["Links"] = [{"Label": "only"}]

        writer.save(loaded)

        assert reload().get_by_id(page.id).regions["Links"] == [{"Label": "only", "Target": None}]
        links = count_rows(
            session_factory, PageField,
            PageField.page_id == page.id, PageField.region_id == "Links",
        )
        assert links == 2

    def test_values_keep_their_types(self, reload, make_page):
        page = make_page(
            "Archive", type_id="BlogArchive", regions={"Settings": {"PageSize": Decimal("1.50")}},
        )

        settings = reload().get_by_id(page.id).regions["Settings"]

        assert settings["PageSize"] == Decimal("1.50")
        assert isinstance(settings["PageSize"], Decimal)

    def test_field_type_mismatch_raises(self, session_factory, make_page):
        with pytest.raises(ValueCodecError):
            make_page("About", regions={"Hero": {"Heading": 3}})

        assert count_rows(session_factory, Page) == 0

    def test_duplicate_slug_in_site_raises(self, make_page):
        make_page("About", slug="about")

        with pytest.raises(DuplicateRecordError) as exc_info:
            make_page("About again", slug="about")

        assert exc_info.value.constraint_field == "slug"
        assert exc_info.value.value == "about"

    def test_failed_insert_leaves_model_unsaved(self, repo, make_page, site_id):
        make_page("About", slug="about")
        page = repo.create(type_id="StandardPage")
        page.site_id = site_id
        page.title = "About again"
        page.slug = "about"
        page.sort_order = 5

        with pytest.raises(DuplicateRecordError):
            repo.save(page)

        assert page.id is None
        assert page.sort_order == 5
        assert page.created is None

    def test_parent_in_other_site_raises(self, make_page, session_factory):
        parent = make_page("Parent", site=uuid.uuid4())

        with pytest.raises(PageMoveError):
            make_page("Child", parent_id=parent.id)

        assert count_rows(session_factory, Page) == 1

    def test_blocks_ignored_for_type_without_blocks(self, repo, registry, reload, session_factory, site_id):
        registry.register({"id": "NoBlocks", "use_blocks": False})
        page = repo.create(type_id="NoBlocks")
        page.site_id = site_id
        page.title = "Plain"
        page.blocks = [BlockModel(type="Text", fields={"Body": "x"})]

        repo.save(page)

        assert reload().get_by_id(page.id).blocks == []
        assert count_rows(session_factory, Block) == 0

    def test_missing_parent_raises(self, make_page):
        with pytest.raises(RecordNotFoundError) as exc_info:
            make_page("Orphan", parent_id=uuid.uuid4())

        assert exc_info.value.id_field == "parent_id"

    def test_save_with_changed_position_moves_page(self, reload, make_page, positions):
        make_page("A")
        b = make_page("B")
        make_page("C")
        writer = reload()
        loaded = writer.get_by_id(b.id)
        loaded.sort_order = 0

        writer.save(loaded)

        assert positions() == {"B": (None, 0), "A": (None, 1), "C": (None, 2)}

    def test_timestamps(self, repo, reload, make_page, fixed_clock):
        start = fixed_clock.now()
        page = make_page("About")

        assert page.created == start
        assert page.last_modified == start

        fixed_clock.advance(hours=1)
        page.title = "About us"
        repo.save(page)

        assert page.created == start
        assert page.last_modified == start + timedelta(hours=1)

        loaded = reload().get_by_id(page.id)
        assert loaded.created == start
        assert loaded.created.tzinfo == timezone.utc
        assert loaded.last_modified == start + timedelta(hours=1)


# ============================================================
# MOVE
# ============================================================

class TestMove:
    """Tests for moving pages and sibling re-ordering."""

    def test_move_within_group(self, repo, make_page, positions):
        a = make_page("A")
        b = make_page("B")
        c = make_page("C")
        d = make_page("D")

        affected = repo.move(a, None, 2)

        assert positions() == {"B": (None, 0), "C": (None, 1), "A": (None, 2), "D": (None, 3)}
        assert set(affected) == {b.id, c.id, d.id}
        assert (a.parent_id, a.sort_order) == (None, 2)

    def test_move_up_within_group(self, repo, make_page, positions):
        make_page("A")
        make_page("B")
        make_page("C")
        d = make_page("D")

        repo.move(d, None, 0)

        assert positions() == {"D": (None, 0), "A": (None, 1), "B": (None, 2), "C": (None, 3)}

    def test_move_to_other_parent(self, repo, make_page, positions):
        a = make_page("A")
        b = make_page("B")
        c = make_page("C")
        child = make_page("Child", parent_id=a.id)

        affected = repo.move(b, a.id, 0)

        assert positions() == {
            "A": (None, 0),
            "C": (None, 1),
            "B": (a.id, 0),
            "Child": (a.id, 1),
        }
        assert set(affected) == {c.id, child.id}

    def test_move_clamps_sort_order(self, repo, make_page, positions):
        a = make_page("A")
        make_page("B")
        make_page("C")

        repo.move(a, None, 99)

        assert positions() == {"B": (None, 0), "C": (None, 1), "A": (None, 2)}
        assert a.sort_order == 2

    def test_move_to_same_position_is_noop(self, repo, make_page):
        make_page("A")
        b = make_page("B")

        assert repo.move(b, None, 1) == []

    def test_move_uses_stored_position(self, repo, reload, make_page, positions):
        a = make_page("A")
        b = make_page("B")
        c = make_page("C")
        reload().delete(a.id)

        # b still says sort_order 1, stored value is 0
        assert b.sort_order == 1
        repo.move(c, None, 0)

        assert positions() == {"C": (None, 0), "B": (None, 1)}

    def test_move_into_own_subtree_raises(self, repo, make_page, positions):
        a = make_page("A")
        child = make_page("Child", parent_id=a.id)
        grandchild = make_page("Grandchild", parent_id=child.id)
        before = positions()

        with pytest.raises(PageMoveError):
            repo.move(a, grandchild.id, 0)
        with pytest.raises(PageMoveError):
            repo.move(a, a.id, 0)

        assert positions() == before

    def test_move_under_page_of_other_site_raises(self, repo, make_page, positions):
        a = make_page("A")
        make_page("B")
        foreign = make_page("Foreign", site=uuid.uuid4())
        before = positions()

        with pytest.raises(PageMoveError):
            repo.move(a, foreign.id, 0)

        assert positions() == before
        assert (a.parent_id, a.sort_order) == (None, 0)

    def test_move_missing_page_raises(self, repo, site_id):
        ghost = PageInfo(id=uuid.uuid4(), site_id=site_id)

        with pytest.raises(RecordNotFoundError):
            repo.move(ghost, None, 0)

    def test_sequence_of_moves_keeps_groups_dense(self, repo, make_page, positions):
        root = [make_page(f"R{i}") for i in range(4)]
        children = [make_page(f"C{i}", parent_id=root[0].id) for i in range(3)]

        repo.move(children[1], None, 1)
        repo.move(root[3], root[0].id, 0)
        repo.move(root[1], root[2].id, 5)
        repo.move(children[0], None, 0)
        repo.move(root[2], None, 99)

        assert_dense(positions())


# ============================================================
# BLOCKS
# ============================================================

class TestBlocks:
    """Tests for block reconciliation on save."""

    def test_blocks_round_trip(self, reload, make_page):
        page = make_page("About", blocks=[
            BlockModel(type="TextBlock", fields={"Body": "Hello", "Size": 2}),
            BlockModel(type="ColumnBlock", items=[
                BlockModel(type="TextBlock", fields={"Body": "Left"}),
                BlockModel(type="ImageBlock", fields={"Url": "/a.png"}),
            ]),
            BlockModel(type="QuoteBlock", title="Quote", fields={"Text": "Hi"}),
        ])

        blocks = reload().get_by_id(page.id).blocks

        assert [b.type for b in blocks] == ["TextBlock", "ColumnBlock", "QuoteBlock"]
        assert blocks[0].fields == {"Body": "Hello", "Size": 2}
        assert [i.type for i in blocks[1].items] == ["TextBlock", "ImageBlock"]
        assert blocks[1].items[0].fields == {"Body": "Left"}
        assert blocks[2].title == "Quote"

    def test_page_block_sort_orders_are_sequential(self, session_factory, make_page):
        page = make_page("About", blocks=[
            BlockModel(type="ColumnBlock", items=[BlockModel(type="TextBlock")]),
            BlockModel(type="TextBlock"),
        ])

        with session_factory() as session:
            orders = session.execute(
                select(PageBlock.sort_order)
                .where(PageBlock.page_id == page.id)
                .order_by(PageBlock.sort_order)
            ).scalars().all()

        assert orders == [0, 1, 2]

    def test_reorder_blocks(self, reload, make_page):
        page = make_page("About", blocks=[
            BlockModel(type="A"),
            BlockModel(type="B"),
            BlockModel(type="C"),
        ])
        writer = reload()
        loaded = writer.get_by_id(page.id)
        loaded.blocks = list(reversed(loaded.blocks))

        writer.save(loaded)

        assert [b.type for b in reload().get_by_id(page.id).blocks] == ["C", "B", "A"]

    def test_removed_block_is_deleted(self, reload, session_factory, make_page):
        page = make_page("About", blocks=[BlockModel(type="A"), BlockModel(type="B")])
        removed_id = page.blocks[1].id
        writer = reload()
        loaded = writer.get_by_id(page.id)
        loaded.blocks = loaded.blocks[:1]

        writer.save(loaded)

        assert [b.type for b in reload().get_by_id(page.id).blocks] == ["A"]
        assert count_rows(session_factory, Block, Block.id == removed_id) == 0

    def test_removed_reusable_block_is_kept(self, reload, session_factory, make_page):
        shared = BlockModel(type="Banner", is_reusable=True, fields={"Text": "Sale"})
        page = make_page("About", blocks=[shared])
        writer = reload()
        loaded = writer.get_by_id(page.id)
        loaded.blocks = []

        writer.save(loaded)

        assert reload().get_by_id(page.id).blocks == []
        assert count_rows(session_factory, Block, Block.id == shared.id) == 1

    def test_removed_block_field_is_deleted(self, reload, session_factory, make_page):
        page = make_page("About", blocks=[BlockModel(type="A", fields={"One": 1, "Two": 2})])
        writer = reload()
        loaded = writer.get_by_id(page.id)
        loaded.blocks[0].fields = {"Two": 20}

        writer.save(loaded)

        block = reload().get_by_id(page.id).blocks[0]
        assert block.fields == {"Two": 20}
        assert count_rows(session_factory, BlockField, BlockField.block_id == block.id) == 1

    def test_none_blocks_leave_stored_blocks(self, reload, make_page):
        page = make_page("About", blocks=[BlockModel(type="A")])
        writer = reload()
        loaded = writer.get_by_id(page.id)
        loaded.blocks = None
        loaded.title = "About us"

        writer.save(loaded)

        assert [b.type for b in reload().get_by_id(page.id).blocks] == ["A"]

    def test_block_ids_written_back(self, make_page):
        block = BlockModel(type="A")

        make_page("About", blocks=[block])

        assert block.id is not None
        assert block.page_block_id is not None

    def test_resaving_same_blocks_is_stable(self, reload, session_factory, make_page):
        page = make_page("About", blocks=[BlockModel(type="A"), BlockModel(type="B")])
        writer = reload()
        loaded = writer.get_by_id(page.id)

        writer.save(loaded)

        assert [b.id for b in reload().get_by_id(page.id).blocks] == [b.id for b in page.blocks]
        assert count_rows(session_factory, Block) == 2

    def test_same_new_block_placed_twice(self, reload, session_factory, make_page):
        shared = uuid.uuid4()
        page = make_page("About", blocks=[
            BlockModel(type="Banner", id=shared, is_reusable=True, fields={"Text": "Sale"}),
            BlockModel(type="TextBlock"),
            BlockModel(type="Banner", id=shared, is_reusable=True, fields={"Text": "Sale"}),
        ])

        blocks = reload().get_by_id(page.id).blocks

        assert [b.id for b in blocks] == [shared, blocks[1].id, shared]
        assert blocks[0].page_block_id != blocks[2].page_block_id
        assert count_rows(session_factory, Block, Block.id == shared) == 1
        assert count_rows(session_factory, BlockField, BlockField.block_id == shared) == 1

    def test_page_block_id_of_other_page_is_reported(self, reload, make_page, site_id):
        first = make_page("First", blocks=[BlockModel(type="A")])
        writer = reload()
        page = writer.create(type_id="StandardPage")
        page.site_id = site_id
        page.title = "Second"
        page.slug = "second"
        page.blocks = [BlockModel(type="B", page_block_id=first.blocks[0].page_block_id)]

        with pytest.raises(DuplicateRecordError) as exc_info:
            writer.save(page)

        assert exc_info.value.constraint_field == "page_block_id"
        assert page.id is None


# ============================================================
# COPIES
# ============================================================

class TestCopies:
    """Tests for page copies."""

    def test_copy_reads_original_content(self, repo, reload, session_factory, make_page):
        original = make_page(
            "About",
            regions={"Hero": {"Heading": "Original"}, "Links": []},
            blocks=[BlockModel(type="TextBlock", fields={"Body": "Shared"})],
        )
        copy = repo.copy(original)
        copy.title = "About (copy)"
        copy.slug = "about-copy"
        copy.sort_order = 99
        repo.save(copy)

        loaded = reload().get_by_id(copy.id)

        assert loaded.id == copy.id
        assert loaded.title == "About (copy)"
        assert loaded.slug == "about-copy"
        assert loaded.sort_order == 1
        assert loaded.original_page_id == original.id
        assert loaded.regions["Hero"]["Heading"] == "Original"
        assert [b.fields for b in loaded.blocks] == [{"Body": "Shared"}]
        assert count_rows(session_factory, PageField, PageField.page_id == copy.id) == 0
        assert count_rows(session_factory, PageBlock, PageBlock.page_id == copy.id) == 0

    def test_copy_follows_original_changes(self, repo, reload, make_page):
        original = make_page("About", regions={"Hero": {"Heading": "v1"}})
        copy = repo.copy(original)
        copy.title = "Copy"
        copy.slug = "copy"
        repo.save(copy)

        writer = reload()
        loaded = writer.get_by_id(original.id)
        loaded.regions["Hero"]["Heading"] = "v2"
        writer.save(loaded)

        assert reload().get_by_id(copy.id).regions["Hero"]["Heading"] == "v2"

    def test_copy_of_copy_raises(self, repo, make_page, session_factory):
        original = make_page("About")
        copy = repo.copy(original)
        copy.title = "Copy"
        copy.slug = "copy"
        repo.save(copy)

        second = repo.copy(copy)
        second.title = "Copy of copy"
        second.slug = "copy-of-copy"

        with pytest.raises(PageCopyError) as exc_info:
            repo.save(second)

        assert "copy of a copy" in exc_info.value.reason
        assert count_rows(session_factory, Page) == 2

    def test_copy_with_different_type_raises(self, repo, make_page):
        original = make_page("About")
        copy = repo.copy(original)
        copy.type_id = "BlogArchive"
        copy.title = "Copy"

        with pytest.raises(PageCopyError) as exc_info:
            repo.save(copy)

        assert "different page type" in exc_info.value.reason

    def test_copy_of_missing_original_raises(self, repo, site_id):
        copy = repo.create(type_id="StandardPage")
        copy.site_id = site_id
        copy.title = "Copy"
        copy.original_page_id = uuid.uuid4()

        with pytest.raises(PageCopyError):
            repo.save(copy)

    def test_copy_of_itself_raises(self, repo, make_page):
        page = make_page("About")
        page.original_page_id = page.id

        with pytest.raises(PageCopyError):
            repo.save(page)

    def test_page_with_copies_cannot_become_copy(self, repo, make_page):
        original = make_page("About")
        other = make_page("Other")
        copy = repo.copy(original)
        copy.title = "Copy"
        copy.slug = "copy"
        repo.save(copy)

        original.original_page_id = other.id

        with pytest.raises(PageCopyError):
            repo.save(original)


# ============================================================
# DELETE
# ============================================================

class TestDelete:
    """Tests for page deletion."""

    def test_delete_closes_gap(self, repo, make_page, positions):
        a = make_page("A")
        make_page("B")
        c = make_page("C")
        d = make_page("D")

        b_id = repo.get_by_slug("b", a.site_id).id
        affected = repo.delete(b_id)

        assert positions() == {"A": (None, 0), "C": (None, 1), "D": (None, 2)}
        assert set(affected) == {c.id, d.id}

    def test_delete_missing_returns_empty(self, repo):
        assert repo.delete(uuid.uuid4()) == []

    def test_delete_with_children_raises(self, repo, make_page, positions):
        parent = make_page("Parent")
        make_page("Child", parent_id=parent.id)
        before = positions()

        with pytest.raises(PageDeleteError) as exc_info:
            repo.delete(parent.id)

        assert exc_info.value.blocker == "children"
        assert exc_info.value.count == 1
        assert positions() == before

    def test_delete_with_copies_raises(self, repo, make_page):
        original = make_page("About")
        copy = repo.copy(original)
        copy.title = "Copy"
        copy.slug = "copy"
        repo.save(copy)

        with pytest.raises(PageDeleteError) as exc_info:
            repo.delete(original.id)

        assert exc_info.value.blocker == "copies"

    def test_delete_removes_owned_blocks_only(self, repo, session_factory, make_page):
        owned = BlockModel(type="Text")
        shared = BlockModel(type="Banner", is_reusable=True)
        page = make_page("About", regions={"Hero": {"Heading": "x"}}, blocks=[owned, shared])

        repo.delete(page.id)

        assert count_rows(session_factory, Page, Page.id == page.id) == 0
        assert count_rows(session_factory, PageField, PageField.page_id == page.id) == 0
        assert count_rows(session_factory, PageBlock, PageBlock.page_id == page.id) == 0
        assert count_rows(session_factory, Block, Block.id == owned.id) == 0
        assert count_rows(session_factory, Block, Block.id == shared.id) == 1

    def test_delete_copy_then_original(self, repo, reload, make_page):
        original = make_page("About")
        copy = repo.copy(original)
        copy.title = "Copy"
        copy.slug = "copy"
        repo.save(copy)

        repo.delete(copy.id)
        repo.delete(original.id)

        assert reload().get_all(original.site_id) == []


# ============================================================
# SITEMAP
# ============================================================

class TestSitemap:
    """Tests for the navigation tree."""

    def test_sitemap_nests_children(self, repo, make_page, site_id):
        home = make_page("Home", navigation_title="Start")
        about = make_page("About")
        team = make_page("Team", parent_id=about.id)
        jobs = make_page("Jobs", parent_id=about.id, is_hidden=True)
        news = make_page("News", type_id="BlogArchive")

        sitemap = repo.get_sitemap(site_id)

        assert [item.id for item in sitemap] == [home.id, about.id, news.id]
        assert [item.id for item in sitemap[1].items] == [team.id, jobs.id]
        assert sitemap[0].menu_title == "Start"
        assert sitemap[0].level == 0
        assert sitemap[1].items[0].level == 1
        assert sitemap[1].items[1].is_hidden
        assert sitemap[0].page_type_name == "Standard page"
        assert sitemap[2].page_type_name == "Blog archive"

    def test_sitemap_reflects_moves(self, repo, make_page, site_id):
        make_page("A")
        b = make_page("B")

        repo.move(b, None, 0)

        assert [item.title for item in repo.get_sitemap(site_id)] == ["B", "A"]

    def test_sitemap_of_other_site_is_empty(self, repo, make_page):
        make_page("Home")

        assert repo.get_sitemap(uuid.uuid4()) == []


# ============================================================
# ERROR MAPPING
# ============================================================

class TestErrorMapping:
    """Tests for naming the field of a unique violation."""

    @pytest.mark.parametrize("message, field", [
        ('duplicate key value violates unique constraint "uq_pages_site_slug"', "slug"),
        ('duplicate key value violates unique constraint "blocks_pkey"', "block_id"),
        ("UNIQUE constraint failed: block_fields.block_id, block_fields.field_id", "block_field"),
        ("UNIQUE constraint failed: widgets.name", "unknown"),
    ])
    def test_constraint_names_field(self, repo, message, field):
        error = SQLAlchemyIntegrityError("INSERT", {}, Exception(message))

        with pytest.raises(DuplicateRecordError) as exc_info:
            repo._handle_db_error(error, "save", {"slug": "home"})

        assert exc_info.value.constraint_field == field
        assert exc_info.value.value == ("home" if field == "slug" else "unknown")
