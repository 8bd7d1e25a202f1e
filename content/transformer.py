"""
Content - Transformer.

============================================================
PURPOSE
============================================================
Maps between typed page models and the persisted Page /
PageField / Block / BlockField / PageBlock records, using the
page type definition to know which regions and fields exist.

============================================================
OPERATIONS
============================================================
- create: Blank model for a page type
- transform: Model -> Page record (properties + region fields)
- to_model: Page record -> model
- transform_blocks: Block models -> staged page block data
- to_block_models: Page block records -> block models

============================================================
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Type, TypeVar
from uuid import UUID, uuid4

from content.models import (
    BlockModel,
    PageInfo,
    PageModel,
    StagedBlock,
    StagedField,
    StagedPageBlock,
)
from content.schemas import PageTypeDefinition
from content.values import ValueCodecError, decode_value, encode_value
from storage.models.content import Page, PageBlock, PageField


M = TypeVar("M", bound=PageInfo)

FieldKey = Tuple[str, str, int]


def is_full_model(model_cls: Type[PageInfo]) -> bool:
    """True when the model class carries regions and blocks."""
    return issubclass(model_cls, PageModel)


class ContentTransformer:
    """Stateless mapper between page models and records."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    # =========================================================
    # MODEL CREATION
    # =========================================================

    def create(self, model_cls: Type[M], page_type: PageTypeDefinition) -> M:
        """
        Create a blank model of the given page type.

        Regions are initialised from the type: a dict of field
        defaults, or an empty list for collection regions.
        """
        model = model_cls(type_id=page_type.id, content_type=page_type.content_type)
        if isinstance(model, PageModel):
            model.regions = self._blank_regions(page_type)
            model.blocks = []
        return model

    # =========================================================
    # MODEL -> RECORD
    # =========================================================

    def transform(
        self,
        model: PageInfo,
        page_type: PageTypeDefinition,
        target: Page,
        include_content: bool = True,
    ) -> Page:
        """
        Write model properties and region fields onto a page record.

        Blocks are not touched; the repository reconciles them
        from transform_blocks output. With include_content False
        only the page's own properties are written, as for copies.

        Raises:
            ValueCodecError: If a region value has the wrong shape, a
                field value does not match its declared type, or a value
                cannot be encoded
        """
        target.page_type_id = page_type.id
        target.content_type = page_type.content_type
        target.site_id = model.site_id
        target.parent_id = model.parent_id
        target.sort_order = model.sort_order
        target.title = model.title
        target.navigation_title = model.navigation_title
        target.slug = model.slug
        target.route = model.route
        target.is_hidden = model.is_hidden
        target.published = model.published
        target.original_page_id = model.original_page_id

        if include_content and isinstance(model, PageModel):
            self._write_regions(model.regions, page_type, target)
        return target

    def _write_regions(
        self,
        regions: Dict[str, Any],
        page_type: PageTypeDefinition,
        target: Page,
    ) -> None:
        desired: Dict[FieldKey, Tuple[str, Optional[str]]] = {}

        for region in page_type.regions:
            value = regions.get(region.id)
            if region.collection:
                items = value or []
                if not isinstance(items, list):
                    raise ValueCodecError(f"Region '{region.id}' expects a list of items")
            else:
                items = [value or {}]

            for index, item in enumerate(items):
                if not isinstance(item, dict):
                    raise ValueCodecError(f"Region '{region.id}' expects a dict of field values")
                for field_def in region.fields:
                    field_value = item.get(field_def.id)
                    if not field_def.accepts(field_value):
                        raise ValueCodecError(
                            f"Field '{region.id}.{field_def.id}' expects a "
                            f"{field_def.type.value} value, got {type(field_value).__name__}"
                        )
                    desired[(region.id, field_def.id, index)] = encode_value(field_value)

        existing = {
            (f.region_id, f.field_id, f.sort_order): f for f in target.fields
        }

        for key, page_field in existing.items():
            if key not in desired:
                target.fields.remove(page_field)

        for key, (value_type, text) in desired.items():
            page_field = existing.get(key)
            if page_field is None:
                region_id, field_id, sort_order = key
                page_field = PageField(
                    region_id=region_id,
                    field_id=field_id,
                    sort_order=sort_order,
                )
                target.fields.append(page_field)
            page_field.value_type = value_type
            page_field.value = text

    # =========================================================
    # RECORD -> MODEL
    # =========================================================

    def to_model(
        self,
        page: Page,
        page_type: Optional[PageTypeDefinition],
        model_cls: Type[M],
    ) -> M:
        """
        Build a model from a page record.

        Regions and blocks are only read for full models, so
        summary loads never touch the related collections.
        """
        model = model_cls(
            id=page.id,
            site_id=page.site_id,
            parent_id=page.parent_id,
            sort_order=page.sort_order,
            type_id=page.page_type_id,
            content_type=page.content_type,
            title=page.title,
            navigation_title=page.navigation_title,
            slug=page.slug,
            route=page.route,
            is_hidden=page.is_hidden,
            published=page.published,
            original_page_id=page.original_page_id,
            created=page.created_at,
            last_modified=page.updated_at,
        )

        if isinstance(model, PageModel):
            model.regions = self._read_regions(page.fields, page_type)
            model.blocks = self.to_block_models(page.blocks)
        return model

    def _read_regions(
        self,
        fields: Iterable[PageField],
        page_type: Optional[PageTypeDefinition],
    ) -> Dict[str, Any]:
        if page_type is None:
            return {}

        regions = self._blank_regions(page_type)

        for page_field in fields:
            region = page_type.get_region(page_field.region_id)
            if region is None or region.get_field(page_field.field_id) is None:
                self._logger.debug(
                    f"Skipping field {page_field.region_id}.{page_field.field_id} "
                    f"not declared by page type {page_type.id}"
                )
                continue

            value = decode_value(page_field.value_type, page_field.value)
            if region.collection:
                items = regions[region.id]
                while len(items) <= page_field.sort_order:
                    items.append(region.blank_item())
                items[page_field.sort_order][page_field.field_id] = value
            else:
                regions[region.id][page_field.field_id] = value
        return regions

    @staticmethod
    def _blank_regions(page_type: PageTypeDefinition) -> Dict[str, Any]:
        return {
            region.id: [] if region.collection else region.blank_item()
            for region in page_type.regions
        }

    # =========================================================
    # BLOCKS
    # =========================================================

    def transform_blocks(self, block_models: Iterable[BlockModel]) -> List[StagedPageBlock]:
        """
        Flatten block models into staged page blocks.

        Groups come before their items. Missing block and page block
        ids are generated and written back to the models.

        Raises:
            ValueCodecError: If a field value cannot be encoded
        """
        staged: List[StagedPageBlock] = []
        seen: Set[UUID] = set()

        def stage(model: BlockModel, parent_id: Optional[UUID]) -> None:
            if model.id is None:
                model.id = uuid4()
            if model.page_block_id is None or model.page_block_id in seen:
                model.page_block_id = uuid4()
            seen.add(model.page_block_id)

            fields = []
            for index, (field_id, value) in enumerate(model.fields.items()):
                value_type, text = encode_value(value)
                fields.append(StagedField(
                    field_id=field_id,
                    sort_order=index,
                    value_type=value_type,
                    value=text,
                ))

            staged.append(StagedPageBlock(
                id=model.page_block_id,
                parent_id=parent_id,
                block=StagedBlock(
                    id=model.id,
                    block_type=model.type,
                    title=model.title,
                    is_reusable=model.is_reusable,
                    fields=fields,
                ),
            ))

            for item in model.items:
                stage(item, model.page_block_id)

        for block_model in block_models:
            stage(block_model, None)
        return staged

    def to_block_models(self, page_blocks: Iterable[PageBlock]) -> List[BlockModel]:
        """Rebuild the nested block list from page block records."""
        ordered = sorted(page_blocks, key=lambda pb: pb.sort_order)
        by_page_block: Dict[UUID, BlockModel] = {}

        for page_block in ordered:
            block = page_block.block
            by_page_block[page_block.id] = BlockModel(
                type=block.block_type,
                id=block.id,
                title=block.title,
                is_reusable=block.is_reusable,
                page_block_id=page_block.id,
                fields={
                    f.field_id: decode_value(f.value_type, f.value)
                    for f in sorted(block.fields, key=lambda f: f.sort_order)
                },
            )

        roots: List[BlockModel] = []
        for page_block in ordered:
            model = by_page_block[page_block.id]
            parent = by_page_block.get(page_block.parent_id) if page_block.parent_id else None
            if parent is not None:
                parent.items.append(model)
            else:
                roots.append(model)
        return roots
