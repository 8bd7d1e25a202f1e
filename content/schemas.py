"""
Pydantic Schemas for Page Type Definitions.

A page type declares the content type of its pages, whether
they carry blocks, and the regions of typed fields they hold.
Definitions usually come from a JSON file.
"""

from copy import deepcopy
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from core.constants import CONTENT_TYPE_PAGE, CONTENT_TYPES, MAX_TYPE_ID_LENGTH


# =============================================================
# ENUMS
# =============================================================

class FieldTypeEnum(str, Enum):
    STRING = "string"
    TEXT = "text"
    HTML = "html"
    MARKDOWN = "markdown"
    NUMBER = "number"
    CHECKBOX = "checkbox"
    DATE = "date"
    DATETIME = "datetime"
    PAGE_LINK = "page_link"
    JSON = "json"


TEXT_FIELD_TYPES = (
    FieldTypeEnum.STRING,
    FieldTypeEnum.TEXT,
    FieldTypeEnum.HTML,
    FieldTypeEnum.MARKDOWN,
)


# =============================================================
# DEFINITIONS
# =============================================================

class FieldDefinition(BaseModel):
    """
    A single typed field inside a region.

    None is valid for every type; any other value must match the
    declared type, including the default.
    """
    id: str = Field(..., min_length=1, max_length=MAX_TYPE_ID_LENGTH)
    title: Optional[str] = None
    type: FieldTypeEnum = FieldTypeEnum.STRING
    default: Any = None

    @model_validator(mode="after")
    def default_matches_type(self) -> "FieldDefinition":
        if not self.accepts(self.default):
            raise ValueError(
                f"default of field '{self.id}' is not a {self.type.value} value"
            )
        return self

    def accepts(self, value: Any) -> bool:
        if value is None:
            return True
        if self.type in TEXT_FIELD_TYPES:
            return isinstance(value, str)
        if self.type == FieldTypeEnum.NUMBER:
            return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)
        if self.type == FieldTypeEnum.CHECKBOX:
            return isinstance(value, bool)
        if self.type == FieldTypeEnum.DATE:
            return isinstance(value, date) and not isinstance(value, datetime)
        if self.type == FieldTypeEnum.DATETIME:
            return isinstance(value, datetime)
        if self.type == FieldTypeEnum.PAGE_LINK:
            return isinstance(value, UUID)
        return isinstance(value, (list, dict))


class RegionDefinition(BaseModel):
    """
    A named group of fields on a page.

    Collection regions hold a list of items, each item a dict
    of the region's fields.
    """
    id: str = Field(..., min_length=1, max_length=MAX_TYPE_ID_LENGTH)
    title: Optional[str] = None
    collection: bool = False
    fields: List[FieldDefinition] = Field(..., min_length=1)

    @field_validator("fields")
    @classmethod
    def field_ids_unique(cls, fields: List[FieldDefinition]) -> List[FieldDefinition]:
        ids = [f.id for f in fields]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate field ids: {', '.join(duplicates)}")
        return fields

    def get_field(self, field_id: str) -> Optional[FieldDefinition]:
        for field in self.fields:
            if field.id == field_id:
                return field
        return None

    def blank_item(self) -> dict:
        """Item with every field set to its default."""
        return {f.id: deepcopy(f.default) for f in self.fields}


class PageTypeDefinition(BaseModel):
    """A page type: content type, block support and regions."""
    id: str = Field(..., min_length=1, max_length=MAX_TYPE_ID_LENGTH)
    title: Optional[str] = None
    content_type: str = CONTENT_TYPE_PAGE
    # False: blocks passed to save are ignored
    use_blocks: bool = True
    regions: List[RegionDefinition] = Field(default_factory=list)

    @field_validator("content_type")
    @classmethod
    def content_type_known(cls, value: str) -> str:
        if value not in CONTENT_TYPES:
            raise ValueError(f"content_type must be one of {', '.join(CONTENT_TYPES)}")
        return value

    @field_validator("regions")
    @classmethod
    def region_ids_unique(cls, regions: List[RegionDefinition]) -> List[RegionDefinition]:
        ids = [r.id for r in regions]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate region ids: {', '.join(duplicates)}")
        return regions

    @property
    def display_title(self) -> str:
        return self.title or self.id

    def get_region(self, region_id: str) -> Optional[RegionDefinition]:
        for region in self.regions:
            if region.id == region_id:
                return region
        return None
