"""
Storage Models Package.

ORM models for the page store.

============================================================
MODEL ORGANIZATION
============================================================

Base (base.py)
- Base
- UTCDateTime
- TimestampMixin

Page Tree (content.py)
- Page
- PageField
- Block
- BlockField
- PageBlock

============================================================
"""

from storage.models.base import Base, TimestampMixin, UTCDateTime
from storage.models.content import (
    Block,
    BlockField,
    Page,
    PageBlock,
    PageField,
)


__all__ = [
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "Page",
    "PageField",
    "Block",
    "BlockField",
    "PageBlock",
]
