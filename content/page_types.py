"""
Content - Page Type Registry.

============================================================
PURPOSE
============================================================
Holds the page type definitions the repository and the
content transformer look up by id.

============================================================
LOADING
============================================================
    registry = PageTypeRegistry()
    registry.load_file("page_types.json")

The file holds a JSON list of page type objects, or an object
with a "page_types" list.

============================================================
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from core.exceptions import PageTypeDefinitionError
from content.schemas import PageTypeDefinition


logger = logging.getLogger(__name__)


class PageTypeRegistry:
    """In-memory registry of page type definitions keyed by id."""

    def __init__(self, page_types: Optional[Iterable[PageTypeDefinition]] = None) -> None:
        self._types: Dict[str, PageTypeDefinition] = {}
        for page_type in page_types or []:
            self.register(page_type)

    def __contains__(self, type_id: str) -> bool:
        return type_id in self._types

    def __len__(self) -> int:
        return len(self._types)

    def register(
        self,
        page_type: Union[PageTypeDefinition, Dict[str, Any]],
    ) -> PageTypeDefinition:
        """
        Add or replace a page type.

        Args:
            page_type: A definition or a dict to validate into one

        Raises:
            PageTypeDefinitionError: If a dict fails validation
        """
        if not isinstance(page_type, PageTypeDefinition):
            try:
                page_type = PageTypeDefinition.model_validate(page_type)
            except ValidationError as e:
                raise PageTypeDefinitionError(
                    f"Invalid page type definition: {e}",
                    cause=e,
                ) from e

        if page_type.id in self._types:
            logger.info(f"Replacing page type definition: {page_type.id}")
        self._types[page_type.id] = page_type
        return page_type

    def get_by_id(self, type_id: Optional[str]) -> Optional[PageTypeDefinition]:
        """Get a page type, or None if it is not registered."""
        if not type_id:
            return None
        return self._types.get(type_id)

    def get_all(self) -> List[PageTypeDefinition]:
        """All page types ordered by id."""
        return [self._types[k] for k in sorted(self._types)]

    def unregister(self, type_id: str) -> bool:
        """Remove a page type. Returns False if it was not registered."""
        return self._types.pop(type_id, None) is not None

    def load_definitions(self, data: Any, source: Optional[str] = None) -> int:
        """
        Register every definition in already-parsed JSON data.

        Returns:
            Number of definitions registered

        Raises:
            PageTypeDefinitionError: If the data has the wrong shape or
                a definition is invalid
        """
        if isinstance(data, dict):
            data = data.get("page_types")
        if not isinstance(data, list):
            raise PageTypeDefinitionError(
                "Expected a list of page types or an object with 'page_types'",
                source=source,
            )

        for item in data:
            self.register(item)

        logger.info(f"Loaded {len(data)} page type(s) from {source or 'data'}")
        return len(data)

    def load_file(self, path: Union[str, Path]) -> int:
        """
        Register every definition in a JSON file.

        Raises:
            PageTypeDefinitionError: If the file is unreadable or invalid
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PageTypeDefinitionError(
                f"Cannot read page types from {path}: {e}",
                source=str(path),
                cause=e,
            ) from e
        return self.load_definitions(data, source=str(path))
