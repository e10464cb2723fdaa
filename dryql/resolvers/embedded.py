from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Optional

from ..core.errors import InvalidArgumentError, NotFoundError, SchemaDefinitionError
from ..core.fields import FieldDescriptor, ModelDefinition
from ..core.registry import MetadataRegistry
from ..core.utils import new_object_id
from ..store.base import BaseStore
from ..typer import SuccessResponse, TypeSynthesizer
from .crud import as_input_dict, assign_embedded_ids

__all__ = ['EmbeddedResolverGenerator']

_logger = logging.getLogger("dryql.resolvers")


class EmbeddedResolverGenerator:
    """CRUD over the array field ``field`` of parent model ``parent``.

    Every mutation loads the parent, rewrites the whole array and saves it back.
    There is no version check, so two concurrent mutations on the same parent can
    overwrite each other (last writer wins).
    """

    def __init__(
        self,
        parent: ModelDefinition,
        field: FieldDescriptor,
        typer: TypeSynthesizer,
        store: BaseStore,
        registry: Optional[MetadataRegistry] = None,
    ):
        if not field.is_embedded_collection:
            raise SchemaDefinitionError(f"Field {parent.name}.{field.name} is not an embedded array")
        self.parent = parent
        self.field = field
        self.typer = typer
        self.store = store
        self.registry = registry or typer.registry

    @property
    def embedded_name(self) -> str:
        return self.field.embedded_name

    @property
    def collection(self) -> str:
        return self.parent.collection or self.parent.name

    def shape_output(self, item: Optional[Dict[str, Any]]) -> Any:
        return self.typer.to_output(self.embedded_name, item)

    async def _load_parent(self, parent_id: Any) -> Dict[str, Any]:
        doc = await self.store.find_by_id(self.collection, str(parent_id))
        if doc is None:
            raise NotFoundError.for_model(self.parent.name, parent_id)
        return doc

    def _items(self, parent: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [dict(item) for item in (parent.get(self.field.name) or [])]

    def _not_found(self, item_id: Any, parent_id: Any) -> NotFoundError:
        return NotFoundError.for_embedded(self.embedded_name, item_id, self.parent.name, parent_id)

    async def _save(self, parent_id: Any, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        saved = await self.store.update(self.collection, str(parent_id), {self.field.name: items})
        if saved is None:
            raise NotFoundError.for_model(self.parent.name, parent_id)
        _logger.debug("saved %s.%s of %s (%d item(s))", self.parent.name, self.field.name, parent_id, len(items))
        return self._items(saved)

    # ---- operations ----------------------------------------------------
    async def get_all(self, ctx: Any, parent_id: Any) -> List[Any]:
        parent = await self._load_parent(parent_id)
        return [self.shape_output(item) for item in self._items(parent)]

    async def get_one(self, ctx: Any, parent_id: Any, id: Any) -> Any:
        parent = await self._load_parent(parent_id)
        for item in self._items(parent):
            if str(item.get('id')) == str(id):
                return self.shape_output(item)
        raise self._not_found(id, parent_id)

    async def create(self, ctx: Any, parent_id: Any, input: Any) -> Any:
        parent = await self._load_parent(parent_id)
        item = as_input_dict(input)
        item['id'] = new_object_id()
        assign_embedded_ids(self.registry, self.embedded_name, item)
        items = self._items(parent)
        items.append(item)
        saved = await self._save(parent_id, items)
        reloaded = self._items(await self._load_parent(parent_id)) or saved
        return self.shape_output(reloaded[-1])

    async def bulk_update(self, ctx: Any, parent_id: Any, input: Iterable[Any]) -> List[Any]:
        """Replace the array with ``input``; every item must reference an existing element.

        Validation runs over the whole list before anything is written. Unlike a plain
        replacement with the input items, supplied fields are merged over the matching
        stored element, so optional fields omitted from an item keep their stored value.
        """
        parent = await self._load_parent(parent_id)
        existing = {str(item.get('id')): item for item in self._items(parent)}
        payload = [as_input_dict(item) for item in (input or [])]
        for item in payload:
            if str(item.get('id')) not in existing:
                raise self._not_found(item.get('id'), parent_id)
        items: List[Dict[str, Any]] = []
        for item in payload:
            merged = {**existing[str(item['id'])], **item}
            merged['id'] = str(item['id'])
            items.append(assign_embedded_ids(self.registry, self.embedded_name, merged))
        await self._save(parent_id, items)
        reloaded = self._items(await self._load_parent(parent_id))
        return [self.shape_output(item) for item in reloaded]

    async def update_one(self, ctx: Any, parent_id: Any, id: Any, input: Any) -> Any:
        parent = await self._load_parent(parent_id)
        items = self._items(parent)
        changes = {k: v for k, v in as_input_dict(input).items() if k != 'id'}
        for index, item in enumerate(items):
            if str(item.get('id')) == str(id):
                items[index] = assign_embedded_ids(self.registry, self.embedded_name, {**item, **changes})
                break
        else:
            raise self._not_found(id, parent_id)
        saved = await self._save(parent_id, items)
        for item in saved:
            if str(item.get('id')) == str(id):
                return self.shape_output(item)
        raise self._not_found(id, parent_id)

    async def remove(self, ctx: Any, parent_id: Any, ids: Iterable[Any]) -> SuccessResponse:
        ids = [str(i) for i in (ids or [])]
        if not ids:
            raise InvalidArgumentError(f"No {self.embedded_name} IDs provided")
        parent = await self._load_parent(parent_id)
        items = [item for item in self._items(parent) if str(item.get('id')) not in ids]
        await self._save(parent_id, items)
        return SuccessResponse(success=True)
