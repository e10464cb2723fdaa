from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..core.errors import InvalidArgumentError, NotFoundError
from ..core.fields import FieldDescriptor, ModelDefinition
from ..core.registry import MetadataRegistry
from ..core.utils import input_to_dict, new_object_id
from ..hooks import HookDispatcher, HookPhase
from ..store.base import BaseStore
from ..typer import OPERATOR_ATTRS, SuccessResponse, TypeSynthesizer

__all__ = [
    'CrudResolverGenerator',
    'as_filter_dict',
    'as_input_dict',
    'assign_embedded_ids',
    'prepare_document',
    'sort_pairs',
]

_logger = logging.getLogger("dryql.resolvers")

_OPERATOR_NAMES = {attr: op for op, attr in OPERATOR_ATTRS.items()}


def as_input_dict(value: Any) -> Dict[str, Any]:
    """Plain dict view of an input (Strawberry input instance, mapping or None)."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(input_to_dict(dict(value)))
    return dict(input_to_dict(value) or {})


def as_filter_dict(value: Any) -> Dict[str, Any]:
    """Filter input as a plain mapping keyed by GraphQL operator names (``in_`` -> ``in``)."""
    conditions: Dict[str, Any] = {}
    for key, cond in as_input_dict(value).items():
        if isinstance(cond, dict):
            cond = {_OPERATOR_NAMES.get(op, op): operand for op, operand in cond.items()}
        conditions[key] = cond
    return conditions


def sort_pairs(sort: Optional[Mapping[str, Any]]) -> List[Tuple[str, str]]:
    """``{'name': 'desc', 'age': None}`` -> ``[('name', 'desc')]`` keeping key order."""
    pairs: List[Tuple[str, str]] = []
    for key, direction in (sort or {}).items():
        if direction is None:
            continue
        direction = getattr(direction, 'value', direction)
        pairs.append((key, str(direction).lower()))
    return pairs


def assign_embedded_ids(registry: MetadataRegistry, model_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Give every embedded sub-document in ``data`` an ``id`` (recursively), in place."""
    for fdesc in registry.get_fields(model_name):
        if fdesc.embedded_model is None:
            continue
        value = data.get(fdesc.name)
        if value is None:
            continue
        items = value if fdesc.many else [value]
        for item in items:
            if isinstance(item, dict):
                if not item.get('id'):
                    item['id'] = new_object_id()
                assign_embedded_ids(registry, fdesc.embedded_name, item)
    return data


def prepare_document(
    registry: MetadataRegistry, model_name: str, data: Dict[str, Any],
) -> Tuple[Dict[str, Any], List[Tuple[FieldDescriptor, List[Any]]]]:
    """Turn a create payload into a storable document of ``model_name``.

    Inline relation payloads are split off and returned as ``(field, items)`` pairs;
    missing embedded arrays become ``[]``; embedded sub-documents get ids.
    """
    payload = input_to_dict(data) or {}
    inline: List[Tuple[FieldDescriptor, List[Any]]] = []
    for fdesc in registry.get_fields(model_name):
        if fdesc.is_relation:
            items = payload.pop(fdesc.name, None)
            if items:
                inline.append((fdesc, list(items)))
        elif fdesc.is_embedded_collection and payload.get(fdesc.name) is None:
            payload[fdesc.name] = []
    assign_embedded_ids(registry, model_name, payload)
    return payload, inline


class CrudResolverGenerator:
    """The six standard operations of one top-level model, bound to a store and hooks.

    Each handler is ``async def handler(ctx, ...)``; the GraphQL layer passes
    ``info.context`` as ``ctx``. Inputs may be Strawberry input instances or plain
    dicts; outputs are instances of the synthesized output type.
    """

    def __init__(
        self,
        definition: ModelDefinition,
        typer: TypeSynthesizer,
        store: BaseStore,
        hooks: HookDispatcher,
        registry: Optional[MetadataRegistry] = None,
    ):
        self.definition = definition
        self.typer = typer
        self.store = store
        self.hooks = hooks
        self.registry = registry or typer.registry

    @property
    def model_name(self) -> str:
        return self.definition.name

    @property
    def collection(self) -> str:
        return self.definition.collection or self.definition.name

    def shape_output(self, doc: Optional[Dict[str, Any]]) -> Any:
        return self.typer.to_output(self.model_name, doc)

    async def _dispatch(self, phase: HookPhase, **payload: Any) -> None:
        await self.hooks.dispatch(self.model_name, phase, **payload)

    def search_fields(self) -> List[str]:
        return [
            f.name for f in self.registry.get_fields(self.model_name)
            if f.storage_type == 'text' and f.enum_spec is None and f.embedded_model is None
            and not f.is_relation and not f.is_id
        ]

    def _search(self, search: Optional[str]) -> Optional[Tuple[str, List[str]]]:
        if not search or not self.definition.enable_text_search:
            return None
        return (search, self.search_fields())

    async def _load(self, doc_id: Any) -> Dict[str, Any]:
        doc = await self.store.find_by_id(self.collection, str(doc_id))
        if doc is None:
            raise NotFoundError.for_model(self.model_name, doc_id)
        return doc

    # ---- operations ----------------------------------------------------
    async def create(self, ctx: Any, input: Any) -> Any:
        data = as_input_dict(input)
        await self._dispatch(HookPhase.BEFORE_CREATE, ctx=ctx, input=data)
        payload, inline = prepare_document(self.registry, self.model_name, data)
        doc = await self.store.insert(self.collection, payload)
        for fdesc, items in inline:
            await self._cascade(self.definition, doc['id'], fdesc, items)
        created = self.shape_output(await self._load(doc['id']))
        await self._dispatch(HookPhase.AFTER_CREATE, ctx=ctx, input=data, created=created)
        return created

    async def _cascade(self, owner: ModelDefinition, owner_id: str, fdesc: FieldDescriptor, items: List[Any]) -> None:
        """Insert inline relation sub-objects and union their ids into the owner's link field.

        Sub-objects are stored as regular documents of the target model, so their own
        relations cascade the same way.
        """
        target = self.registry.get_model(fdesc.relation.target_model)
        target_collection = target.collection or target.name
        new_ids: List[str] = []
        for item in items:
            sub, nested = prepare_document(self.registry, target.name, as_input_dict(item))
            created = await self.store.insert(target_collection, sub)
            new_ids.append(created['id'])
            for nested_field, nested_items in nested:
                await self._cascade(target, created['id'], nested_field, nested_items)
        _logger.debug(
            "cascade %s.%s: created %d %s document(s)",
            owner.name, fdesc.name, len(new_ids), target.name,
        )
        await self.store.add_to_set(owner.collection or owner.name, owner_id, fdesc.relation.link_field, new_ids)

    async def update(self, ctx: Any, input: Any) -> Any:
        data = as_input_dict(input)
        doc_id = data.get('id')
        if not doc_id:
            raise InvalidArgumentError(f"An id is required to update a {self.model_name}")
        before_updated = self.shape_output(await self._load(doc_id))
        await self._dispatch(HookPhase.BEFORE_UPDATE, ctx=ctx, input=data, before_updated=before_updated)
        changes = {k: v for k, v in input_to_dict(data).items() if k != 'id'}
        assign_embedded_ids(self.registry, self.model_name, changes)
        if await self.store.update(self.collection, str(doc_id), changes) is None:
            raise NotFoundError.for_model(self.model_name, doc_id)
        updated = self.shape_output(await self._load(doc_id))
        await self._dispatch(
            HookPhase.AFTER_UPDATE, ctx=ctx, input=data, updated=updated, before_updated=before_updated,
        )
        return updated

    async def find_one(self, ctx: Any, id: Any) -> Any:
        filter = {'id': str(id)}
        await self._dispatch(HookPhase.BEFORE_FIND_ONE, ctx=ctx, filter=filter)
        result = self.shape_output(await self._load(id))
        await self._dispatch(HookPhase.AFTER_FIND_ONE, ctx=ctx, filter=filter, result=result)
        return result

    async def find_many(self, ctx: Any, filter: Any = None, sort: Any = None, search: Optional[str] = None) -> List[Any]:
        filter = as_filter_dict(filter)
        sort = as_input_dict(sort)
        await self._dispatch(HookPhase.BEFORE_FIND_MANY, ctx=ctx, filter=filter, sort=sort)
        docs = await self.store.find(self.collection, filter, sort_pairs(sort), self._search(search))
        items = [self.shape_output(d) for d in docs]
        await self._dispatch(HookPhase.AFTER_FIND_MANY, ctx=ctx, filter=filter, sort=sort, items=items)
        return items

    async def remove(self, ctx: Any, id: Any) -> SuccessResponse:
        before_removed = self.shape_output(await self._load(id))
        await self._dispatch(HookPhase.BEFORE_REMOVE, ctx=ctx, before_removed=before_removed)
        if not await self.store.delete(self.collection, str(id)):
            raise NotFoundError.for_model(self.model_name, id)
        await self._dispatch(HookPhase.AFTER_REMOVE, ctx=ctx, removed=before_removed)
        return SuccessResponse(success=True)

    async def paginate(
        self,
        ctx: Any,
        filter: Any = None,
        sort: Any = None,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> Any:
        if page is None or page < 1:
            raise InvalidArgumentError(f"page must be >= 1, got {page}")
        if limit is None or limit < 1:
            raise InvalidArgumentError(f"limit must be >= 1, got {limit}")
        result = await self.store.paginate(
            self.collection, as_filter_dict(filter), sort_pairs(as_input_dict(sort)), page, limit, self._search(search),
        )
        pagination_type = self.typer.pagination(self.model_name)
        return pagination_type(
            docs=[self.shape_output(d) for d in result.docs],
            totalDocs=result.total_docs,
            page=result.page,
            limit=result.limit,
            hasPrevPage=result.has_prev_page,
            hasNextPage=result.has_next_page,
            totalPages=result.total_pages,
        )
