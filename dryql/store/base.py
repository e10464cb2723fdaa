from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..core.errors import InvalidArgumentError
from ..core.fields import FILTER_OPERATORS

__all__ = [
    'BaseStore',
    'Page',
    'SortSpec',
    'FILTER_OPERATORS',
    'build_page',
    'iter_conditions',
    'match_condition',
    'matches_filter',
]

# ordered (field, 'asc' | 'desc') pairs
SortSpec = Sequence[Tuple[str, str]]

_ORDERING = {
    'gt': lambda a, b: a > b,
    'gte': lambda a, b: a >= b,
    'lt': lambda a, b: a < b,
    'lte': lambda a, b: a <= b,
}


def iter_conditions(filter: Optional[Mapping[str, Any]]) -> Iterator[Tuple[str, str, Any]]:
    """Yield ``(field, operator, operand)`` triples of a filter mapping.

    A field maps either to an operator mapping (``{'numberOfOrders': {'gte': 3}}``)
    or to a bare value, which is shorthand for ``eq``. Operators are ANDed.
    """
    for key, value in (filter or {}).items():
        if isinstance(value, Mapping):
            for op, operand in value.items():
                if op not in FILTER_OPERATORS:
                    raise InvalidArgumentError(f"Unknown filter operator {op!r} on {key}")
                yield key, op, operand
        else:
            yield key, 'eq', value


def match_condition(value: Any, op: str, operand: Any) -> bool:
    """Evaluate one condition against a stored value (missing fields are None)."""
    if op == 'eq':
        return value == operand
    if op == 'ne':
        return value != operand
    if op == 'in':
        return value in (operand or [])
    if op == 'notIn':
        return value not in (operand or [])
    if op == 'contains':
        if not isinstance(value, str) or operand is None:
            return False
        return str(operand).lower() in value.lower()
    if value is None or operand is None:
        return False
    try:
        return _ORDERING[op](value, operand)
    except TypeError:
        return False


def matches_filter(doc: Mapping[str, Any], filter: Optional[Mapping[str, Any]]) -> bool:
    return all(match_condition(doc.get(k), op, operand) for k, op, operand in iter_conditions(filter))


@dataclass
class Page:
    docs: List[Dict[str, Any]] = field(default_factory=list)
    total_docs: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = 0
    has_prev_page: bool = False
    has_next_page: bool = False


def build_page(docs: List[Dict[str, Any]], total_docs: int, page: int, limit: int) -> Page:
    total_pages = math.ceil(total_docs / limit) if limit else 0
    return Page(
        docs=docs,
        total_docs=total_docs,
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_prev_page=page > 1,
        has_next_page=page < total_pages,
    )


class BaseStore:
    """Persistence contract consumed by the resolver generators.

    Documents are plain dicts carrying a string ``id``. Every method is a coroutine;
    they are the only suspension points of a generated operation.
    """

    name = 'base'

    async def insert(self, collection: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Persist a new document, assigning ``id`` when absent; return the stored document."""
        raise NotImplementedError

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def find(
        self,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        search: Optional[Tuple[str, Iterable[str]]] = None,
    ) -> List[Dict[str, Any]]:
        """Return matching documents; without ``sort`` they come back in insertion order.

        ``filter`` maps field names to a value (equality) or to an operator mapping,
        see :func:`iter_conditions`; ``search`` is ``(text, field_names)`` for a
        case-insensitive substring match on any of the fields.
        """
        raise NotImplementedError

    async def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Overwrite only the supplied top-level fields; return the updated document or None."""
        raise NotImplementedError

    async def add_to_set(self, collection: str, doc_id: str, field_name: str, values: Iterable[Any]) -> Optional[Dict[str, Any]]:
        """Union ``values`` into the array ``field_name`` without duplicates."""
        raise NotImplementedError

    async def delete(self, collection: str, doc_id: str) -> bool:
        raise NotImplementedError

    async def paginate(
        self,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        page: int = 1,
        limit: int = 10,
        search: Optional[Tuple[str, Iterable[str]]] = None,
    ) -> Page:
        docs = await self.find(collection, filter, sort, search)
        start = (page - 1) * limit
        return build_page(docs[start:start + limit], len(docs), page, limit)
