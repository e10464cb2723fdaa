"""Document store over a single SQLAlchemy table (async engine).

Every document lives in ``dryql_documents`` as a JSON blob keyed by
``(collection, id)``; the auto-increment primary key keeps creation order.
"""
from __future__ import annotations
import logging
import os
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import JSON, Integer, String, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from ..core.utils import new_object_id
from .base import BaseStore, Page, SortSpec, build_page, iter_conditions, match_condition

__all__ = ['Base', 'DocumentRow', 'SQLAlchemyDocumentStore', 'DEFAULT_DATABASE_URL']

_logger = logging.getLogger("dryql.store")

DEFAULT_DATABASE_URL = 'sqlite+aiosqlite:///:memory:'


class Base(DeclarativeBase):
    pass


class DocumentRow(Base):
    __tablename__ = 'dryql_documents'

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String(128), index=True)
    id: Mapped[str] = mapped_column(String(24), unique=True, index=True)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    def to_document(self) -> Dict[str, Any]:
        doc = dict(self.data or {})
        doc['id'] = self.id
        return doc


def _sort_key(value: Any) -> Tuple[bool, Any]:
    # nulls first on ascending order
    return (value is not None, value)


def _apply_sort(docs: List[Dict[str, Any]], sort: SortSpec) -> List[Dict[str, Any]]:
    out = list(docs)
    # stable sort: apply the least significant key first
    for field_name, direction in reversed(list(sort)):
        out.sort(key=lambda d: _sort_key(d.get(field_name)), reverse=str(direction).lower() == 'desc')
    return out


def _like_pattern(text: str) -> str:
    """``%text%`` with LIKE wildcards in ``text`` escaped (escape character ``\\``)."""
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


def _scalar_kind(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    if isinstance(value, str):
        return 'text'
    return None


def _column(key: str, kind: str):
    if key == 'id':
        return DocumentRow.id if kind == 'text' else None
    expr = DocumentRow.data[key]
    if kind == 'boolean':
        return expr.as_boolean()
    if kind == 'number':
        return expr.as_float()
    return expr.as_string()


def _sql_value(kind: str, value: Any) -> Any:
    return float(value) if kind == 'number' else value


def _condition(key: str, op: str, operand: Any):
    """SQL clause for one filter condition, or None when it has to run in Python."""
    if op in ('in', 'notIn'):
        values = list(operand or [])
        kinds = {_scalar_kind(v) for v in values}
        if len(kinds) != 1 or None in kinds:
            return None
        kind = kinds.pop()
        col = _column(key, kind)
        if col is None:
            return None
        values = [_sql_value(kind, v) for v in values]
        if op == 'in':
            return col.in_(values)
        return or_(col.is_(None), col.not_in(values))
    kind = _scalar_kind(operand)
    if kind is None:
        return None
    if op == 'contains':
        if kind != 'text':
            return None
        col = _column(key, kind)
        return col.ilike(_like_pattern(operand), escape='\\') if col is not None else None
    if op in ('gt', 'gte', 'lt', 'lte') and kind == 'boolean':
        return None
    col = _column(key, kind)
    if col is None:
        return None
    value = _sql_value(kind, operand)
    if op == 'eq':
        return col == value
    if op == 'ne':
        return or_(col.is_(None), col != value)
    if op == 'gt':
        return col > value
    if op == 'gte':
        return col >= value
    if op == 'lt':
        return col < value
    return col <= value


class SQLAlchemyDocumentStore(BaseStore):
    """:class:`BaseStore` backed by an async SQLAlchemy session factory."""

    name = 'sqlalchemy'

    def __init__(self, sessionmaker: async_sessionmaker, engine: Optional[AsyncEngine] = None):
        self._sessionmaker = sessionmaker
        self.engine = engine if engine is not None else getattr(sessionmaker, 'kw', {}).get('bind')

    @classmethod
    def from_url(cls, url: Optional[str] = None, echo: Optional[bool] = None) -> 'SQLAlchemyDocumentStore':
        """Build a store for ``url`` (env ``DRYQL_DATABASE_URL``, then in-memory SQLite).

        ``echo`` defaults to env ``SQL_ECHO == "1"``.
        """
        url = url or os.getenv('DRYQL_DATABASE_URL') or DEFAULT_DATABASE_URL
        if echo is None:
            echo = os.getenv('SQL_ECHO', '0') == '1'
        kwargs: Dict[str, Any] = {'echo': echo, 'future': True}
        if url.startswith('sqlite') and ':memory:' in url:
            # every session must see the same in-memory database
            kwargs['poolclass'] = StaticPool
            kwargs['connect_args'] = {'check_same_thread': False}
        engine = create_async_engine(url, **kwargs)
        return cls(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False), engine)

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()

    # ---- queries -------------------------------------------------------
    @staticmethod
    def _row_stmt(collection: str, doc_id: str):
        return select(DocumentRow).where(DocumentRow.collection == collection, DocumentRow.id == str(doc_id))

    @staticmethod
    def _where(
        collection: str,
        filter: Optional[Mapping[str, Any]],
        search: Optional[Tuple[str, Iterable[str]]],
    ) -> Tuple[List[Any], List[Tuple[str, str, Any]]]:
        """Return SQL criteria plus the conditions that must be checked in Python."""
        criteria: List[Any] = [DocumentRow.collection == collection]
        leftover: List[Tuple[str, str, Any]] = []
        for key, op, operand in iter_conditions(filter):
            clause = _condition(key, op, operand)
            if clause is None:
                leftover.append((key, op, operand))
            else:
                criteria.append(clause)
        if search:
            text, fields = search
            fields = list(fields)
            if text and fields:
                pattern = _like_pattern(text)
                criteria.append(or_(*[DocumentRow.data[f].as_string().ilike(pattern, escape='\\') for f in fields]))
        return criteria, leftover

    @staticmethod
    def _matches(doc: Mapping[str, Any], leftover: Iterable[Tuple[str, str, Any]]) -> bool:
        return all(match_condition(doc.get(k), op, operand) for k, op, operand in leftover)

    async def insert(self, collection: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        payload = dict(data)
        doc_id = str(payload.pop('id', None) or new_object_id())
        row = DocumentRow(collection=collection, id=doc_id, data=payload)
        doc = row.to_document()
        async with self._sessionmaker() as session:
            session.add(row)
            await session.commit()
        _logger.debug("insert %s/%s", collection, doc_id)
        return doc

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        async with self._sessionmaker() as session:
            row = (await session.execute(self._row_stmt(collection, doc_id))).scalar_one_or_none()
        return row.to_document() if row is not None else None

    async def find(
        self,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        search: Optional[Tuple[str, Iterable[str]]] = None,
    ) -> List[Dict[str, Any]]:
        criteria, leftover = self._where(collection, filter, search)
        stmt = select(DocumentRow).where(and_(*criteria)).order_by(DocumentRow.pk)
        async with self._sessionmaker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        docs = [r.to_document() for r in rows]
        if leftover:
            docs = [d for d in docs if self._matches(d, leftover)]
        if sort:
            docs = _apply_sort(docs, sort)
        _logger.debug("find %s filter=%r -> %d doc(s)", collection, dict(filter or {}), len(docs))
        return docs

    async def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        changes = {k: v for k, v in changes.items() if k != 'id'}
        async with self._sessionmaker() as session:
            row = (await session.execute(self._row_stmt(collection, doc_id))).scalar_one_or_none()
            if row is None:
                return None
            # assign a new dict so the JSON column is flagged dirty
            row.data = {**(row.data or {}), **changes}
            doc = row.to_document()
            await session.commit()
        _logger.debug("update %s/%s fields=%s", collection, doc_id, sorted(changes))
        return doc

    async def add_to_set(self, collection: str, doc_id: str, field_name: str, values: Iterable[Any]) -> Optional[Dict[str, Any]]:
        async with self._sessionmaker() as session:
            row = (await session.execute(self._row_stmt(collection, doc_id))).scalar_one_or_none()
            if row is None:
                return None
            data = dict(row.data or {})
            merged = list(data.get(field_name) or [])
            for value in values:
                if value not in merged:
                    merged.append(value)
            data[field_name] = merged
            row.data = data
            doc = row.to_document()
            await session.commit()
        _logger.debug("add_to_set %s/%s.%s -> %d value(s)", collection, doc_id, field_name, len(merged))
        return doc

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._sessionmaker() as session:
            row = (await session.execute(self._row_stmt(collection, doc_id))).scalar_one_or_none()
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
        _logger.debug("delete %s/%s", collection, doc_id)
        return True

    async def paginate(
        self,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        page: int = 1,
        limit: int = 10,
        search: Optional[Tuple[str, Iterable[str]]] = None,
    ) -> Page:
        criteria, leftover = self._where(collection, filter, search)
        if sort or leftover:
            return await super().paginate(collection, filter, sort, page, limit, search)
        where = and_(*criteria)
        async with self._sessionmaker() as session:
            total = (await session.execute(select(func.count()).select_from(DocumentRow).where(where))).scalar_one()
            stmt = (
                select(DocumentRow).where(where).order_by(DocumentRow.pk)
                .offset((page - 1) * limit).limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
        return build_page([r.to_document() for r in rows], int(total), page, limit)
