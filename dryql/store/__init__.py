from .base import FILTER_OPERATORS, BaseStore, Page, SortSpec, build_page, iter_conditions, matches_filter
from .sqlalchemy_store import Base, DocumentRow, SQLAlchemyDocumentStore

__all__ = [
    'BaseStore',
    'Page',
    'SortSpec',
    'FILTER_OPERATORS',
    'build_page',
    'iter_conditions',
    'matches_filter',
    'Base',
    'DocumentRow',
    'SQLAlchemyDocumentStore',
]
