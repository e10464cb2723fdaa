"""dryql public API with lazy exports.

Model declaration helpers and errors are cheap to import; the schema, resolver
and store layers (which pull in SQLAlchemy) load on first attribute access.

Exposes:
- field, id_field, enum_field, embedded, references_many, ModelDefinition, FieldDescriptor
- DryQLSchema, Operation, TypeSynthesizer, TypeKind, SuccessResponse, SortDirection
- HookDispatcher, HookPhase, ALL_MODELS
- BaseStore, SQLAlchemyDocumentStore, Page
- DryQLError, NotFoundError, InvalidArgumentError, SchemaDefinitionError, HookFailure
"""
from __future__ import annotations

from .core.errors import (
    DryQLError,
    HookFailure,
    InvalidArgumentError,
    NotFoundError,
    SchemaDefinitionError,
)
from .core.fields import (
    EnumSpec,
    FieldDescriptor,
    ModelDefinition,
    RelationSpec,
    embedded,
    enum_field,
    field,
    id_field,
    references_many,
)
from .hooks import ALL_MODELS, HookDispatcher, HookPhase

_LAZY = {
    'DryQLSchema': 'schema',
    'Operation': 'schema',
    'TypeSynthesizer': 'typer',
    'TypeKind': 'typer',
    'SuccessResponse': 'typer',
    'SortDirection': 'typer',
    'MetadataRegistry': 'core.registry',
    'CrudResolverGenerator': 'resolvers',
    'EmbeddedResolverGenerator': 'resolvers',
    'BaseStore': 'store',
    'Page': 'store',
    'SQLAlchemyDocumentStore': 'store',
}


def __getattr__(name: str):  # PEP 562 lazy exports
    import importlib as _importlib
    module = _LAZY.get(name)
    if module is None:
        raise AttributeError(name)
    return getattr(_importlib.import_module(f"{__name__}.{module}"), name)


__all__ = [
    'field', 'id_field', 'enum_field', 'embedded', 'references_many',
    'EnumSpec', 'RelationSpec', 'FieldDescriptor', 'ModelDefinition',
    'HookDispatcher', 'HookPhase', 'ALL_MODELS',
    'DryQLError', 'NotFoundError', 'InvalidArgumentError', 'SchemaDefinitionError', 'HookFailure',
    *_LAZY,
]
