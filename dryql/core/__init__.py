"""Core building blocks: field descriptors, metadata registry, naming, errors."""

from .errors import DryQLError, HookFailure, InvalidArgumentError, NotFoundError, SchemaDefinitionError
from .fields import (
    ALL_APIS,
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
from .registry import MetadataRegistry

__all__ = [
    'ALL_APIS',
    'EnumSpec',
    'RelationSpec',
    'FieldDescriptor',
    'ModelDefinition',
    'field',
    'id_field',
    'enum_field',
    'embedded',
    'references_many',
    'MetadataRegistry',
    'DryQLError',
    'NotFoundError',
    'InvalidArgumentError',
    'SchemaDefinitionError',
    'HookFailure',
]
