"""Type synthesis: ModelDefinition field descriptors -> Strawberry types.

For every model four types are derived (output, create input, update input,
pagination wrapper) plus the optional filter/sort inputs. Each ``(model, kind)``
pair is built exactly once and cached; later requests return the cached class.
"""
from __future__ import annotations
import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import strawberry

from .core.errors import SchemaDefinitionError
from .core.fields import FieldDescriptor, ModelDefinition
from .core.naming import to_pascal
from .core.registry import MetadataRegistry
from .core.utils import UNSET, normalize_id

__all__ = ['TypeKind', 'TypeSynthesizer', 'SortDirection', 'SuccessResponse', 'SCALAR_TYPE_MAP', 'OPERATOR_ATTRS']

_logger = logging.getLogger("dryql.typer")

_NO_DEFAULT = object()

# GraphQL operator name -> Python attribute name where the former is a keyword
OPERATOR_ATTRS = {'in': 'in_'}


class TypeKind(str, Enum):
    OUTPUT = 'output'
    CREATE = 'create'
    UPDATE = 'update'
    PAGINATION = 'pagination'
    FILTER = 'filter'
    SORT = 'sort'


class _SortDirectionEnum(Enum):
    ASC = 'asc'
    DESC = 'desc'


SortDirection = strawberry.enum(_SortDirectionEnum, name="SortDirection")  # type: ignore


@strawberry.type(description="Result of a remove operation")
class SuccessResponse:
    success: bool


# storage type -> GraphQL scalar (Python annotation)
SCALAR_TYPE_MAP: Dict[str, Any] = {
    'text': str,
    'timestamp': str,
    'number': float,
    'boolean': bool,
    'id': strawberry.ID,
}

_NESTED_USAGE = {
    TypeKind.OUTPUT: TypeKind.OUTPUT,
    TypeKind.CREATE: TypeKind.CREATE,
    TypeKind.UPDATE: TypeKind.UPDATE,
}


class TypeSynthesizer:
    """Builds and memoizes Strawberry types for the models of a :class:`MetadataRegistry`."""

    def __init__(self, registry: MetadataRegistry):
        self.registry = registry
        self._types: Dict[Tuple[str, TypeKind], Any] = {}
        # enum name -> strawberry enum, shared by every model using that name
        self._enums: Dict[str, Any] = {}
        self._lock = threading.RLock()
        self._building: List[Tuple[str, TypeKind]] = []

    # ---- public lookups ------------------------------------------------
    def get_type(self, model_name: str, kind: TypeKind | str) -> Any:
        kind = TypeKind(kind)
        key = (model_name, kind)
        cached = self._types.get(key)
        if cached is not None:
            return cached
        with self._lock:
            cached = self._types.get(key)
            if cached is not None:
                return cached
            if key in self._building:
                chain = ' -> '.join(n for n, _ in self._building + [key])
                raise SchemaDefinitionError(f"Embedded model cycle detected: {chain}")
            self._building.append(key)
            try:
                built = self._build(self.registry.get_model(model_name), kind)
            finally:
                self._building.pop()
            self._types[key] = built
            _logger.debug("synthesized %s type %s", kind.value, self.type_name(model_name, kind))
            return built

    def output(self, model_name: str) -> Any:
        return self.get_type(model_name, TypeKind.OUTPUT)

    def create_input(self, model_name: str) -> Any:
        return self.get_type(model_name, TypeKind.CREATE)

    def update_input(self, model_name: str) -> Any:
        return self.get_type(model_name, TypeKind.UPDATE)

    def pagination(self, model_name: str) -> Any:
        return self.get_type(model_name, TypeKind.PAGINATION)

    def filter_input(self, model_name: str) -> Optional[Any]:
        """Return ``{Model}Filter`` or None when the model has no filterable field."""
        if not any(f.filterable for f in self._scalar_fields(model_name)):
            return None
        return self.get_type(model_name, TypeKind.FILTER)

    def sort_input(self, model_name: str) -> Optional[Any]:
        if not any(f.sortable for f in self._scalar_fields(model_name)):
            return None
        return self.get_type(model_name, TypeKind.SORT)

    def is_cached(self, model_name: str, kind: TypeKind | str) -> bool:
        return (model_name, TypeKind(kind)) in self._types

    def build_all(self) -> None:
        """Synthesize every type of every registered model (single startup pass).

        Any field without a resolvable type raises :class:`SchemaDefinitionError` here.
        """
        for definition in self.registry.models():
            self.output(definition.name)
            self.create_input(definition.name)
            self.update_input(definition.name)
            if not definition.embedded:
                self.pagination(definition.name)
                self.filter_input(definition.name)
                self.sort_input(definition.name)

    @staticmethod
    def type_name(model_name: str, kind: TypeKind | str) -> str:
        kind = TypeKind(kind)
        if kind is TypeKind.OUTPUT:
            return model_name
        if kind is TypeKind.CREATE:
            return f"Create{model_name}Input"
        if kind is TypeKind.UPDATE:
            return f"Update{model_name}Input"
        if kind is TypeKind.PAGINATION:
            return f"{model_name}Pagination"
        if kind is TypeKind.FILTER:
            return f"{model_name}Filter"
        return f"{model_name}Sort"

    # ---- field sets ----------------------------------------------------
    def output_fields(self, model_name: str) -> List[FieldDescriptor]:
        return [
            f for f in self.registry.get_fields(model_name)
            if not f.excluded_on_output and not f.is_relation
        ]

    def create_fields(self, model_name: str) -> List[FieldDescriptor]:
        return [
            f for f in self.registry.get_fields(model_name)
            if not f.is_id and not f.excluded_on_create
        ]

    def update_fields(self, model_name: str) -> List[FieldDescriptor]:
        return [
            f for f in self.registry.get_fields(model_name)
            if f.is_id or (not f.excluded_on_update and not f.is_relation)
        ]

    def _scalar_fields(self, model_name: str) -> List[FieldDescriptor]:
        return [
            f for f in self.registry.get_fields(model_name)
            if f.embedded_model is None and not f.is_relation
        ]

    # ---- builders ------------------------------------------------------
    def _build(self, definition: ModelDefinition, kind: TypeKind) -> Any:
        if kind is TypeKind.PAGINATION:
            return self._build_pagination(definition)
        if kind is TypeKind.SORT:
            return self._build_sort(definition)
        if kind is TypeKind.FILTER:
            return self._build_filter(definition)

        name = self.type_name(definition.name, kind)
        if kind is TypeKind.OUTPUT:
            descriptors = self.output_fields(definition.name)
            doc = definition.description or f'{definition.name} output'
        elif kind is TypeKind.CREATE:
            descriptors = self.create_fields(definition.name)
            doc = f'Input for creating a {definition.name}'
        else:
            descriptors = self.update_fields(definition.name)
            doc = f'Input for updating a {definition.name}'

        plain = type(name, (), {'__doc__': doc})
        plain.__module__ = __name__
        anns: Dict[str, Any] = {}
        for fdesc in descriptors:
            base = self._resolve_base_type(definition, fdesc, kind)
            if self._is_nullable(fdesc, kind):
                anns[fdesc.name] = Optional[base]
                # outputs default to None; inputs distinguish omitted (UNSET) from null
                default = None if kind is TypeKind.OUTPUT else UNSET
            else:
                anns[fdesc.name] = base
                default = None if kind is TypeKind.OUTPUT else _NO_DEFAULT
            if fdesc.description:
                if default is _NO_DEFAULT:
                    setattr(plain, fdesc.name, strawberry.field(description=fdesc.description))
                else:
                    setattr(plain, fdesc.name, strawberry.field(default=default, description=fdesc.description))
            elif default is not _NO_DEFAULT:
                setattr(plain, fdesc.name, default)
        plain.__annotations__ = anns
        if kind is TypeKind.OUTPUT:
            return strawberry.type(plain, name=name, description=doc)
        return strawberry.input(plain, name=name, description=doc)

    def _build_pagination(self, definition: ModelDefinition) -> Any:
        name = self.type_name(definition.name, TypeKind.PAGINATION)
        output = self.output(definition.name)
        plain = type(name, (), {'__doc__': f'Page of {definition.name} results'})
        plain.__module__ = __name__
        plain.__annotations__ = {
            'docs': List[output],  # type: ignore[valid-type]
            'totalDocs': Optional[int],
            'page': Optional[int],
            'limit': Optional[int],
            'hasPrevPage': Optional[bool],
            'hasNextPage': Optional[bool],
            'totalPages': Optional[int],
        }
        for attr in ('totalDocs', 'page', 'limit', 'hasPrevPage', 'hasNextPage', 'totalPages'):
            setattr(plain, attr, None)
        return strawberry.type(plain, name=name)

    def _build_filter(self, definition: ModelDefinition) -> Any:
        name = self.type_name(definition.name, TypeKind.FILTER)
        plain = type(name, (), {'__doc__': f'Filter for {definition.name}; all conditions must hold'})
        plain.__module__ = __name__
        anns: Dict[str, Any] = {}
        for fdesc in self._scalar_fields(definition.name):
            if not fdesc.filterable:
                continue
            anns[fdesc.name] = Optional[self._build_operators(definition, fdesc)]
            setattr(plain, fdesc.name, UNSET)
        plain.__annotations__ = anns
        return strawberry.input(plain, name=name)

    def _build_operators(self, definition: ModelDefinition, fdesc: FieldDescriptor) -> Any:
        """``{Model}{Field}Filter``: one optional argument per operator of the field."""
        name = f"{definition.name}{to_pascal(fdesc.name)}Filter"
        base = self._resolve_base_type(definition, fdesc, TypeKind.FILTER)
        textual = base is str and fdesc.enum_spec is None
        if 'contains' in fdesc.filter_operators and not textual:
            raise SchemaDefinitionError(
                f"Filter operator contains needs a text field, {definition.name}.{fdesc.name} is not one"
            )
        plain = type(name, (), {'__doc__': f'Conditions on {definition.name}.{fdesc.name}'})
        plain.__module__ = __name__
        anns: Dict[str, Any] = {}
        for op in fdesc.operators:
            if op == 'contains' and not textual:
                continue
            attr = OPERATOR_ATTRS.get(op, op)
            anns[attr] = Optional[List[base]] if op in ('in', 'notIn') else Optional[base]  # type: ignore[valid-type]
            if attr == op:
                setattr(plain, attr, UNSET)
            else:
                setattr(plain, attr, strawberry.field(default=UNSET, name=op))
        plain.__annotations__ = anns
        return strawberry.input(plain, name=name)

    def _build_sort(self, definition: ModelDefinition) -> Any:
        name = self.type_name(definition.name, TypeKind.SORT)
        plain = type(name, (), {'__doc__': f'Sort order for {definition.name}; fields apply in declaration order'})
        plain.__module__ = __name__
        anns: Dict[str, Any] = {}
        for fdesc in self._scalar_fields(definition.name):
            if not fdesc.sortable:
                continue
            anns[fdesc.name] = Optional[SortDirection]  # type: ignore[valid-type]
            setattr(plain, fdesc.name, UNSET)
        plain.__annotations__ = anns
        return strawberry.input(plain, name=name)

    @staticmethod
    def _is_nullable(fdesc: FieldDescriptor, kind: TypeKind) -> bool:
        if kind is TypeKind.OUTPUT:
            return fdesc.nullable_on_output
        if kind is TypeKind.CREATE:
            return not fdesc.required_on_create
        return True

    def _resolve_base_type(self, definition: ModelDefinition, fdesc: FieldDescriptor, kind: TypeKind) -> Any:
        # 1) explicit override wins outright
        if fdesc.type_override is not None:
            return fdesc.type_override
        # 2) named enum, shared across models
        if fdesc.enum_spec is not None:
            return self.enum_type(fdesc)
        # 3) fixed scalar map
        scalar = SCALAR_TYPE_MAP.get(fdesc.storage_type)
        if scalar is not None:
            return scalar
        # 4) nested embedded model / inline relation payload
        if fdesc.embedded_model is not None and kind in _NESTED_USAGE:
            nested = self.get_type(self._embedded_model_name(definition, fdesc), _NESTED_USAGE[kind])
            return List[nested] if fdesc.many else nested  # type: ignore[valid-type]
        if fdesc.is_relation and kind is TypeKind.CREATE:
            target = fdesc.relation.target_model
            if not self.registry.has_model(target):
                raise SchemaDefinitionError(
                    f"Relation {definition.name}.{fdesc.name} targets unknown model {target}"
                )
            return List[self.create_input(target)]  # type: ignore[valid-type]
        raise SchemaDefinitionError(
            f"Invalid type for field {definition.name}.{fdesc.name}. "
            f"You can override it with type_override=<type>"
        )

    def _embedded_model_name(self, definition: ModelDefinition, fdesc: FieldDescriptor) -> str:
        name = fdesc.embedded_name
        if not name or not self.registry.has_model(name):
            raise SchemaDefinitionError(
                f"Field {definition.name}.{fdesc.name} references unknown embedded model {name}"
            )
        return name

    def enum_type(self, fdesc: FieldDescriptor) -> Any:
        spec = fdesc.enum_spec
        with self._lock:
            st_enum = self._enums.get(spec.name)
            if st_enum is None:
                py_enum = Enum(spec.name, dict(spec.value_map))  # type: ignore[misc]
                st_enum = strawberry.enum(py_enum, name=spec.name)  # type: ignore
                self._enums[spec.name] = st_enum
            return st_enum

    # ---- output reshaping ----------------------------------------------
    def to_output(self, model_name: str, doc: Optional[Dict[str, Any]]) -> Any:
        """Reshape a stored document into an instance of the model's output type.

        The identifier is normalized to ``id``; only output fields are kept; embedded
        values become instances of the embedded output type; absent fields are None.
        """
        if doc is None:
            return None
        data = normalize_id(doc)
        values: Dict[str, Any] = {}
        for fdesc in self.output_fields(model_name):
            values[fdesc.name] = self._output_value(fdesc, data.get(fdesc.name))
        return self.output(model_name)(**values)

    def _output_value(self, fdesc: FieldDescriptor, raw: Any) -> Any:
        if raw is None:
            return None
        if fdesc.embedded_model is not None:
            name = fdesc.embedded_name
            if fdesc.many:
                return [self.to_output(name, item) for item in raw]
            return self.to_output(name, raw)
        if fdesc.enum_spec is not None and fdesc.type_override is None:
            enum_cls = self.enum_type(fdesc)
            if isinstance(raw, enum_cls):
                return raw
            try:
                return enum_cls(raw)
            except ValueError:
                return raw
        return raw

