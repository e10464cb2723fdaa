from __future__ import annotations
from dataclasses import dataclass, field as dc_field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

__all__ = [
    'ALL_APIS',
    'FILTER_OPERATORS',
    'SCALAR_STORAGE_TYPES',
    'EnumSpec',
    'RelationSpec',
    'FieldDescriptor',
    'ModelDefinition',
    'field',
    'id_field',
    'enum_field',
    'embedded',
    'references_many',
]

ALL_APIS = ('create', 'update', 'remove', 'findOne', 'findAll', 'paginate')

SCALAR_STORAGE_TYPES = ('text', 'timestamp', 'number', 'boolean')

FILTER_OPERATORS = ('eq', 'ne', 'in', 'notIn', 'gt', 'gte', 'lt', 'lte', 'contains')

REFERENCES_MANY = 'referencesMany'


@dataclass(frozen=True)
class EnumSpec:
    """Named enum shared by every field (across models) declaring the same name.

    Attributes:
        name: GraphQL enum type name (e.g. "Color").
        value_map: Mapping of enum member name to the stored value
            (e.g. ``{'RED': 'red', 'BLUE': 'blue'}``).
    """

    name: str
    value_map: Mapping[str, Any]


@dataclass(frozen=True)
class RelationSpec:
    """Relation to another top-level model.

    Only ``referencesMany`` is supported: inline sub-objects supplied on create are
    persisted in ``target_model``'s collection and their ids are merged into
    ``link_field`` of the owner document.
    """

    target_model: str
    link_field: str
    kind: str = REFERENCES_MANY


@dataclass(frozen=True)
class FieldDescriptor:
    """Normalized description of one model field.

    Attributes:
        name: Field name, used verbatim in generated GraphQL types and in stored documents.
        storage_type: Declared scalar/object type ("text", "timestamp", "number",
            "boolean", "id", "object", "array", ...).
        excluded_on_create / excluded_on_update / excluded_on_output: Usage flags.
        required_on_create: Non-null in the create input unless False.
        nullable_on_output: Nullable in the output type when True.
        filterable / sortable: Expose the field in ``{Model}Filter`` / ``{Model}Sort``.
        filter_operators: Operators offered in ``{Model}Filter`` (every operator of
            :data:`FILTER_OPERATORS` that fits the type when empty); implies ``filterable``.
        type_override: Python/Strawberry type used as-is for the field.
        enum_spec: Enum definition, see :class:`EnumSpec`.
        embedded_model: Name (or definition) of an embedded model nested in this field.
        many: The embedded value is an array of sub-documents.
        relation: Relation definition, see :class:`RelationSpec`.
        description: Optional GraphQL description.
    """

    name: str
    storage_type: str = 'text'
    excluded_on_create: bool = False
    excluded_on_update: bool = False
    excluded_on_output: bool = False
    required_on_create: bool = True
    nullable_on_output: bool = False
    filterable: bool = False
    sortable: bool = False
    filter_operators: Tuple[str, ...] = ()
    type_override: Any = None
    enum_spec: Optional[EnumSpec] = None
    embedded_model: Any = None
    many: bool = False
    relation: Optional[RelationSpec] = None
    description: Optional[str] = None

    def __post_init__(self):
        operators = tuple(self.filter_operators or ())
        unknown = [op for op in operators if op not in FILTER_OPERATORS]
        if unknown:
            raise ValueError(f"Unknown filter operator(s) for field {self.name}: {', '.join(unknown)}")
        object.__setattr__(self, 'filter_operators', operators)
        if operators:
            object.__setattr__(self, 'filterable', True)

    @property
    def operators(self) -> Tuple[str, ...]:
        if self.filter_operators:
            return self.filter_operators
        return FILTER_OPERATORS if self.filterable else ()

    @property
    def is_id(self) -> bool:
        return self.name == 'id'

    @property
    def embedded_name(self) -> Optional[str]:
        ref = self.embedded_model
        if ref is None:
            return None
        return ref if isinstance(ref, str) else getattr(ref, 'name', None)

    @property
    def is_embedded_collection(self) -> bool:
        return self.embedded_model is not None and self.many

    @property
    def is_relation(self) -> bool:
        return self.relation is not None and self.relation.kind == REFERENCES_MANY

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'FieldDescriptor':
        """Create a descriptor from the configuration shape (camelCase keys)."""
        enum_raw = data.get('enumSpec')
        enum_spec = None
        if enum_raw is not None:
            enum_spec = enum_raw if isinstance(enum_raw, EnumSpec) else EnumSpec(
                name=enum_raw['name'], value_map=dict(enum_raw.get('valueMap') or enum_raw.get('value_map') or {})
            )
        rel_raw = data.get('relationSpec')
        relation = None
        if rel_raw is not None:
            relation = rel_raw if isinstance(rel_raw, RelationSpec) else RelationSpec(
                kind=rel_raw.get('kind', REFERENCES_MANY),
                target_model=rel_raw['targetModel'],
                link_field=rel_raw['linkField'],
            )
        embedded_model = data.get('embeddedModel')
        storage_type = data.get('storageType')
        if storage_type is None:
            if embedded_model is not None:
                storage_type = 'array' if data.get('many', True) else 'object'
            elif relation is not None:
                storage_type = 'array'
            else:
                storage_type = 'text'
        # an empty array is a valid create payload
        embedded_array = embedded_model is not None and storage_type == 'array'
        return cls(
            name=data['name'],
            storage_type=storage_type,
            excluded_on_create=bool(data.get('excludedOnCreate', False)),
            excluded_on_update=bool(data.get('excludedOnUpdate', False)),
            excluded_on_output=bool(data.get('excludedOnOutput', False)),
            required_on_create=bool(data.get('requiredOnCreate', not embedded_array)),
            nullable_on_output=bool(data.get('nullableOnOutput', False)),
            filterable=bool(data.get('filterable', False)),
            filter_operators=tuple(data.get('filterOperators') or ()),
            sortable=bool(data.get('sortable', False)),
            type_override=data.get('typeOverride'),
            enum_spec=enum_spec,
            embedded_model=embedded_model,
            many=bool(data.get('many', storage_type == 'array')),
            relation=relation,
            description=data.get('description'),
        )


@dataclass
class ModelDefinition:
    """Declarative description of a persisted entity (or of an embedded sub-document).

    Identity is ``name``; the type cache and the hook table key on it.
    """

    name: str
    fields: List[FieldDescriptor] = dc_field(default_factory=list)
    allowed_apis: Union[str, Iterable[str]] = '*'
    enable_text_search: bool = False
    collection: Optional[str] = None
    embedded: bool = False
    description: Optional[str] = None

    def __post_init__(self):
        if self.collection is None:
            self.collection = self.name
        if self.allowed_apis != '*':
            apis = tuple(self.allowed_apis)
            unknown = [a for a in apis if a not in ALL_APIS]
            if unknown:
                raise ValueError(f"Unknown api(s) for model {self.name}: {', '.join(unknown)}")
            self.allowed_apis = apis

    def allows(self, api: str) -> bool:
        if self.embedded:
            return False
        return self.allowed_apis == '*' or api in self.allowed_apis

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ModelDefinition':
        return cls(
            name=data['name'],
            fields=[f if isinstance(f, FieldDescriptor) else FieldDescriptor.from_dict(f) for f in data.get('fields', [])],
            allowed_apis=data.get('allowedApis', '*'),
            enable_text_search=bool(data.get('enableTextSearch', False)),
            collection=data.get('collection'),
            embedded=bool(data.get('embedded', False)),
            description=data.get('description'),
        )


def field(name: str, storage_type: str = 'text', /, *, nullable: bool = False, **meta: Any) -> FieldDescriptor:
    """Declare a plain field.

    ``nullable=True`` is shorthand for ``nullable_on_output=True`` and
    ``required_on_create=False``; explicit keyword flags win over it.

    Examples:
        field('name', filterable=True, sortable=True)
        field('numberOfOrders', 'number', nullable=True, filter_operators=('eq', 'gt', 'lt'))
        field('countryId', type_override=strawberry.ID, nullable=True)
    """
    opts: Dict[str, Any] = {}
    if nullable:
        opts['nullable_on_output'] = True
        opts['required_on_create'] = False
    opts.update(meta)
    return FieldDescriptor(name=name, storage_type=storage_type, **opts)


def id_field(name: str = 'id', **meta: Any) -> FieldDescriptor:
    """Declare the identifier field (excluded from create input, ``ID`` typed)."""
    import strawberry

    opts: Dict[str, Any] = {'type_override': strawberry.ID, 'excluded_on_create': True}
    opts.update(meta)
    return FieldDescriptor(name=name, storage_type='id', **opts)


def enum_field(name: str, enum_name: str, value_map: Mapping[str, Any], **meta: Any) -> FieldDescriptor:
    """Declare a field typed by a named enum, e.g. ``enum_field('color', 'Color', {'RED': 'red'})``."""
    nullable = bool(meta.pop('nullable', False))
    return field(name, 'text', nullable=nullable, enum_spec=EnumSpec(enum_name, dict(value_map)), **meta)


def embedded(name: str, model: Any, *, many: bool = True, **meta: Any) -> FieldDescriptor:
    """Declare a field holding an embedded sub-document (or an array of them when ``many``)."""
    nullable = bool(meta.pop('nullable', False))
    opts: Dict[str, Any] = {}
    if many and not nullable:
        # an empty array is a valid create payload
        opts['required_on_create'] = False
    opts.update(meta)
    return field(name, 'array' if many else 'object', nullable=nullable, embedded_model=model, many=many, **opts)


def references_many(name: str, target_model: Any, link_field: str, **meta: Any) -> FieldDescriptor:
    """Declare an inline-creatable ``referencesMany`` relation.

    The field only appears on the create input (list of the target's create input);
    created ids end up in ``link_field``.
    """
    target = target_model if isinstance(target_model, str) else getattr(target_model, 'name')
    opts: Dict[str, Any] = {
        'required_on_create': False,
        'excluded_on_update': True,
        'excluded_on_output': True,
    }
    opts.update(meta)
    return FieldDescriptor(
        name=name,
        storage_type='array',
        relation=RelationSpec(target_model=target, link_field=link_field),
        **opts,
    )

