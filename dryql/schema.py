"""Operation table assembly and Strawberry schema construction.

Usage:

    store = SQLAlchemyDocumentStore.from_url()
    api = DryQLSchema(store)
    api.model('Tag', field('name', filterable=True, sortable=True))
    api.hooks.register_hooks('Tag', TagHooks())
    schema = api.to_strawberry()

The operation table (``DryQLSchema.operations``) is built once; Strawberry
resolvers are thin generated wrappers that forward ``info.context`` and the
GraphQL arguments to the matching handler.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field as dc_field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import strawberry
from strawberry.schema.config import StrawberryConfig
from strawberry.types import Info as StrawberryInfo

from .core.errors import InvalidArgumentError, SchemaDefinitionError
from .core.fields import ALL_APIS, FieldDescriptor, ModelDefinition
from .core.naming import EmbeddedOperationNames, OperationNames
from .core.registry import MetadataRegistry
from .hooks import HookDispatcher
from .resolvers import CrudResolverGenerator, EmbeddedResolverGenerator
from .store.base import BaseStore
from .typer import SuccessResponse, TypeSynthesizer

__all__ = ['Operation', 'DryQLSchema', 'QUERY', 'MUTATION']

_logger = logging.getLogger("dryql.schema")

QUERY = 'query'
MUTATION = 'mutation'


@dataclass
class Operation:
    """One generated root field.

    Attributes:
        name: GraphQL field name (exposed verbatim).
        kind: ``'query'`` or ``'mutation'``.
        handler: ``async def handler(ctx, **kwargs)``.
        return_type: Strawberry return annotation.
        args: GraphQL argument name -> annotation, required arguments first.
        defaults: GraphQL argument name -> default value for optional arguments.
        params: GraphQL argument name -> handler keyword name.
        model: Owning model name.
    """

    name: str
    kind: str
    handler: Callable[..., Awaitable[Any]]
    return_type: Any
    args: Dict[str, Any] = dc_field(default_factory=dict)
    defaults: Dict[str, Any] = dc_field(default_factory=dict)
    params: Dict[str, str] = dc_field(default_factory=dict)
    model: Optional[str] = None
    description: Optional[str] = None

    def call_kwargs(self, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = [a for a in arguments if a not in self.args]
        if unknown:
            raise InvalidArgumentError(f"Unknown argument(s) for {self.name}: {', '.join(unknown)}")
        out: Dict[str, Any] = {}
        for arg in self.args:
            if arg in arguments:
                value = arguments[arg]
            elif arg in self.defaults:
                value = self.defaults[arg]
            else:
                raise InvalidArgumentError(f"Missing required argument {arg} for {self.name}")
            out[self.params.get(arg, arg)] = value
        return out


class DryQLSchema:
    """Model registry, type synthesizer, hooks and store wired into one API surface."""

    def __init__(
        self,
        store: BaseStore,
        *,
        registry: Optional[MetadataRegistry] = None,
        hooks: Optional[HookDispatcher] = None,
    ):
        self.store = store
        self.registry = registry or MetadataRegistry()
        self.typer = TypeSynthesizer(self.registry)
        self.hooks = hooks or HookDispatcher()
        self.operations: Dict[str, Operation] = {}
        self._built = False

    # ---- model registration ---------------------------------------------
    def register_model(self, definition: Union[ModelDefinition, Mapping[str, Any]]) -> ModelDefinition:
        if self._built:
            raise SchemaDefinitionError("Cannot register models after the schema has been built")
        if not isinstance(definition, ModelDefinition):
            definition = ModelDefinition.from_dict(definition)
        return self.registry.register_model(definition)

    def model(self, name: str, *fields: FieldDescriptor, **options: Any) -> ModelDefinition:
        """Declare and register a model in one call, e.g. ``api.model('Tag', field('name'))``."""
        return self.register_model(ModelDefinition(name, list(fields), **options))

    def register_hooks(self, model: Any, hook_object: Any) -> int:
        return self.hooks.register_hooks(model, hook_object)

    # ---- operation table ------------------------------------------------
    def build(self) -> Dict[str, Operation]:
        """Synthesize every type and assemble the operation table (idempotent)."""
        if self._built:
            return self.operations
        self.typer.build_all()
        for definition in self.registry.top_level_models():
            self._add_crud_operations(definition)
            for fdesc in self.registry.get_fields(definition.name):
                if fdesc.is_embedded_collection:
                    self._add_embedded_operations(definition, fdesc)
        self._built = True
        _logger.debug("operation table built: %d operation(s)", len(self.operations))
        return self.operations

    def _add(self, op: Operation) -> None:
        if op.name in self.operations:
            raise SchemaDefinitionError(
                f"Operation {op.name} of {op.model} clashes with one of {self.operations[op.name].model}"
            )
        self.operations[op.name] = op
        _logger.debug("operation %s %s(%s)", op.kind, op.name, ', '.join(op.args))

    def _listing_args(self, definition: ModelDefinition) -> Dict[str, Any]:
        args: Dict[str, Any] = {}
        filter_type = self.typer.filter_input(definition.name)
        if filter_type is not None:
            args['filter'] = Optional[filter_type]
        sort_type = self.typer.sort_input(definition.name)
        if sort_type is not None:
            args['sort'] = Optional[sort_type]
        if definition.enable_text_search:
            args['search'] = Optional[str]
        return args

    def _add_crud_operations(self, definition: ModelDefinition) -> None:
        name = definition.name
        crud = CrudResolverGenerator(definition, self.typer, self.store, self.hooks, self.registry)
        names = OperationNames(name)
        output = self.typer.output(name)
        listing = self._listing_args(definition)
        listing_defaults = {a: None for a in listing}
        table = {
            'create': Operation(
                names.create, MUTATION, crud.create, output,
                args={'input': self.typer.create_input(name)},
                description=f"Create a {name}",
            ),
            'update': Operation(
                names.update, MUTATION, crud.update, output,
                args={'input': self.typer.update_input(name)},
                description=f"Update a {name}; only supplied fields change",
            ),
            'remove': Operation(
                names.remove, MUTATION, crud.remove, SuccessResponse,
                args={'id': strawberry.ID},
                description=f"Remove a {name}",
            ),
            'findOne': Operation(
                names.find_one, QUERY, crud.find_one, output,
                args={'id': strawberry.ID},
            ),
            'findAll': Operation(
                names.find_all, QUERY, crud.find_many, List[output],  # type: ignore[valid-type]
                args=dict(listing), defaults=dict(listing_defaults),
            ),
            'paginate': Operation(
                names.paginate, QUERY, crud.paginate, self.typer.pagination(name),
                args={'page': int, 'limit': int, **listing},
                defaults={'page': 1, 'limit': 10, **listing_defaults},
            ),
        }
        for api in ALL_APIS:
            if not definition.allows(api):
                continue
            op = table[api]
            op.model = name
            self._add(op)

    def _add_embedded_operations(self, parent: ModelDefinition, fdesc: FieldDescriptor) -> None:
        gen = EmbeddedResolverGenerator(parent, fdesc, self.typer, self.store, self.registry)
        names = EmbeddedOperationNames(parent.name, fdesc.name)
        emb = fdesc.embedded_name
        pid = names.parent_id_arg
        output = self.typer.output(emb)
        update_input = self.typer.update_input(emb)
        ops = [
            Operation(
                names.create, MUTATION, gen.create, output,
                args={pid: strawberry.ID, 'input': self.typer.create_input(emb)},
            ),
            Operation(
                names.update, MUTATION, gen.bulk_update, List[output],  # type: ignore[valid-type]
                args={pid: strawberry.ID, 'input': List[update_input]},  # type: ignore[valid-type]
                description=f"Replace {parent.name}.{fdesc.name}; every item must reference an existing {emb}",
            ),
            Operation(
                names.update_one, MUTATION, gen.update_one, output,
                args={pid: strawberry.ID, 'id': strawberry.ID, 'input': update_input},
            ),
            Operation(
                names.remove, MUTATION, gen.remove, SuccessResponse,
                args={pid: strawberry.ID, 'ids': List[strawberry.ID]},
            ),
            Operation(
                names.get_one, QUERY, gen.get_one, output,
                args={pid: strawberry.ID, 'id': strawberry.ID},
            ),
            Operation(
                names.get_all, QUERY, gen.get_all, List[output],  # type: ignore[valid-type]
                args={pid: strawberry.ID},
            ),
        ]
        for op in ops:
            op.params = {pid: 'parent_id'}
            op.model = parent.name
            self._add(op)

    # ---- execution ------------------------------------------------------
    async def execute_operation(self, name: str, ctx: Any = None, **arguments: Any) -> Any:
        """Invoke a generated operation directly, bypassing GraphQL parsing."""
        op = self.build().get(name)
        if op is None:
            raise InvalidArgumentError(f"Unknown operation: {name}")
        return await op.handler(ctx, **op.call_kwargs(arguments))

    # ---- Strawberry -----------------------------------------------------
    @staticmethod
    def _make_resolver(op: Operation) -> Callable[..., Any]:
        params = []
        for arg in op.args:
            params.append(f"{arg}=_defaults[{arg!r}]" if arg in op.defaults else arg)
        forwarded = ', '.join(f"{op.params.get(a, a)}={a}" for a in op.args)
        func_name = f"_resolve_{op.name}"
        src = (
            f"async def {func_name}(self, info{', ' if params else ''}{', '.join(params)}):\n"
            f"    return await _handler(info.context{', ' if forwarded else ''}{forwarded})\n"
        )
        ns: Dict[str, Any] = {'_handler': op.handler, '_defaults': dict(op.defaults)}
        exec(src, ns)
        fn = ns[func_name]
        fn.__module__ = __name__
        anns: Dict[str, Any] = {'info': StrawberryInfo}
        anns.update(op.args)
        anns['return'] = op.return_type
        fn.__annotations__ = anns
        return fn

    def to_strawberry(self, *, strawberry_config: Optional[StrawberryConfig] = None) -> strawberry.Schema:
        """Build a ``strawberry.Schema`` exposing every operation of :meth:`build`.

        Without ``strawberry_config`` names are not camel-cased, so the operation
        names and field names appear exactly as generated.
        """
        operations = self.build()
        QueryPlain = type('Query', (), {'__doc__': 'Generated root query.'})
        MutationPlain = type('Mutation', (), {'__doc__': 'Generated root mutation.'})
        QueryPlain.__module__ = __name__
        MutationPlain.__module__ = __name__
        n_queries = n_mutations = 0
        for op in operations.values():
            fn = self._make_resolver(op)
            if op.kind == MUTATION:
                setattr(MutationPlain, op.name, strawberry.mutation(resolver=fn, description=op.description))
                n_mutations += 1
            else:
                setattr(QueryPlain, op.name, strawberry.field(resolver=fn, description=op.description))
                n_queries += 1
        if not n_queries:
            # GraphQL requires at least one query field
            async def _ping() -> str:
                return 'pong'
            setattr(QueryPlain, '_ping', strawberry.field(resolver=_ping))
        QueryPlain.__annotations__ = {}
        MutationPlain.__annotations__ = {}
        Query = strawberry.type(QueryPlain)
        Mutation = strawberry.type(MutationPlain) if n_mutations else None
        if strawberry_config is None:
            strawberry_config = StrawberryConfig(auto_camel_case=False)
        _logger.debug("strawberry schema: %d quer(ies), %d mutation(s)", n_queries, n_mutations)
        if Mutation is not None:
            return strawberry.Schema(Query, mutation=Mutation, config=strawberry_config)
        return strawberry.Schema(Query, config=strawberry_config)
