from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional

from .errors import SchemaDefinitionError
from .fields import FieldDescriptor, ModelDefinition, id_field

__all__ = ['MetadataRegistry']

_logger = logging.getLogger("dryql.registry")


class MetadataRegistry:
    """Static per-model schema table.

    Holds model definitions and, per model, the ordered field descriptor list.
    Populated once at startup; lookups are plain dictionary reads.
    """

    def __init__(self):
        self._models: Dict[str, ModelDefinition] = {}
        self._fields: Dict[str, List[FieldDescriptor]] = {}

    def register_model(self, definition: ModelDefinition) -> ModelDefinition:
        """Register a model and all of its declared fields.

        An ``id`` field is prepended when the definition does not declare one, so every
        document (including embedded sub-documents) carries an identifier.
        Embedded models referenced by definition objects are registered too.
        """
        if not definition.name.isidentifier():
            raise SchemaDefinitionError(f"Invalid model name {definition.name!r}")
        if definition.name in self._models:
            if self._models[definition.name] is definition:
                return definition
            raise SchemaDefinitionError(f"Model {definition.name} is already registered")
        self._models[definition.name] = definition
        self._fields[definition.name] = []
        declared = list(definition.fields)
        if not any(f.is_id for f in declared):
            declared.insert(0, id_field())
        for descriptor in declared:
            self.register_field(definition.name, descriptor)
        for descriptor in declared:
            ref = descriptor.embedded_model
            if isinstance(ref, ModelDefinition):
                ref.embedded = True
                self.register_model(ref)
        _logger.debug("registered model %s with %d field(s)", definition.name, len(declared))
        return definition

    def register_field(self, model_name: str, descriptor: FieldDescriptor) -> None:
        if model_name not in self._models:
            raise SchemaDefinitionError(f"Model {model_name} is not registered")
        if not descriptor.name.isidentifier():
            raise SchemaDefinitionError(f"Invalid field name {model_name}.{descriptor.name!r}")
        fields = self._fields[model_name]
        if any(f.name == descriptor.name for f in fields):
            raise SchemaDefinitionError(f"Field {model_name}.{descriptor.name} is already registered")
        fields.append(descriptor)

    def get_fields(self, model_name: str) -> List[FieldDescriptor]:
        try:
            return list(self._fields[model_name])
        except KeyError:
            raise SchemaDefinitionError(f"Model {model_name} is not registered") from None

    def get_field(self, model_name: str, field_name: str) -> Optional[FieldDescriptor]:
        for descriptor in self._fields.get(model_name, ()):
            if descriptor.name == field_name:
                return descriptor
        return None

    def get_model(self, model_name: str) -> ModelDefinition:
        try:
            return self._models[model_name]
        except KeyError:
            raise SchemaDefinitionError(f"Model {model_name} is not registered") from None

    def has_model(self, model_name: str) -> bool:
        return model_name in self._models

    def models(self) -> List[ModelDefinition]:
        return list(self._models.values())

    def top_level_models(self) -> Iterable[ModelDefinition]:
        return [m for m in self._models.values() if not m.embedded]
