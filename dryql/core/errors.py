"""Error taxonomy for dryql.

Every error carries a ``kind`` and a human readable ``message``. When raised from a
GraphQL resolver, graphql-core copies ``extensions`` from the original exception so
clients see ``extensions.code`` next to the message.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    'DryQLError',
    'NotFoundError',
    'InvalidArgumentError',
    'SchemaDefinitionError',
    'HookFailure',
]


class DryQLError(Exception):
    kind: str = 'INTERNAL'

    def __init__(self, message: str, *, extensions: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extensions: Dict[str, Any] = {'code': self.kind}
        if extensions:
            self.extensions.update(extensions)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


class NotFoundError(DryQLError):
    """Missing id on read/update/remove, top level or inside an embedded collection."""

    kind = 'NOT_FOUND'

    @classmethod
    def for_model(cls, model_name: str, id_value: Any) -> 'NotFoundError':
        return cls(f"No {model_name} found with ID: {id_value}")

    @classmethod
    def for_embedded(cls, embedded_name: str, id_value: Any, parent_name: str, parent_id: Any) -> 'NotFoundError':
        return cls(f"No {embedded_name} found with ID: {id_value} in {parent_name} with ID: {parent_id}")


class InvalidArgumentError(DryQLError):
    kind = 'INVALID_ARGUMENT'


class SchemaDefinitionError(DryQLError):
    """Raised while synthesizing types; fatal at startup, never per request."""

    kind = 'SCHEMA_DEFINITION'


class HookFailure(DryQLError):
    """Convenience base for errors raised by hooks.

    Hooks may raise any exception; dryql never wraps it, so this class only exists
    to give hook authors a ready-made ``kind``.
    """

    kind = 'HOOK_FAILURE'
