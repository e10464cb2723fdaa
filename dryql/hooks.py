"""Before/after lifecycle hooks around the generated CRUD operations.

Registrations are kept as an ordered list of ``(model_matcher, phase, handler)``
entries. Dispatch scans the list linearly, so wildcard (``ALL_MODELS``) handlers
run interleaved with model-specific ones in registration order.

Usage:

    class TagHooks:
        async def before_create(self, ctx, input):
            ...
        def after_remove(self, ctx, removed):
            ...

    dispatcher.register_hooks('Tag', TagHooks())
    dispatcher.register(ALL_MODELS, HookPhase.AFTER_CREATE, audit)
"""
from __future__ import annotations
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Tuple

__all__ = ['ALL_MODELS', 'HookPhase', 'PHASE_PAYLOAD', 'HookRegistration', 'HookDispatcher']

_logger = logging.getLogger("dryql.hooks")


class _AllModels:
    """Wildcard model matcher."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'ALL_MODELS'


ALL_MODELS = _AllModels()


class HookPhase(str, Enum):
    BEFORE_CREATE = 'before_create'
    AFTER_CREATE = 'after_create'
    BEFORE_FIND_ONE = 'before_find_one'
    AFTER_FIND_ONE = 'after_find_one'
    BEFORE_FIND_MANY = 'before_find_many'
    AFTER_FIND_MANY = 'after_find_many'
    BEFORE_UPDATE = 'before_update'
    AFTER_UPDATE = 'after_update'
    BEFORE_REMOVE = 'before_remove'
    AFTER_REMOVE = 'after_remove'


# keyword payload handed to handlers of each phase
PHASE_PAYLOAD = {
    HookPhase.BEFORE_CREATE: ('ctx', 'input'),
    HookPhase.AFTER_CREATE: ('ctx', 'input', 'created'),
    HookPhase.BEFORE_FIND_ONE: ('ctx', 'filter'),
    HookPhase.AFTER_FIND_ONE: ('ctx', 'filter', 'result'),
    HookPhase.BEFORE_FIND_MANY: ('ctx', 'filter', 'sort'),
    HookPhase.AFTER_FIND_MANY: ('ctx', 'filter', 'sort', 'items'),
    HookPhase.BEFORE_UPDATE: ('ctx', 'input', 'before_updated'),
    HookPhase.AFTER_UPDATE: ('ctx', 'input', 'updated', 'before_updated'),
    HookPhase.BEFORE_REMOVE: ('ctx', 'before_removed'),
    HookPhase.AFTER_REMOVE: ('ctx', 'removed'),
}

HookHandler = Callable[..., Any]


@dataclass(frozen=True)
class HookRegistration:
    model_matcher: Any
    phase: HookPhase
    handler: HookHandler

    def matches(self, model_name: str, phase: HookPhase) -> bool:
        if self.phase is not phase:
            return False
        return self.model_matcher is ALL_MODELS or self.model_matcher == model_name


class HookDispatcher:
    """Append-only hook table with sequential, awaited dispatch.

    Handler return values are discarded. Any exception raised by a handler propagates
    unchanged and aborts the surrounding operation; work already done by that
    operation is not undone.
    """

    def __init__(self):
        self._registrations: List[HookRegistration] = []

    def register(self, model: Any, phase: HookPhase | str, handler: HookHandler) -> HookHandler:
        """Register ``handler`` for ``phase`` of ``model`` (a model name, a definition or ``ALL_MODELS``)."""
        try:
            phase = HookPhase(phase)
        except ValueError:
            raise ValueError(f"Unknown hook phase: {phase}") from None
        if not callable(handler):
            raise TypeError(f"Hook handler for {phase.value} must be callable")
        self._registrations.append(HookRegistration(self._matcher(model), phase, handler))
        return handler

    def register_hooks(self, model: Any, hook_object: Any) -> int:
        """Register every phase-named method found on ``hook_object``.

        Returns the number of handlers registered. Objects implementing no phase are
        accepted (and logged), mirroring hooks declared for models that expose no API.
        """
        count = 0
        for phase in HookPhase:
            handler = getattr(hook_object, phase.value, None)
            if handler is None:
                continue
            self.register(model, phase, handler)
            count += 1
        if not count:
            _logger.warning("hook object %r implements no hook phase", hook_object)
        return count

    def on(self, model: Any, phase: HookPhase | str) -> Callable[[HookHandler], HookHandler]:
        """Decorator form of :meth:`register`.

        Example:
            @dispatcher.on('Tag', 'after_create')
            async def notify(ctx, input, created): ...
        """
        def deco(fn: HookHandler) -> HookHandler:
            return self.register(model, phase, fn)
        return deco

    def handlers_for(self, model_name: str, phase: HookPhase | str) -> List[HookHandler]:
        phase = HookPhase(phase)
        return [r.handler for r in self._registrations if r.matches(model_name, phase)]

    @property
    def registrations(self) -> Tuple[HookRegistration, ...]:
        return tuple(self._registrations)

    async def dispatch(self, model_name: str, phase: HookPhase | str, **payload: Any) -> None:
        phase = HookPhase(phase)
        expected = PHASE_PAYLOAD[phase]
        if set(payload) != set(expected):
            raise TypeError(f"{phase.value} hooks take ({', '.join(expected)}), got ({', '.join(payload)})")
        for registration in self._registrations:
            if not registration.matches(model_name, phase):
                continue
            res = registration.handler(**payload)
            if inspect.isawaitable(res):
                await res

    @staticmethod
    def _matcher(model: Any) -> Any:
        if model is ALL_MODELS:
            return ALL_MODELS
        if isinstance(model, str):
            return model
        name = getattr(model, 'name', None)
        if isinstance(name, str):
            return name
        raise TypeError(f"Cannot register hooks for {model!r}; pass a model name, definition or ALL_MODELS")
