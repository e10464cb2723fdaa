from __future__ import annotations
import os
import time
from dataclasses import fields as dc_fields, is_dataclass
from enum import Enum
from typing import Any, Dict, Optional

import strawberry

__all__ = ['UNSET', 'new_object_id', 'input_to_dict', 'normalize_id', 'ZERO_ID']

UNSET = getattr(strawberry, 'UNSET')

ZERO_ID = '0' * 24

_counter = int.from_bytes(os.urandom(3), 'big')


def new_object_id() -> str:
    """Return a new 24 hex character identifier (timestamp, random, counter).

    Same layout as a BSON ObjectId so ids sort roughly by creation time.
    """
    global _counter
    _counter = (_counter + 1) % 0xFFFFFF
    return (
        int(time.time()).to_bytes(4, 'big').hex()
        + os.urandom(5).hex()
        + _counter.to_bytes(3, 'big').hex()
    )


def input_to_dict(obj: Any) -> Any:
    """Convert a Strawberry input instance (or nested list/dict) to plain Python dicts/lists.

    ``UNSET`` (omitted) fields are dropped; explicit ``None`` is kept. Enum members are
    coerced to their stored value.
    """
    if obj is None or obj is UNSET:
        return None
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [input_to_dict(x) for x in obj]
    if isinstance(obj, dict):
        return {k: input_to_dict(v) for k, v in obj.items() if v is not UNSET}
    if is_dataclass(obj):
        out: Dict[str, Any] = {}
        for f in dc_fields(obj):
            v = getattr(obj, f.name, UNSET)
            if v is UNSET:
                continue
            out[f.name] = input_to_dict(v)
        return out
    return obj


def normalize_id(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return a copy of ``doc`` whose identifier lives under ``id`` as a string."""
    if doc is None:
        return None
    out = dict(doc)
    if '_id' in out:
        raw = out.pop('_id')
        out.setdefault('id', raw)
    if out.get('id') is not None:
        out['id'] = str(out['id'])
    return out
