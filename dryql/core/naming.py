"""Naming helpers used to derive generated type and operation names.

All names are computed once while the operation table is assembled; nothing
here runs at dispatch time.
"""
from __future__ import annotations

import re

__all__ = [
    'from_camel',
    'to_camel',
    'to_pascal',
    'plural',
    'singular',
    'OperationNames',
    'EmbeddedOperationNames',
]

_camel_to_snake_pattern = re.compile(r'(?<!^)(?=[A-Z])')
_VOWEL_Y = ('ay', 'ey', 'iy', 'oy', 'uy')
_SIBILANT_ENDINGS = ('s', 'x', 'z', 'ch', 'sh')
# words ending in f/fe that keep the plain -s
_F_EXCEPTIONS = ('roof', 'chief', 'belief', 'proof', 'chef', 'safe', 'cafe', 'ff', 'ffe')


def from_camel(name: str) -> str:
    """Convert lower/upper camelCase to snake_case."""
    if not name:
        return name
    return _camel_to_snake_pattern.sub('_', str(name)).lower()


def to_camel(name: str) -> str:
    """Convert snake_case or PascalCase to lowerCamelCase."""
    if not name:
        return name
    parts = [p for p in str(name).split('_') if p]
    if not parts:
        return name
    head = parts[0][0].lower() + parts[0][1:]
    return head + ''.join(p[0].upper() + p[1:] for p in parts[1:])


def to_pascal(name: str) -> str:
    camel = to_camel(name)
    if not camel:
        return camel
    return camel[0].upper() + camel[1:]


def plural(name: str) -> str:
    """English-ish pluralization good enough for model names (Tag -> Tags, Shelf -> Shelves)."""
    if not name:
        return name
    lower = name.lower()
    if not lower.endswith(_F_EXCEPTIONS):
        if lower.endswith('fe'):
            return name[:-2] + 'ves'
        if lower.endswith('f'):
            return name[:-1] + 'ves'
    if lower.endswith('y') and lower[-2:] not in _VOWEL_Y:
        return name[:-1] + 'ies'
    if lower.endswith(_SIBILANT_ENDINGS):
        return name + 'es'
    return name + 's'


def singular(name: str) -> str:
    """Inverse of :func:`plural` for the common cases (books -> book, categories -> category)."""
    if not name:
        return name
    lower = name.lower()
    if lower.endswith('ies') and len(name) > 3:
        return name[:-3] + 'y'
    if lower.endswith(('knives', 'wives')):
        return name[:-3] + 'fe'
    if lower.endswith('lves') and not lower.endswith(('valves', 'solves', 'volves')):
        # shelves -> shelf, halves -> half
        return name[:-3] + 'f'
    if lower.endswith('ses') or lower.endswith('xes') or lower.endswith('zes') \
            or lower.endswith('ches') or lower.endswith('shes'):
        return name[:-2]
    if lower.endswith('s') and not lower.endswith('ss'):
        return name[:-1]
    return name


class OperationNames:
    """Operation names generated for a top-level model."""

    def __init__(self, model_name: str):
        pascal = to_pascal(model_name)
        plural_pascal = plural(pascal)
        self.create = f"create{pascal}"
        self.update = f"update{pascal}"
        self.remove = f"remove{pascal}"
        self.find_one = model_name.lower()
        self.find_all = f"all{plural_pascal}"
        self.paginate = f"paginate{plural_pascal}"


class EmbeddedOperationNames:
    """Operation names generated for an embedded array field of a parent model."""

    def __init__(self, parent_name: str, field_name: str):
        parent_pascal = to_pascal(parent_name)
        parent_camel = to_camel(parent_name)
        field_pascal = to_pascal(field_name)
        field_singular = to_pascal(singular(field_name))
        self.parent_id_arg = f"{parent_camel}Id"
        self.create = f"create{parent_pascal}{field_singular}"
        self.update = f"update{parent_pascal}{field_pascal}"
        self.update_one = f"update{parent_pascal}{field_singular}"
        self.remove = f"remove{parent_pascal}{field_pascal}"
        self.get_one = f"{parent_camel}{field_singular}"
        self.get_all = f"{parent_camel}{field_pascal}"
