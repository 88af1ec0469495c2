"""
resolve provides manifest variable interpolation and type normalization.
"""
from __future__ import annotations

import re
from collections.abc import Mapping


# Maps shorthand chunk type names to canonical config class names
TYPE_ALIASES: dict[str, str] = {
    "skip": "SkipChunk",
    "unused": "SkipChunk",
    "label": "ClassLabelChunk",
    "class_label": "ClassLabelChunk",
    "label_index": "ClassIndexChunk",
    "class_index": "ClassIndexChunk",
    "input": "InputChunk",
    "feature": "InputChunk",
    "red": "RedChunk",
    "green": "GreenChunk",
    "blue": "BlueChunk",
    "output": "OutputChunk",
    "output_label": "OutputLabelChunk",
    "repeat": "RepeatChunk",
    "set_dimension": "SetDimensionChunk",
}


def normalize_type_names(payload: object) -> object:
    """
    Recursively normalize shorthand type names to canonical class names.

    This allows manifests to use short names like 'input' or 'repeat'
    while internally converting them to the expected names like
    'InputChunk' or 'RepeatChunk'.
    """
    if isinstance(payload, Mapping):
        result: dict[str, object] = {}
        for k, v in payload.items():
            if k == "type" and isinstance(v, str):
                result[k] = TYPE_ALIASES.get(v.lower(), v)
            else:
                result[k] = normalize_type_names(v)
        return result
    if isinstance(payload, list):
        return [normalize_type_names(v) for v in payload]
    if isinstance(payload, tuple):
        return tuple(normalize_type_names(v) for v in payload)
    return payload


class Resolver:
    """
    Resolver expands ${var} references in manifest payloads.
    """
    def __init__(self, vars: Mapping[str, object]) -> None:
        self._vars: dict[str, object] = dict(vars)
        self._cache: dict[str, object] = {}
        self._resolving: set[str] = set()
        self._pattern = re.compile(r"\$\{([A-Za-z0-9_]+)\}")

    def resolve(self, value: object) -> object:
        """
        resolve applies variable interpolation to a payload node.
        """
        if isinstance(value, Mapping):
            return {k: self.resolve(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.resolve(v) for v in value]
        if isinstance(value, tuple):
            return tuple(self.resolve(v) for v in value)
        if isinstance(value, str):
            return self._resolve_str(value)
        return value

    def _resolve_str(self, value: str) -> object:
        # A string that is exactly one placeholder keeps the variable's type.
        matches = list(self._pattern.finditer(value))
        if not matches:
            return value
        if len(matches) == 1 and matches[0].span() == (0, len(value)):
            return self._resolve_var(matches[0].group(1))
        return self._pattern.sub(lambda m: str(self._resolve_var(m.group(1))), value)

    def _resolve_var(self, name: str) -> object:
        if name in self._cache:
            return self._cache[name]
        if name in self._resolving:
            raise ValueError(f"Cycle detected in manifest vars: {name}")
        if name not in self._vars:
            raise ValueError(f"Unknown manifest variable: {name}")

        self._resolving.add(name)
        resolved = self.resolve(self._vars[name])
        self._resolving.remove(name)
        self._cache[name] = resolved
        return resolved
