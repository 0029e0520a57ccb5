from copy import deepcopy
from typing import Any, Dict, Mapping, TypeVar

from pydantic import BaseModel

D = TypeVar("D", bound=BaseModel)


def deep_merge(target: Mapping[str, Any], source: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge `source` into a copy of `target`.

    - lists in `source` replace wholesale
    - mapping onto mapping merges recursively, `source` wins on leaves
    - any other value (or a type mismatch) replaces
    - keys absent from `source` are left as they are
    Neither input is modified and the result shares no containers with `source`.
    """
    result = dict(target)
    for key, value in source.items():
        current = result.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = deepcopy(value)
    return result


def merge(canonical: D, patch: Mapping[str, Any]) -> D:
    """Apply a validated patch to a document, returning a new document."""
    merged = deep_merge(canonical.model_dump(), patch)
    return type(canonical).model_validate(merged)
