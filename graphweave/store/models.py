"""Node and edge models plus the property-value checks applied at every write."""

from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from graphweave.errors import InvalidPropertyError

# Nesting limit for list/map property values
MAX_PROP_DEPTH = 32

Direction = Literal["in", "out", "both"]

_SCALARS = (str, int, float, bool)


def check_prop_value(value: Any, path: str = "props", depth: int = 0) -> None:
    """Raise InvalidPropertyError unless *value* is a scalar, list or str-keyed map.

    Scalars are ``None``, ``bool``, ``int``, finite ``float`` and ``str``.
    Containers may nest up to ``MAX_PROP_DEPTH`` levels.
    """
    if depth > MAX_PROP_DEPTH:
        raise InvalidPropertyError(path, f"nested deeper than {MAX_PROP_DEPTH} levels")
    if value is None:
        return
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidPropertyError(path, f"non-finite float {value!r}")
    if isinstance(value, _SCALARS):
        return
    if isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            check_prop_value(item, f"{path}[{i}]", depth + 1)
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise InvalidPropertyError(path, f"map key {key!r} is not a string")
            check_prop_value(item, f"{path}.{key}", depth + 1)
        return
    raise InvalidPropertyError(path, f"unsupported type {type(value).__name__}")


def check_props(props: dict[str, Any]) -> dict[str, Any]:
    """Validate a whole property map and return it with tuples normalised to lists."""
    check_prop_value(props)
    return _normalise(props)


def _normalise(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_normalise(v) for v in value]
    if isinstance(value, dict):
        return {k: _normalise(v) for k, v in value.items()}
    return value


def props_equal(left: Any, right: Any) -> bool:
    """Deep equality that keeps bools and numbers apart (``True != 1``)."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(props_equal(left[k], right[k]) for k in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return False
        return all(props_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, (dict, list, tuple)) or isinstance(right, (dict, list, tuple)):
        return False
    return left == right


def props_match(props: dict[str, Any], wanted: dict[str, Any] | None) -> bool:
    """True when every key in *wanted* is present in *props* with an equal value."""
    if not wanted:
        return True
    for key, value in wanted.items():
        if key not in props or not props_equal(props[key], value):
            return False
    return True


class Node(BaseModel):
    """A labelled vertex with an open property map."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    props: dict[str, Any] = Field(default_factory=dict)

    @field_validator("props", mode="before")
    @classmethod
    def validate_props(cls, v: Any) -> dict[str, Any]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise InvalidPropertyError("props", f"expected a map, got {type(v).__name__}")
        return check_props(v)


class Edge(BaseModel):
    """A directed, labelled edge. ``source``/``target`` serialise as ``from``/``to``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    source: str = Field(alias="from", min_length=1)
    target: str = Field(alias="to", min_length=1)
    props: dict[str, Any] = Field(default_factory=dict)

    @field_validator("props", mode="before")
    @classmethod
    def validate_props(cls, v: Any) -> dict[str, Any]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise InvalidPropertyError("props", f"expected a map, got {type(v).__name__}")
        return check_props(v)

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id
