"""Exception types shared across the graph engine."""

from __future__ import annotations


class GraphError(Exception):
    """Base class for identity and shape failures raised by the store."""


class NotFoundError(GraphError, KeyError):
    """An operation referenced a node or edge id that is not in the store."""

    def __init__(self, kind: str, item_id: str) -> None:
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind} not found: {item_id!r}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class DuplicateIdError(GraphError):
    """A create call or snapshot load reused an id that already exists."""

    def __init__(self, kind: str, item_id: str) -> None:
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"duplicate {kind} id: {item_id!r}")


class InvalidPropertyError(GraphError):
    """A property value falls outside the supported scalar/list/map types."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"invalid property at {path}: {reason}")
