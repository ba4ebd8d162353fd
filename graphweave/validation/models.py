"""Structure schema and validation result models."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from graphweave.config.loader import read_yaml_file


class EdgeLabelConstraint(BaseModel):
    """An edge label may only connect a ``from_label`` node to a ``to_label`` node."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    label: str
    from_label: str
    to_label: str


class StructureSchema(BaseModel):
    """Allow-lists and constraints checked by :func:`validate_structure`.

    ``None`` means "not checked"; an empty allow-list rejects every label.
    Edge labels that appear in no constraint are unconstrained.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    allowed_node_labels: list[str] | None = None
    allowed_edge_labels: list[str] | None = None
    edge_label_constraints: list[EdgeLabelConstraint] = Field(default_factory=list)
    required_props: dict[str, list[str]] = Field(default_factory=dict)

    @classmethod
    def load(cls, path: str | Path) -> StructureSchema:
        """Read a schema from a YAML or JSON file (camelCase keys)."""
        path = Path(path)
        raw = read_yaml_file(path)
        try:
            return cls.model_validate(raw or {})
        except ValidationError as e:
            raise ValueError(f"Invalid schema in {path}: {e}") from e

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ValidationResult(BaseModel):
    """Outcome of a structural validation pass.

    Issues make the graph invalid; warnings (e.g. disconnected components)
    never do.
    """

    ok: bool = True
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
