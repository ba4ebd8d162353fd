"""Structural validation: label allow-lists, edge constraints, required props, dangling edges."""

from graphweave.validation.models import EdgeLabelConstraint, StructureSchema, ValidationResult
from graphweave.validation.validator import connected_components, validate_structure

__all__ = [
    "EdgeLabelConstraint",
    "StructureSchema",
    "ValidationResult",
    "connected_components",
    "validate_structure",
]
