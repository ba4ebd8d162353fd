"""Capability plugin loading."""

from graphweave.plugins.loader import CapabilityLoader, CapabilityNotFoundError

__all__ = ["CapabilityLoader", "CapabilityNotFoundError"]
