"""Domain capability discovery and loading via entry points or import paths."""

from __future__ import annotations

import importlib
import importlib.metadata
import inspect
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from graphweave.config.models import GraphweaveConfig


class CapabilityNotFoundError(Exception):
    """Raised when a requested capability cannot be found."""

    def __init__(self, name: str, reason: str | None = None):
        self.name = name
        self.reason = reason
        msg = f"No capability found with name '{name}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class CapabilityLoader:
    """Resolves a domain capability by entry point name or ``module:attr`` path.

    Classes are instantiated with no arguments; any other object is returned
    as-is. Capabilities are optional, so no name means no capability.
    """

    GROUP = "graphweave.capabilities"

    def __init__(self, config: GraphweaveConfig | None = None):
        self._config = config

    def discover(self) -> list[str]:
        """Names of capabilities registered under the entry point group."""
        eps = importlib.metadata.entry_points(group=self.GROUP)
        return [ep.name for ep in eps]

    def _resolve_name(self, name: str | None) -> str | None:
        """Resolve capability name: explicit arg > config > None."""
        if name is not None:
            return name
        if self._config is None:
            return None
        return self._config.capability

    def _load_from_entry_point(self, name: str) -> object | None:
        eps = importlib.metadata.entry_points(group=self.GROUP)
        for ep in eps:
            if ep.name == name:
                return ep.load()
        return None

    def _load_from_path(self, path: str) -> object:
        module_path, _, attr = path.partition(":")
        if not module_path or not attr:
            raise CapabilityNotFoundError(path, "expected 'module:attr'")
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            raise CapabilityNotFoundError(path, str(e)) from e
        target: object = module
        for part in attr.split("."):
            try:
                target = getattr(target, part)
            except AttributeError as e:
                raise CapabilityNotFoundError(path, str(e)) from e
        return target

    def load(self, name: str | None = None) -> object | None:
        """Load and instantiate a capability; None when nothing is configured."""
        resolved = self._resolve_name(name)
        if resolved is None:
            return None

        if ":" in resolved:
            obj = self._load_from_path(resolved)
        else:
            obj = self._load_from_entry_point(resolved)
            if obj is None:
                # Name was explicit but not found -- don't fallback silently
                raise CapabilityNotFoundError(resolved)

        return obj() if inspect.isclass(obj) else obj
