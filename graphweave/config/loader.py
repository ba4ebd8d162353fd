"""Config file discovery, YAML reading and ``${VAR}`` substitution."""

from __future__ import annotations

import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import GraphweaveConfig

PROJECT_CONFIG = Path("graphweave.yaml")

_ENV_REF = re.compile(r"\$\{(\w+)\}")


def read_yaml_file(path: str | Path) -> Any:
    """Parse a YAML (or JSON) file. Parser errors become ValueError naming the file."""
    path = Path(path)
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e


def config_candidates(cli_path: str | None = None) -> Iterator[Path]:
    """Explicit path first, then the project file, then the per-user file."""
    if cli_path:
        yield Path(cli_path)
    yield PROJECT_CONFIG
    yield Path.home() / ".graphweave" / "config.yaml"


def load_config(cli_path: str | None = None) -> GraphweaveConfig:
    """Load the first non-empty config file; defaults when none exists."""
    for path in config_candidates(cli_path):
        if not path.is_file():
            continue
        raw = read_yaml_file(path)
        if raw is None:
            continue
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid config in {path}: expected a mapping, got {type(raw).__name__}")
        try:
            return GraphweaveConfig.model_validate(expand_env(raw))
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e
    return GraphweaveConfig()


def expand_env(value: Any) -> Any:
    """Substitute ``${VAR}`` in every nested string; unset variables become empty."""
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


# Default YAML template for `graphweave config init`
DEFAULT_CONFIG_TEMPLATE = """\
# graphweave.yaml

# Graph snapshot file used by the CLI
graph:
  path: "graphweave.json"

# Context building
rag:
  expand_hops: 1
  # allowed_edge_labels: [RELATED_TO, PART_OF]
  max_kg_nodes: 60
  vector_k: 8
  route_by_metadata: false
  # search_timeout: 5.0        # overrides search.timeout

# Search backend
search:
  timeout: 10.0                # seconds before falling back to KG-only context
  # passages_path: "passages.jsonl"

# Structural validation
validation:
  # schema_path: "schema.yaml"
  check_connectivity: false

# Domain capability: entry point name or module:attr
# capability: "my_domain.capabilities:StoryCapability"

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
