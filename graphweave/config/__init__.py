from .loader import expand_env, load_config, read_yaml_file
from .models import (
    GraphConfig,
    GraphweaveConfig,
    SearchConfig,
    ValidationConfig,
)

__all__ = [
    "GraphConfig",
    "GraphweaveConfig",
    "SearchConfig",
    "ValidationConfig",
    "expand_env",
    "load_config",
    "read_yaml_file",
]
