from pydantic import BaseModel, Field
from typing import Literal

from graphweave.rag.models import KgRagConfig


class GraphConfig(BaseModel):
    path: str = "graphweave.json"


class SearchConfig(BaseModel):
    timeout: float | None = Field(default=10.0, gt=0)
    passages_path: str | None = None


class ValidationConfig(BaseModel):
    schema_path: str | None = None
    check_connectivity: bool = False


class GraphweaveConfig(BaseModel):
    graph: GraphConfig = Field(default_factory=GraphConfig)
    rag: KgRagConfig = Field(default_factory=KgRagConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    capability: str | None = None
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"

    def effective_rag(self) -> KgRagConfig:
        """RAG config with the search timeout filled in from ``search.timeout``."""
        if self.rag.search_timeout is not None:
            return self.rag
        return self.rag.model_copy(update={"search_timeout": self.search.timeout})
