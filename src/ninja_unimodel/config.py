"""Model options read from .ninjastack/unimodel.json."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

from ninja_unimodel.aggregate.spec import NormalizerConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(".ninjastack") / "unimodel.json"


class ModelOptions(BaseModel):
    """Options for a single model/collection."""

    aggregate: NormalizerConfig = Field(
        default_factory=NormalizerConfig, description="Options passed to the aggregate normalizer."
    )
    max_query_limit: int = Field(default=1000, ge=1, description="Upper bound applied to find() limits.")
    allow_full_replace: bool = Field(
        default=False,
        description="Treat operator-free update expressions as full replacements instead of implicit $set.",
    )

    model_config = {"extra": "forbid"}


class UnimodelConfig:
    """Per-model options keyed by model name.

    Models without an entry get default :class:`ModelOptions`.
    """

    def __init__(self, models: dict[str, ModelOptions] | None = None) -> None:
        self._models: dict[str, ModelOptions] = models or {}

    @classmethod
    def from_file(cls, path: str | Path = DEFAULT_CONFIG_PATH) -> UnimodelConfig:
        """Load model options from a JSON file. A missing file yields an empty config."""
        filepath = Path(path)
        if not filepath.exists():
            logger.debug("No unimodel config at %s; using defaults", filepath)
            return cls(models={})
        raw = json.loads(filepath.read_text(encoding="utf-8"))
        models = {name: ModelOptions.model_validate(cfg) for name, cfg in raw.items()}
        return cls(models=models)

    def options_for(self, name: str) -> ModelOptions:
        return self._models.get(name) or ModelOptions()

    @property
    def model_names(self) -> list[str]:
        return list(self._models)
