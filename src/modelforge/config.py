import os
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modelforge.models import Role


class Target(StrEnum):
    DISPATCHER = "dispatcher"
    SCHEMA = "schema"
    CLIENT_CODECS = "client-codecs"
    STORAGE = "storage"
    INFRASTRUCTURE = "infrastructure"


DEFAULT_ROLE_KEYWORDS: tuple[tuple[str, Role], ...] = (
    ("api", Role.API_CONTRACT),
    ("db", Role.ENTITY),
    ("storage", Role.CLIENT_STATE),
    ("events", Role.PUSH_EVENT),
    ("sse", Role.PUSH_EVENT),
    ("kv", Role.CACHE_RECORD),
    ("cache", Role.CACHE_RECORD),
)


class CompilerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    models_dir: Path | None = None
    output_dir: Path = Path("generated")
    targets: frozenset[Target] = frozenset(Target)
    max_workers: int | None = Field(default=None, ge=1)

    source_suffix: str = ".rs"
    module_index_filename: str = "mod.rs"
    role_keywords: tuple[tuple[str, Role], ...] = DEFAULT_ROLE_KEYWORDS

    backend_module: str = "Api.Backend"
    client_module: str = "Api.Schema"

    api_title: str = "modelforge API"
    api_version: str = "0.1.0"
    api_prefix: str = "/"

    events_table: str = "forge_events"

    @field_validator("api_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = "/" + value.strip("/")
        return value if value == "/" else value + "/"

    @classmethod
    def from_env(cls, **overrides: object) -> "CompilerConfig":
        """Build a config from ``MODELFORGE_*`` environment variables.

        Explicit keyword overrides win over the environment; ``None`` overrides are ignored.
        """
        values: dict[str, object] = {}
        if models_dir := os.getenv("MODELFORGE_MODELS_DIR"):
            values["models_dir"] = models_dir
        if output_dir := os.getenv("MODELFORGE_OUTPUT_DIR"):
            values["output_dir"] = output_dir
        if targets := os.getenv("MODELFORGE_TARGETS"):
            values["targets"] = [t.strip() for t in targets.split(",") if t.strip()]
        if max_workers := os.getenv("MODELFORGE_MAX_WORKERS"):
            values["max_workers"] = max_workers
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(values)
