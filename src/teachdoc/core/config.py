from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from teachdoc.core.types import DEFAULT_CREATOR

ENV_PREFIX = "TEACHDOC_"

DEFAULT_STORAGE_DIR = Path("storage") / "generated"
DEFAULT_DATABASE_PATH = Path("data") / "teachdoc.db"


@dataclass
class GeneratorConfig:
    storage_dir: Path = DEFAULT_STORAGE_DIR
    database_path: Path = DEFAULT_DATABASE_PATH
    template_path: Path | None = None
    template_id: str | None = None
    manifest_path: Path | None = None
    creator: str = DEFAULT_CREATOR
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        self.storage_dir = Path(self.storage_dir)
        self.database_path = Path(self.database_path)
        if self.template_path is not None:
            self.template_path = Path(self.template_path)
        if self.manifest_path is not None:
            self.manifest_path = Path(self.manifest_path)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        return {k: (str(v) if isinstance(v, Path) else v) for k, v in d.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeneratorConfig":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "GeneratorConfig":
        """Build a config from TEACHDOC_* variables, e.g. TEACHDOC_STORAGE_DIR."""
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for f in fields(cls):
            v = env.get(ENV_PREFIX + f.name.upper())
            if v:
                data[f.name] = v
        return cls.from_dict(data)

    def merged(self, **overrides: Any) -> "GeneratorConfig":
        d = asdict(self)
        d.update({k: v for k, v in overrides.items() if v is not None})
        return GeneratorConfig.from_dict(d)
