from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from uicat.paths import config_root, default_db_path, default_pid_path


@dataclass(slots=True)
class EmbedConfig:
    model: str = "hashed-bow"
    dim: int = 256
    min_similarity: float = 0.0


@dataclass(slots=True)
class SearchConfig:
    rrf_k: int = 20
    w_lexical: float = 1.2
    w_semantic: float = 1.0
    lexical_pool_limit: int = 15
    semantic_pool_limit: int = 15
    default_limit: int = 5
    timeout_s: float | None = None
    # Filter defaults for the search command; flags given on the command line win.
    framework: str | None = None
    styling: str | None = None
    motion: list[str] = field(default_factory=list)
    primitive_library: list[str] = field(default_factory=list)


@dataclass(slots=True)
class UIConfig:
    show_tips: bool = True


@dataclass(slots=True)
class AppConfig:
    db_path: Path = field(default_factory=default_db_path)
    pid_path: Path = field(default_factory=default_pid_path)
    embed: EmbedConfig = field(default_factory=EmbedConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    ui: UIConfig = field(default_factory=UIConfig)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def _to_config(data: dict[str, Any]) -> AppConfig:
    embed = EmbedConfig(**data.get("embed", {}))
    search = SearchConfig(**data.get("search", {}))
    ui = UIConfig(**data.get("ui", {}))
    return AppConfig(
        db_path=Path(data.get("db_path", str(default_db_path()))).expanduser(),
        pid_path=Path(data.get("pid_path", str(default_pid_path()))).expanduser(),
        embed=embed,
        search=search,
        ui=ui,
    )


def default_config_path() -> Path:
    return config_root() / "config.yaml"


def load_config(config_path: Path | None = None, overrides: dict[str, Any] | None = None) -> AppConfig:
    path = config_path or default_config_path()
    base: dict[str, Any] = {}
    if path.exists():
        loaded = yaml.safe_load(path.read_text())
        if isinstance(loaded, dict):
            base = loaded
    if overrides:
        base = _merge(base, overrides)
    cfg = _to_config(base)
    cfg.db_path.parent.mkdir(parents=True, exist_ok=True)
    cfg.pid_path.parent.mkdir(parents=True, exist_ok=True)
    return cfg


def write_default_config(path: Path | None = None) -> Path:
    target = path or default_config_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    if target.exists():
        return target
    defaults = AppConfig()
    target.write_text(
        yaml.safe_dump(
            {
                "db_path": str(defaults.db_path),
                "pid_path": str(defaults.pid_path),
                "embed": asdict(defaults.embed),
                "search": asdict(defaults.search),
                "ui": asdict(defaults.ui),
            },
            sort_keys=False,
        )
    )
    return target
