from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml


ENV_FILE = "WORKGRAPH_FILE"
ENV_HOME = "WORKGRAPH_HOME"
DEFAULT_HOME = Path("~/.workgraph")
GRAPH_FILENAME = "graph.yaml"
CONFIG_FILENAME = "config.yaml"
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class WorkgraphConfig:
    home: Path
    graph_file: Path
    log_level: str = "WARNING"


def home_dir() -> Path:
    raw = os.getenv(ENV_HOME)
    return Path(raw).expanduser() if raw else DEFAULT_HOME.expanduser()


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load optional settings from a YAML file.

    Format:
      graph_file: path/to/graph.yaml   # relative paths resolve against the file's directory
      log_level: INFO
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read {p}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {p}: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must be a mapping")

    out: dict[str, Any] = {}
    unknown = set(raw) - {"graph_file", "log_level"}
    if unknown:
        raise ConfigError(f"unknown config keys: {sorted(unknown)}")

    graph_file = raw.get("graph_file")
    if graph_file is not None:
        if not isinstance(graph_file, str) or not graph_file.strip():
            raise ConfigError("graph_file must be a non-empty string")
        gp = Path(graph_file.strip()).expanduser()
        out["graph_file"] = gp if gp.is_absolute() else p.parent / gp

    log_level = raw.get("log_level")
    if log_level is not None:
        if not isinstance(log_level, str) or log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {sorted(LOG_LEVELS)}")
        out["log_level"] = log_level.upper()
    return out


def resolve_config(graph_file: Optional[str] = None) -> WorkgraphConfig:
    """Resolve settings. Precedence: explicit path, WORKGRAPH_FILE, config.yaml, home default."""
    home = home_dir()
    settings: dict[str, Any] = {}
    config_path = home / CONFIG_FILENAME
    if config_path.exists():
        settings = load_config_file(config_path)

    if graph_file:
        path = Path(graph_file).expanduser()
    elif os.getenv(ENV_FILE):
        path = Path(os.environ[ENV_FILE]).expanduser()
    elif "graph_file" in settings:
        path = settings["graph_file"]
    else:
        path = home / GRAPH_FILENAME

    return WorkgraphConfig(
        home=home,
        graph_file=path,
        log_level=settings.get("log_level", "WARNING"),
    )
