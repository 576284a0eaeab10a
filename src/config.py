"""Runtime configuration for update runs.

Precedence, highest first:
1) ``RELOCK_*`` environment variables
2) Explicit config path, or the first default file found (YAML or JSON)
3) Built-in defaults from ``Constants``
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from constants import Constants
from update.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateConfig:
    """Tunables that change how an update behaves.

    Attributes:
        frozen: Refuse to change the lock at all.
        update_requires_all_flag: An update with no selector must say ``--all``.
        only_update_to_newer_versions: Free packages never go below their lock.
        unlock_source_unlocks_spec: A source update also frees the package
            named like the source.
        host_tool_version: Version checked for self-dependencies.
        max_steps: Resolver search budget.
        log_level: Level passed to ``configure_logging``.
    """
    frozen: bool = False
    update_requires_all_flag: bool = False
    only_update_to_newer_versions: bool = False
    unlock_source_unlocks_spec: bool = False
    host_tool_version: str = Constants.HOST_TOOL_VERSION
    max_steps: int = Constants.RESOLVER_MAX_STEPS
    log_level: str = "INFO"


def default_config_paths() -> List[Path]:
    """Locations searched when no explicit path is given."""
    paths = [Path.cwd() / name for name in Constants.CONFIG_FILE_NAMES]
    xdg = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    paths.extend(Path(xdg) / "relock" / name for name in Constants.CONFIG_FILE_NAMES)
    return paths


def _read_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.suffix.lower() == ".json":
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not read config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping.")
    section = data.get(Constants.CONFIG_SECTION, {})
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"`{Constants.CONFIG_SECTION}` in {path} must be a mapping.")
    return section


def _coerce(name: str, raw: Any, default: Any) -> Any:
    """Convert ``raw`` to the type of ``default``."""
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off", ""):
            return False
        raise ConfigurationError(f"Invalid boolean for {name}: {raw!r}")
    if isinstance(default, int):
        try:
            value = int(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid integer for {name}: {raw!r}") from exc
        if value <= 0:
            raise ConfigurationError(f"{name} must be positive, got {value}")
        return value
    return str(raw)


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> UpdateConfig:
    """Load configuration from file and environment.

    Args:
        path: Explicit config file. Missing explicit files are an error.
        env: Environment mapping; defaults to ``os.environ``.

    Returns:
        UpdateConfig

    Raises:
        ConfigurationError: Unreadable file, unknown keys or bad values.
    """
    env = os.environ if env is None else env
    values: Dict[str, Any] = {}

    if path:
        explicit = Path(path)
        if not explicit.is_file():
            raise ConfigurationError(f"Config file not found: {path}")
        values.update(_read_file(explicit))
    else:
        for candidate in default_config_paths():
            if candidate.is_file():
                logger.debug("Loading config from %s", candidate)
                values.update(_read_file(candidate))
                break

    known = {f.name: f.default for f in fields(UpdateConfig)}
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ConfigurationError(f"Unknown config keys: {', '.join(unknown)}")

    for name in known:
        env_value = env.get(Constants.CONFIG_ENV_PREFIX + name.upper())
        if env_value is not None:
            values[name] = env_value

    coerced = {name: _coerce(name, raw, known[name]) for name, raw in values.items()}
    return UpdateConfig(**coerced)
