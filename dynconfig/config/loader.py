"""
Settings loader: YAML loading, env variable injection, DYNCONFIG_* overrides, Pydantic validation.

- Settings file from the path argument, DYNCONFIG_FILE env, or ./dynconfig.yaml.
- Environment variable injection: ${ENV_VAR} and $ENV_VAR replacement in YAML values.
- DYNCONFIG_* environment variables override values from the file.
"""

import os
import re
from pathlib import Path
from typing import Any, Iterable

import structlog
import yaml

from dynconfig.config.schemas import HandlerFactory, InitParams

logger = structlog.get_logger(__name__)

DEFAULT_SETTINGS_FILE = "dynconfig.yaml"

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")

# DYNCONFIG_* env var -> InitParams field
ENV_OVERRIDES = {
    "DYNCONFIG_INCLUDE_ENV": "include_sys_env_props",
    "DYNCONFIG_CUSTOM_EXECUTOR": "use_custom_executor",
    "DYNCONFIG_DAEMON": "run_as_daemon",
    "DYNCONFIG_STRATEGY": "strategy",
    "DYNCONFIG_FREQUENCY": "frequency",
    "DYNCONFIG_SOURCES": "sources",
}


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings; recurse into dict/list."""
    if isinstance(value, str):
        def repl(m: re.Match[str]) -> str:
            name = m.group(1) or m.group(2) or ""
            return os.environ.get(name, m.group(0))
        return _ENV_PATTERN.sub(repl, value)
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file and return dict with env substitution."""
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: settings root must be a mapping, got {type(data).__name__}")
    return _substitute_env(data)


def settings_path(path: str | Path | None = None) -> Path:
    """Settings file path: explicit argument, DYNCONFIG_FILE env, or dynconfig.yaml in cwd."""
    if path is not None:
        return Path(path).expanduser()
    return Path(os.environ.get("DYNCONFIG_FILE", DEFAULT_SETTINGS_FILE)).expanduser()


def _env_overrides() -> dict[str, Any]:
    out: dict[str, Any] = {}
    for env_name, field in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None or not raw.strip():
            continue
        if field == "sources":
            out[field] = [p for p in raw.split(os.pathsep) if p.strip()]
        else:
            out[field] = raw.strip()
    return out


def load_init_params(
    path: str | Path | None = None,
    handlers: Iterable[HandlerFactory] = (),
) -> InitParams:
    """
    Load and validate initialization parameters from a settings file and the environment.

    A missing settings file is not an error: defaults (plus env overrides) apply.

    Args:
        path: Settings file (default from DYNCONFIG_FILE or ./dynconfig.yaml).
        handlers: Change handler factories to register; handlers cannot come from YAML.

    Returns:
        Validated InitParams.

    Raises:
        ValidationError: If a setting has an invalid value or an unknown key.
    """
    p = settings_path(path)
    data = _load_yaml(p)
    overrides = _env_overrides()
    if overrides:
        logger.debug("settings_env_overrides", fields=sorted(overrides))
    data.update(overrides)
    data["handlers"] = tuple(handlers)
    params = InitParams.model_validate(data)
    logger.debug("settings_loaded", path=str(p), exists=p.exists(), sources=list(params.sources))
    return params
