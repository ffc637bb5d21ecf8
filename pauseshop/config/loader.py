"""Configuration loading helpers for PauseShop."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import GlobalConfig, ServerEnvironment, default_providers

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "settings.yaml"
HOME_ENV_VAR = "PAUSESHOP_HOME"
SERVER_ENV_VAR = "PAUSESHOP_SERVER_ENV"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def merge_provider_defaults(payload: dict) -> dict:
    """Layer each `providers.<name>` mapping over the built-in provider settings.

    A file may override a single field of a known provider; providers the file
    does not mention keep their defaults. Unknown providers must be complete.
    """

    overrides = payload.get("providers")
    if overrides is None:
        return payload
    if not isinstance(overrides, dict):
        raise ValueError("`providers` must be a mapping of provider name to settings")
    providers = {name: config.model_dump(mode="json") for name, config in default_providers().items()}
    for name, override in overrides.items():
        base = providers.get(name)
        if base is not None and isinstance(override, dict):
            providers[name] = _deep_merge(base, override)
        else:
            providers[name] = override
    return {**payload, "providers": providers}


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV_VAR)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    # ------------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if path.exists():
            payload = merge_provider_defaults(_read_file(path))
            global_cfg = GlobalConfig.model_validate(payload)
        else:
            global_cfg = GlobalConfig()
        global_cfg = self._apply_environment(global_cfg)
        self._global_cache = global_cfg
        return global_cfg

    def save_global_config(self, config: GlobalConfig) -> Path:
        path = self.locator.global_config_path()
        payload = config.model_dump(mode="json")
        _write_file(path, payload)
        self._global_cache = config
        return path

    def reload(self) -> GlobalConfig:
        self._global_cache = None
        return self.load_global_config()

    # ------------------------------------------------------------------
    @staticmethod
    def _apply_environment(config: GlobalConfig) -> GlobalConfig:
        override = os.environ.get(SERVER_ENV_VAR)
        if not override:
            return config
        environment = ServerEnvironment(override.strip().lower())
        backend = config.backend.model_copy(update={"environment": environment})
        return config.model_copy(update={"backend": backend})


__all__ = [
    "CONFIG_EXTENSIONS",
    "ConfigLocator",
    "ConfigRepository",
    "HOME_ENV_VAR",
    "SERVER_ENV_VAR",
    "merge_provider_defaults",
]
