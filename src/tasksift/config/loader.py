"""Configuration loading and hydration logic."""

import os
import shutil
import sys
import tomllib
from importlib import resources
from pathlib import Path
from typing import Any, Dict

CONFIG_DIR_ENV = "TASKSIFT_CONFIG_DIR"
BUNDLED_PACKAGE = "tasksift.data.config"

CONFIG_FILES = [
    "general.toml",
    "api.toml",
    "models.toml",
    "prompts.toml",
    "search.toml",
    "scoring.toml",
    "glossary.toml",
]
CONFIG_SECTIONS = ("general", "api", "models", "prompts", "search", "scoring", "glossary")

# Keys a model inherits from its [api.<name>] section, as (api key, model key).
INHERITED_API_KEYS = (
    ("url", "base_url"),
    ("api_key", "api_key"),
    ("api_key_env", "api_key_env"),
)


def _get_config_dir() -> Path:
    """Return the configuration directory path."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "tasksift"


def _merge(base: Dict[str, Any], update: Dict[str, Any]) -> None:
    for key, value in update.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            _merge(base[key], value)
        else:
            base[key] = value


def _hydrate_models(config: Dict[str, Any]) -> Dict[str, Any]:
    """Fill each model's endpoint details from the ``[api.*]`` entry it names."""
    api_defs = config.get("api", {})
    for alias, model in config.get("models", {}).items():
        model["alias"] = alias
        endpoint = api_defs.get(model.get("api"), {})
        for source_key, target_key in INHERITED_API_KEYS:
            if source_key in endpoint:
                model.setdefault(target_key, endpoint[source_key])
    return config


def _bundled(filename: str):
    return resources.files(BUNDLED_PACKAGE).joinpath(filename)


def _seed_user_file(filename: str, config_dir: Path) -> None:
    """Copy a bundled default into the user directory if it is not there yet."""
    target = config_dir / filename
    if target.exists():
        return
    try:
        with resources.as_file(_bundled(filename)) as source_path:
            shutil.copy(source_path, target)
    except OSError as e:
        print(f"Warning: Failed to create default config {filename}: {e}", file=sys.stderr)
        return
    print(f"Created default configuration {filename} at {target}", file=sys.stderr)


def _read_bundled() -> Dict[str, Any]:
    config: Dict[str, Any] = {section: {} for section in CONFIG_SECTIONS}
    for filename in CONFIG_FILES:
        with _bundled(filename).open("rb") as f:
            _merge(config, tomllib.load(f))
    return config


def load_bundled_config() -> Dict[str, Any]:
    """Load only the defaults shipped inside the package."""
    return _hydrate_models(_read_bundled())


def _apply_user_file(config: Dict[str, Any], path: Path) -> None:
    try:
        with open(path, "rb") as f:
            _merge(config, tomllib.load(f))
    except tomllib.TOMLDecodeError as e:
        print(f"Error: Invalid configuration file at {path}", file=sys.stderr)
        print(f"Details: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Warning: Failed to load config from {path}: {e}", file=sys.stderr)


def load_config() -> Dict[str, Any]:
    """Bundled defaults overlaid with the user's copies, seeded on first run."""
    config_dir = _get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    config = _read_bundled()
    for filename in CONFIG_FILES:
        _seed_user_file(filename, config_dir)
    for filename in CONFIG_FILES:
        path = config_dir / filename
        if path.exists():
            _apply_user_file(config, path)
    return _hydrate_models(config)
