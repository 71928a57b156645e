"""Configuration constants and re-exports for tasksift."""

from tasksift.config.loader import load_config


# --- Initialize Configuration ---
_CONFIG = load_config()

# --- Expose Constants ---

# General
_gen = _CONFIG["general"]
LOG_LEVEL = _gen.get("log_level", "INFO")
LOG_FILE = _gen.get("log_file", "~/.config/tasksift/logs/tasksift.log")
DEFAULT_MODEL = _gen.get("default_model", "default")

# Models
MODELS = _CONFIG["models"]

# Prompts
_prompts = _CONFIG["prompts"]
QUERY_PARSER_PROMPT = _prompts.get("query_parser", "")


def get_config() -> dict:
    """Return the merged raw configuration dictionary.

    The search, scoring and glossary sections become a ``SearchSettings``
    value through ``tasksift.search.settings.build_search_settings``.
    """
    return _CONFIG


__all__ = [
    "DEFAULT_MODEL",
    "LOG_FILE",
    "LOG_LEVEL",
    "MODELS",
    "QUERY_PARSER_PROMPT",
    "get_config",
    "load_config",
]
