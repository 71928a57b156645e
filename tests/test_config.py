from pathlib import Path

import pytest

from tasksift.config import DEFAULT_MODEL, MODELS, QUERY_PARSER_PROMPT
from tasksift.config.loader import (
    CONFIG_DIR_ENV,
    CONFIG_FILES,
    _get_config_dir,
    load_bundled_config,
    load_config,
)


def test_models_config():
    assert isinstance(MODELS, dict)
    assert DEFAULT_MODEL in MODELS
    for alias, config in MODELS.items():
        assert "id" in config
        assert config["alias"] == alias


def test_query_parser_prompt_has_placeholders():
    assert isinstance(QUERY_PARSER_PROMPT, str)
    for placeholder in ("{TODAY}", "{LANGUAGES}", "{STATUS_CATEGORIES}", "{MAX_EXPANSIONS}"):
        assert placeholder in QUERY_PARSER_PROMPT


def test_config_dir_honours_environment_override(monkeypatch, tmp_path):
    monkeypatch.setenv(CONFIG_DIR_ENV, str(tmp_path / "custom"))
    assert _get_config_dir() == tmp_path / "custom"


def test_config_dir_defaults_to_home(monkeypatch, tmp_path):
    monkeypatch.delenv(CONFIG_DIR_ENV, raising=False)
    assert _get_config_dir() == Path.home() / ".config" / "tasksift"


def test_bundled_config_hydrates_model_endpoints():
    config = load_bundled_config()
    default = config["models"]["default"]
    assert default["base_url"] == config["api"]["openai"]["url"]
    assert default["api_key_env"] == "OPENAI_API_KEY"
    assert "api_key_env" not in config["models"]["local"]
    assert config["scoring"]["relevance"] == 20.0
    assert config["glossary"]["status"]["open"]["order"] == 1


def test_load_config_copies_defaults_to_user_directory(capsys):
    config = load_config()
    config_dir = _get_config_dir()
    for filename in CONFIG_FILES:
        assert (config_dir / filename).exists()
    assert config["search"]["max_direct_results"] == 30
    assert "Created default configuration" in capsys.readouterr().err


def test_user_override_is_deep_merged():
    config_dir = _get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "scoring.toml").write_text(
        "[scoring]\nrelevance = 5.0\n\n[scoring.due_date_scores]\noverdue = 2.0\n",
        encoding="utf-8",
    )

    config = load_config()

    assert config["scoring"]["relevance"] == 5.0
    assert config["scoring"]["due_date"] == 4.0
    assert config["scoring"]["due_date_scores"]["overdue"] == 2.0
    assert config["scoring"]["due_date_scores"]["later"] == 0.2


def test_invalid_user_toml_exits(capsys):
    config_dir = _get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "search.toml").write_text("[search\nbroken", encoding="utf-8")

    with pytest.raises(SystemExit) as exc_info:
        load_config()

    assert exc_info.value.code == 1
    assert "Invalid configuration file" in capsys.readouterr().err
