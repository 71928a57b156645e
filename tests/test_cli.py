import copy
import json
import tomllib
from unittest.mock import patch

import pytest

from tasksift.cli.main import main, parse_args
from tasksift.config.loader import _get_config_dir, load_bundled_config


@pytest.fixture(autouse=True)
def no_log_file():
    with patch("tasksift.cli.main.setup_logging") as mock_setup:
        yield mock_setup


def _conflicting_config():
    config = copy.deepcopy(load_bundled_config())
    config["glossary"]["status"]["in_progress"]["order"] = 1
    return config


def test_parse_args_query_defaults(tasks_file):
    args = parse_args(["query", "what", "is", "due", "--tasks", str(tasks_file)])
    assert args.command == "query"
    assert args.text == ["what", "is", "due"]
    assert args.model == "default"
    assert not args.no_ai
    assert args.limit is None


def test_parse_args_rejects_unknown_model(tasks_file):
    with pytest.raises(SystemExit):
        parse_args(["query", "x", "--tasks", str(tasks_file), "--model", "nope"])


def test_query_json_output(tasks_file, capsys):
    main(["query", "login", "--tasks", str(tasks_file), "--no-ai", "--json"])

    out = capsys.readouterr().out
    payload = json.loads(out[out.index("{"):])
    assert [item["task_id"] for item in payload["ranked"]] == ["c", "a"]
    assert payload["query"]["core_keywords"] == ["login"]
    assert payload["diagnostics"]["outcome"] == "succeeded-rules"
    assert payload["ranked"][1]["due_date"] == "2025-03-12"


def test_query_json_limit(tasks_file, capsys):
    main(["query", "login", "--tasks", str(tasks_file), "--no-ai", "--json", "--limit", "1"])
    out = capsys.readouterr().out
    payload = json.loads(out[out.index("{"):])
    assert len(payload["ranked"]) == 1
    assert payload["total_matches"] == 2


def test_query_table_output(tasks_file, capsys):
    main(["query", "login", "--tasks", str(tasks_file), "--no-ai"])
    out = capsys.readouterr().out
    assert "Outcome: succeeded-rules" in out
    assert "Keywords: login" in out


def test_missing_task_file_exits_with_error(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["query", "login", "--tasks", str(tmp_path / "missing.json"), "--no-ai"])
    assert exc_info.value.code == 1
    assert "Task file not found" in capsys.readouterr().out


def test_glossary_check_valid(capsys):
    main(["glossary", "check"])
    assert "Glossary sort positions are valid." in capsys.readouterr().out


def test_glossary_check_reports_conflicts(capsys):
    with patch("tasksift.config.get_config", return_value=_conflicting_config()):
        with pytest.raises(SystemExit) as exc_info:
            main(["glossary", "check"])
    assert exc_info.value.code == 1
    assert "tasksift glossary fix" in capsys.readouterr().out


def test_glossary_fix_writes_orders(capsys):
    with patch("tasksift.config.get_config", return_value=_conflicting_config()):
        main(["glossary", "fix"])

    path = _get_config_dir() / "glossary.toml"
    with open(path, "rb") as f:
        saved = tomllib.load(f)
    orders = {key: entry["order"] for key, entry in saved["glossary"]["status"].items()}
    assert orders == {
        "open": 10,
        "in_progress": 20,
        "completed": 30,
        "cancelled": 40,
        "other": 50,
    }
    assert "Saved to" in capsys.readouterr().out


def test_glossary_fix_keeps_existing_comments():
    config_dir = _get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / "glossary.toml"
    path.write_text(
        '# my statuses\n[glossary.status.open]\ndisplay_name = "Open"\norder = 1\n',
        encoding="utf-8",
    )
    with patch("tasksift.config.get_config", return_value=_conflicting_config()):
        main(["glossary", "fix"])

    content = path.read_text(encoding="utf-8")
    assert content.startswith("# my statuses")
    assert 'display_name = "Open"' in content
    assert tomllib.loads(content)["glossary"]["status"]["open"]["order"] == 10


def test_invalid_configuration_exits_with_code_two(capsys):
    config = copy.deepcopy(load_bundled_config())
    config["scoring"]["relevance"] = 0
    with patch("tasksift.config.get_config", return_value=config):
        with pytest.raises(SystemExit) as exc_info:
            main(["glossary", "check"])
    assert exc_info.value.code == 2
    out = capsys.readouterr().out
    assert "Invalid configuration" in out
    assert "scoring.relevance" in out
