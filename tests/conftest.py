import datetime
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

# tasksift.config reads the user configuration at import time.
os.environ["TASKSIFT_CONFIG_DIR"] = tempfile.mkdtemp(prefix="tasksift-test-config-")

from tasksift.search.settings import default_settings  # noqa: E402

TODAY = datetime.date(2025, 3, 12)  # a Wednesday


@pytest.fixture(autouse=True)
def mock_settings_env_vars(tmp_path):
    """Automatically mock HOME and the config directory to ensure test isolation."""
    fake_home = tmp_path / "fake_home"
    fake_home.mkdir()
    config_dir = fake_home / ".config" / "tasksift"

    with patch("pathlib.Path.home", return_value=fake_home):
        with patch.dict(
            os.environ,
            {"HOME": str(fake_home), "TASKSIFT_CONFIG_DIR": str(config_dir)},
        ):
            yield


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def settings():
    return default_settings()


@pytest.fixture
def glossary(settings):
    return settings.glossary


@pytest.fixture
def tasks_file(tmp_path) -> Path:
    path = tmp_path / "tasks.json"
    path.write_text(
        """[
  {"id": "a", "text": "Fix login bug", "priority": 1, "due_date": "2025-03-12", "status": "open"},
  {"id": "b", "text": "Write release notes", "priority": 3, "due_date": "2025-03-20", "status": "in_progress"},
  {"id": "c", "text": "Review login flow", "priority": 2, "due_date": "2025-03-05", "status": "open"},
  {"id": "d", "text": "Archive old invoices", "status": "completed"}
]""",
        encoding="utf-8",
    )
    return path
