"""Write repaired status sort positions back to glossary.toml."""

import logging
from pathlib import Path
from typing import Iterable, Optional

import tomlkit

from tasksift.config.loader import _get_config_dir
from tasksift.search.glossary import OrderChange

logger = logging.getLogger(__name__)


def glossary_config_path() -> Path:
    return _get_config_dir() / "glossary.toml"


def _load_toml_document(path: Path) -> tomlkit.TOMLDocument:
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("[glossary]\n", encoding="utf-8")
    content = path.read_text(encoding="utf-8")
    return tomlkit.parse(content or "[glossary]\n")


def write_status_orders(
    changes: Iterable[OrderChange], path: Optional[Path] = None
) -> Path:
    """Persist new ``order`` values for status categories, keeping comments."""
    path = path or glossary_config_path()
    doc = _load_toml_document(path)
    if "glossary" not in doc:
        doc["glossary"] = tomlkit.table()
    glossary = doc["glossary"]
    if "status" not in glossary:
        glossary["status"] = tomlkit.table(is_super_table=True)
    statuses = glossary["status"]

    count = 0
    for change in changes:
        if change.key not in statuses:
            statuses[change.key] = tomlkit.table()
        statuses[change.key]["order"] = change.new
        count += 1

    path.write_text(doc.as_string(), encoding="utf-8")
    logger.info("saved %d status sort positions to %s", count, path)
    return path
