"""Alembic bootstrap for the catalog schema.

The revision scripts ship inside the package, so the script location always
points here. Extra ``[tool.alembic]`` options from a source checkout's
pyproject.toml (for example ``file_template``) are layered on top.
"""

from __future__ import annotations

import tomllib
from functools import cache
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from cardmerge.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent

# Resolved by the package itself; pyproject values would point at the source tree.
_OWNED_OPTIONS: Final[frozenset[str]] = frozenset({"script_location", "prepend_sys_path"})


def _find_pyproject() -> Path | None:
    for parent in MIGRATIONS_PATH.parents:
        candidate = parent / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


@cache
def _checkout_options() -> dict[str, str]:
    pyproject = _find_pyproject()
    if pyproject is None:
        return {}
    with pyproject.open("rb") as handle:
        section = tomllib.load(handle).get("tool", {}).get("alembic", {})
    return {
        str(key): str(value)
        for key, value in section.items()
        if key not in _OWNED_OPTIONS and isinstance(value, str | int | float | bool)
    }


def alembic_config(*, database_uri: str | None = None) -> Config:
    """Build an Alembic config bound to the packaged revisions."""

    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    for key, value in _checkout_options().items():
        config.set_main_option(key, value)
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Bring the schema to the newest revision.

    With ``engine`` the upgrade reuses one of its connections, which keeps
    in-memory SQLite databases intact.
    """

    if engine is None:
        command.upgrade(
            alembic_config(database_uri=database_uri or get_database_config().uri), "head"
        )
        return

    config = alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")


def head_revision() -> str | None:
    return ScriptDirectory.from_config(alembic_config()).get_current_head()


def current_revision(engine: Engine) -> str | None:
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()
