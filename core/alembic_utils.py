from __future__ import annotations

from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


class SchemaOutOfDate(RuntimeError):
    pass


def _expected_heads(ini_path: Path) -> set[str]:
    if not ini_path.exists():
        raise SchemaOutOfDate(f"missing {ini_path}; cannot check the office schema revision")
    return set(ScriptDirectory.from_config(Config(str(ini_path))).get_heads())


def current_heads(engine) -> set[str]:
    with engine.connect() as conn:
        return set(MigrationContext.configure(conn).get_current_heads() or ())


def ensure_up_to_date(engine, ini_path: Path = ALEMBIC_INI) -> None:
    """Refuse to start against an office database that is not at the migration head."""
    expected = _expected_heads(ini_path)
    applied = current_heads(engine)
    if not applied:
        raise SchemaOutOfDate("office database is unversioned; run `alembic upgrade head` first")
    missing = expected - applied
    if missing or applied != expected:
        raise SchemaOutOfDate(
            f"office database at {sorted(applied)} but code expects {sorted(expected)}; run `alembic upgrade head`"
        )
