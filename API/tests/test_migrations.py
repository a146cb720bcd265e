from __future__ import annotations

import importlib.util
from pathlib import Path

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

from entitlements.models import entities  # noqa: F401
from entitlements.models.base import Base

VERSIONS_DIR = Path(__file__).resolve().parents[1] / "alembic" / "versions"


def _load_baseline():
    path = VERSIONS_DIR / "20261018_0001_baseline.py"
    spec = importlib.util.spec_from_file_location("baseline_migration", path)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_baseline_migration_matches_models(tmp_path: Path):
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'migration.db'}")
    module = _load_baseline()
    assert module.down_revision is None

    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            module.upgrade()
        inspector = sa.inspect(conn)
        assert set(inspector.get_table_names()) == set(Base.metadata.tables)
        for name, table in Base.metadata.tables.items():
            columns = {c["name"] for c in inspector.get_columns(name)}
            assert columns == {c.name for c in table.columns}, name

    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            module.downgrade()
        assert sa.inspect(conn).get_table_names() == []
    engine.dispose()
