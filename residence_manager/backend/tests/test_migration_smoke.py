# backend/tests/test_migration_smoke.py
from __future__ import annotations

import importlib.util
from pathlib import Path

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from residence.db import Base
from residence import models  # noqa: F401

MIGRATION = Path(__file__).resolve().parents[1] / "residence" / "migrations" / "versions" / "0001_init.py"


def _load_migration():
    found = importlib.util.spec_from_file_location("migration_0001_init", MIGRATION)
    mod = importlib.util.module_from_spec(found)
    found.loader.exec_module(mod)
    return mod


def test_initial_migration_matches_models():
    mod = _load_migration()
    engine = create_engine("sqlite://")

    with engine.begin() as conn:
        ctx = MigrationContext.configure(conn)
        with Operations.context(ctx):
            mod.upgrade()

        insp = inspect(conn)
        assert set(insp.get_table_names()) == set(Base.metadata.tables)

        for name, table in Base.metadata.tables.items():
            migrated = {c["name"] for c in insp.get_columns(name)}
            assert migrated == {c.name for c in table.columns}, name

        uniques = {u["name"] for u in insp.get_unique_constraints("residents")}
        assert "uq_residents_bed_id" in uniques

    with engine.begin() as conn:
        ctx = MigrationContext.configure(conn)
        with Operations.context(ctx):
            mod.downgrade()
        assert inspect(conn).get_table_names() == []
