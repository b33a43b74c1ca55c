"""
Alembic migrations build the same schema as the models.
"""
from sqlalchemy import create_engine, inspect

from affiliate_tracker.db import Base
from affiliate_tracker.run_migrations import run_migrations


def test_upgrade_to_head_creates_all_tables(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"

    run_migrations(url)

    engine = create_engine(url)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()

    assert {"tenants", "products", "affiliates", "clicks", "conversions", "payouts", "alembic_version"} <= tables


def test_migrated_schema_matches_models(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    run_migrations(url)

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        for table in Base.metadata.sorted_tables:
            migrated = {c["name"] for c in inspector.get_columns(table.name)}
            assert migrated == {c.name for c in table.columns}, table.name

        conversion_uniques = {u["name"] for u in inspector.get_unique_constraints("conversions")}
        assert "uq_conversions_order_product" in conversion_uniques
    finally:
        engine.dispose()


def test_upgrade_is_idempotent(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"

    run_migrations(url)
    run_migrations(url)

    engine = create_engine(url)
    try:
        assert "payouts" in inspect(engine).get_table_names()
    finally:
        engine.dispose()
