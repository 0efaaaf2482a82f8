"""Additive schema migrations for databases created by older releases.

``create_all`` only creates missing tables. Columns added to existing tables
after the first release are listed here and added with ``ALTER TABLE ... ADD
COLUMN`` when the inspector reports them missing, so running the migrations
repeatedly is a no-op.
"""
from __future__ import annotations

from typing import Dict, List, Tuple
import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

LOGGER = logging.getLogger(__name__)

COLUMN_MIGRATIONS: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "sittings": (
        ("raw_document", "TEXT"),
        ("source_url", "VARCHAR(512)"),
    ),
    "individual_speeches": (
        ("speaker_role", "VARCHAR(256)"),
        ("political_group_std", "VARCHAR(32)"),
        ("political_group_kind", "VARCHAR(16)"),
        ("language", "VARCHAR(8)"),
        ("mep_id", "INTEGER"),
        ("macro_topic", "VARCHAR(128)"),
        ("macro_specific_focus", "VARCHAR(256)"),
        ("macro_confidence", "FLOAT"),
        ("macro_classified_by", "VARCHAR(128)"),
        ("macro_classified_at", "INTEGER"),
        ("macro_classification_cost", "FLOAT"),
    ),
    "topic_classifications": (
        ("rationale", "VARCHAR(512)"),
        ("cost", "FLOAT DEFAULT 0"),
    ),
}


def apply_column_migrations(engine: Engine) -> List[str]:
    """Add every missing column from :data:`COLUMN_MIGRATIONS`; return what was added."""

    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    added: List[str] = []
    with engine.begin() as connection:
        for table, columns in COLUMN_MIGRATIONS.items():
            if table not in existing_tables:
                continue
            present = {column["name"] for column in inspector.get_columns(table)}
            for name, ddl in columns:
                if name in present:
                    continue
                connection.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))
                LOGGER.info("Added column %s.%s", table, name)
                added.append(f"{table}.{name}")
    return added


__all__ = ["COLUMN_MIGRATIONS", "apply_column_migrations"]
