"""
Database schema initialization for PatternQ.

Contains the SQL schema and initialization logic, kept apart from database.py
so the pool module stays small.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from patternq.observability.logging import get_logger

logger = get_logger(__name__)

EXPECTED_TABLES = ("learned_patterns", "pattern_uploads", "pattern_application_history")


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Args:
        db_path: Path to the database file

    Side Effects:
    - Creates tables and indexes if they don't exist
    - Creates the parent directory if needed
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)

    conn.executescript("""
        CREATE TABLE IF NOT EXISTS learned_patterns (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            name TEXT NOT NULL,
            category TEXT NOT NULL,
            platform TEXT NOT NULL,
            industry TEXT,
            layout TEXT NOT NULL,
            color_psychology TEXT NOT NULL,
            hook_pattern TEXT NOT NULL,
            visual_elements TEXT NOT NULL,
            engagement_tier TEXT,
            confidence_score REAL NOT NULL,
            source_hash TEXT NOT NULL,
            extraction_flags TEXT NOT NULL DEFAULT '[]',
            usage_count INTEGER NOT NULL DEFAULT 0,
            last_used_at TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(owner_id, source_hash)
        );

        CREATE INDEX IF NOT EXISTS idx_learned_patterns_owner_active
            ON learned_patterns(owner_id, is_active);

        CREATE TABLE IF NOT EXISTS pattern_uploads (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            status TEXT NOT NULL,
            linked_pattern_id TEXT,
            processing_duration_ms INTEGER,
            error_message TEXT,
            created_at TEXT NOT NULL,
            processing_started_at TEXT,
            processing_completed_at TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_pattern_uploads_owner
            ON pattern_uploads(owner_id, created_at);

        CREATE TABLE IF NOT EXISTS pattern_application_history (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            pattern_id TEXT NOT NULL REFERENCES learned_patterns(id) ON DELETE CASCADE,
            target_platform TEXT,
            product_id TEXT,
            prompt_used TEXT,
            user_rating INTEGER CHECK (user_rating BETWEEN 1 AND 5),
            was_used INTEGER,
            feedback TEXT,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_pattern_application_history_pattern
            ON pattern_application_history(owner_id, pattern_id, created_at);
    """)

    conn.commit()
    validate_schema(conn)
    conn.close()
    logger.info("Initialized PatternQ database at %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected schema

    Raises:
        ValueError: If tables are missing
    """
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    present = {row[0] for row in rows}
    missing = [table for table in EXPECTED_TABLES if table not in present]
    if missing:
        raise ValueError(f"Missing tables: {', '.join(missing)}")
    return True
