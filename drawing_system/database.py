"""
Database Schema Setup for Drawing System
Creates all tables and indices needed for per-channel drawings
"""

import logging

from sqlalchemy import inspect, text

logger = logging.getLogger(__name__)

# SQL schema for drawing system
DRAWING_SCHEMA_SQL = """
-- ============================================
-- DRAWING SYSTEM DATABASE SCHEMA
-- ============================================

-- Chat identity -> external (room) identity
CREATE TABLE IF NOT EXISTS users (
    chat_identity TEXT PRIMARY KEY,
    external_identity TEXT NOT NULL,
    profile_link TEXT,
    updated_at BIGINT NOT NULL
);

-- One row per drawing epoch (open -> closed cycle) per channel
CREATE TABLE IF NOT EXISTS drawings (
    epoch_id VARCHAR(32) PRIMARY KEY,
    channel TEXT NOT NULL,
    generation INTEGER NOT NULL,  -- 1, 2, 3... per channel, latest wins
    is_open BOOLEAN NOT NULL,
    opened_by TEXT,
    last_closed_time BIGINT,      -- epoch seconds
    UNIQUE(channel, generation)
);

-- Entry pool: one row per ticket copy
CREATE TABLE IF NOT EXISTS entries (
    epoch_id VARCHAR(32) NOT NULL REFERENCES drawings(epoch_id),
    chat_identity TEXT NOT NULL,
    seq INTEGER NOT NULL,
    PRIMARY KEY (epoch_id, seq)
);

-- Committed winners of an epoch
CREATE TABLE IF NOT EXISTS winners (
    epoch_id VARCHAR(32) NOT NULL REFERENCES drawings(epoch_id),
    channel TEXT NOT NULL,
    chat_identity TEXT NOT NULL,
    picked_at BIGINT NOT NULL,    -- epoch seconds
    seq INTEGER NOT NULL,
    PRIMARY KEY (epoch_id, chat_identity)
);

-- ============================================
-- INDICES FOR PERFORMANCE
-- ============================================

CREATE INDEX IF NOT EXISTS idx_drawings_channel ON drawings(channel, generation);
CREATE INDEX IF NOT EXISTS idx_entries_identity ON entries(epoch_id, chat_identity);
CREATE INDEX IF NOT EXISTS idx_winners_channel ON winners(channel);
"""

REQUIRED_TABLES = ['users', 'drawings', 'entries', 'winners']


def _split_statements(sql):
    """Split the schema into single statements (SQLite runs one at a time)"""
    statements = []
    current_statement = []

    for line in sql.split('\n'):
        stripped = line.strip()
        if not stripped or stripped.startswith('--'):
            continue

        current_statement.append(line)

        if stripped.endswith(';'):
            statements.append('\n'.join(current_statement))
            current_statement = []

    return statements


def setup_drawing_database(engine):
    """
    Create all drawing system tables and indices

    Args:
        engine: SQLAlchemy engine instance

    Returns:
        bool: True if successful, False otherwise
    """
    try:
        logger.info("Setting up drawing system database schema...")

        with engine.begin() as conn:
            for statement in _split_statements(DRAWING_SCHEMA_SQL):
                conn.execute(text(statement))

        logger.info("✅ Drawing database schema created successfully")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to setup drawing database: {e}")
        return False


def verify_drawing_schema(engine):
    """
    Verify that all required tables exist

    Args:
        engine: SQLAlchemy engine instance

    Returns:
        dict: Status of each table (True/False)
    """
    existing = set(inspect(engine).get_table_names())
    return {table: table in existing for table in REQUIRED_TABLES}


if __name__ == "__main__":
    import os
    from dotenv import load_dotenv
    from sqlalchemy import create_engine

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    load_dotenv()

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///drawings.db")
    if DATABASE_URL.startswith("postgres://"):
        DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

    engine = create_engine(DATABASE_URL)

    if not setup_drawing_database(engine):
        logger.error("❌ Schema setup failed")
        exit(1)

    for table, exists in verify_drawing_schema(engine).items():
        symbol = "✓" if exists else "✗"
        logger.info(f"  {symbol} {table}")
