"""
Database migration script for LotLedger.
Creates missing tables and moves legacy dividend amounts out of the price
column into the dedicated amount column.
"""

import logging
from typing import Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from config import get_settings
from db_engine import create_db_engine, init_db

logger = logging.getLogger(__name__)

JOURNAL_TABLE = "transactionrecord"


def migrate_journal_add_amount(engine: Engine) -> bool:
    """
    Add the amount column to the journal table if it doesn't exist.

    Returns:
        True if the column was added
    """
    columns = [col["name"] for col in inspect(engine).get_columns(JOURNAL_TABLE)]
    if "amount" in columns:
        print("✓ Column 'amount' already exists in transactionrecord table.")
        return False

    print("Adding 'amount' column to transactionrecord table...")
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {JOURNAL_TABLE} ADD COLUMN amount NUMERIC(18, 4)"))
    print("✓ Added 'amount' column successfully.")
    return True


def migrate_dividend_amounts(engine: Engine) -> int:
    """
    Move dividend cash amounts stored in unit_price (with quantity 0) into amount.

    One-time conversion of journals written before the amount column existed.
    Journal rows are otherwise never rewritten, so run_all_migrations only
    calls this right after migrate_journal_add_amount adds the column.

    Returns:
        Number of journal rows rewritten
    """
    with engine.begin() as conn:
        result = conn.execute(text(
            f"UPDATE {JOURNAL_TABLE} "
            "SET amount = unit_price, unit_price = NULL "
            "WHERE kind = 'DIVIDEND' AND amount IS NULL AND unit_price IS NOT NULL"
        ))
        count = result.rowcount or 0
    print(f"✓ Backfilled {count} dividend row(s).")
    return count


def run_all_migrations(engine: Optional[Engine] = None) -> None:
    """Run all pending migrations."""
    engine = engine or create_db_engine()

    print("=" * 60)
    print("LotLedger Database Migration")
    print("=" * 60)

    tables = set(inspect(engine).get_table_names())
    init_db(engine)
    if JOURNAL_TABLE in tables:
        if migrate_journal_add_amount(engine):
            migrate_dividend_amounts(engine)
    else:
        print("✓ Created schema from scratch; no legacy rows to migrate.")

    print("=" * 60)
    print("Migration complete!")
    print("=" * 60)


if __name__ == "__main__":
    logging.basicConfig(
        level=get_settings().log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    run_all_migrations()
