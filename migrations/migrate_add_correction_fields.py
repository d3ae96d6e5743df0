#!/usr/bin/env python3
"""Migration script to add correction linkage columns to the invoices table.

This migration adds the columns that link a correction document to the
invoice it corrects:
- correction_of (INTEGER, nullable, references invoices.id)
- correction_type (VARCHAR, nullable): PARTIAL_CANCEL, CORRECTION or FULL_CANCEL
- corrected_positions (JSON, nullable): audit records of the corrected positions

Existing credit notes linked only through cancelled_invoice_id are left
untouched; the correction history reports them as full cancellations.

Usage:
    python migrations/migrate_add_correction_fields.py [--db-path PATH]
"""

import sys
from pathlib import Path

# Add src to path so we can import parkledger modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy import text, inspect
from parkledger.database.factories import create_sqlite_database

NEW_COLUMNS = [
    ("correction_of", "INTEGER REFERENCES invoices(id)"),
    ("correction_type", "VARCHAR"),
    ("corrected_positions", "JSON"),
]


def column_exists(engine, table_name: str, column_name: str) -> bool:
    """Check if a column exists in a table.

    Args:
        engine: SQLAlchemy engine
        table_name: Name of the table
        column_name: Name of the column

    Returns:
        True if column exists, False otherwise
    """
    inspector = inspect(engine)
    columns = [col["name"] for col in inspector.get_columns(table_name)]
    return column_name in columns


def migrate_database(database_path: str | None = None) -> None:
    """Migrate database to add correction linkage columns.

    Args:
        database_path: Path to database file. If None, uses default location.

    Raises:
        Exception: If migration fails
    """
    db = create_sqlite_database(database_path=database_path)
    db.connect()

    try:
        session = db.session_factory()
        try:
            engine = session.bind
            if engine is None:
                raise Exception("Could not get database engine from session")
        finally:
            session.close()

        inspector = inspect(engine)
        if "invoices" not in inspector.get_table_names():
            raise Exception("Table 'invoices' does not exist. Please initialize the database schema first.")

        missing = [(name, ddl) for name, ddl in NEW_COLUMNS if not column_exists(engine, "invoices", name)]
        if not missing:
            print("Migration already applied: correction columns exist in invoices table")
            return

        print("Starting migration: adding correction columns...")

        with engine.begin() as conn:
            for name, ddl in missing:
                conn.execute(text(f"ALTER TABLE invoices ADD COLUMN {name} {ddl}"))
                print(f"  Added column: {name}")
            conn.execute(
                text("CREATE INDEX IF NOT EXISTS ix_invoices_correction_of ON invoices (correction_of)")
            )
            print("  Added index: ix_invoices_correction_of")

            legacy_count = conn.execute(
                text(
                    "SELECT COUNT(*) FROM invoices "
                    "WHERE cancelled_invoice_id IS NOT NULL AND correction_of IS NULL"
                )
            ).scalar()
            print(f"  {legacy_count} legacy cancellation(s) will be reported as FULL_CANCEL")

        print("Migration completed successfully!")

    except Exception as e:
        print(f"Migration failed: {e}")
        raise
    finally:
        db.disconnect()


def main():
    """Main entry point for migration script."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Migrate database to add invoice correction columns"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="Path to database file (overrides PARKLEDGER_DB_PATH environment variable)",
    )
    args = parser.parse_args()

    try:
        migrate_database(database_path=args.db_path)
        return 0
    except Exception as e:
        print(f"\nMigration failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
