#!/usr/bin/env python3
"""
Database Flush Script

Deletes all workflow and memory data while preserving the schema.

Tables deleted (in order):
1. memory_block_history
2. memory_blocks
3. archival_entries
4. checkpoints

Usage:
    python scripts/database/flush_database.py [--confirm] [--thread THREAD_ID]

    Without --confirm: Dry-run mode (shows what would be deleted)
    With --confirm: Actually deletes data
    With --thread: Only delete checkpoints of one thread
"""

import sys
import argparse
from pathlib import Path
from typing import Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from sqlalchemy import text
from agentloom.core.config import settings
from agentloom.core.database import build_engine

# Direct connection, same URL migrations use
engine = build_engine(settings.get_migration_url())

# Deletion order (respects foreign key constraints)
TABLES_TO_FLUSH = [
    "memory_block_history",  # References memory_blocks (SET NULL)
    "memory_blocks",
    "archival_entries",
    "checkpoints",
]


def count_records(table_name: str, where: str = "", params: Optional[dict] = None) -> int:
    """Count records in a table."""
    with engine.connect() as conn:
        result = conn.execute(text(f"SELECT COUNT(*) FROM {table_name} {where}"), params or {})
        return result.scalar()


def delete_table_data(table_name: str, confirm: bool = False, where: str = "", params: Optional[dict] = None) -> int:
    """Delete data from a table (optionally filtered)."""
    count = count_records(table_name, where, params)

    if count == 0:
        print(f"  ✓ {table_name}: already empty")
        return 0

    if confirm:
        with engine.connect() as conn:
            conn.execute(text(f"DELETE FROM {table_name} {where}"), params or {})
            conn.commit()
            print(f"  ✗ {table_name}: deleted {count} records")
    else:
        print(f"  ○ {table_name}: would delete {count} records")

    return count


def flush_database(confirm: bool = False, thread_id: Optional[str] = None):
    """
    Flush data from the database.

    Args:
        confirm: If True, actually delete data. If False, dry-run mode.
        thread_id: Restrict to one thread's checkpoints.
    """
    print("=" * 60)
    print("DATABASE FLUSH SCRIPT")
    print("=" * 60)
    print()

    if confirm:
        print("⚠️  LIVE MODE: Data will be PERMANENTLY DELETED")
    else:
        print("📋 DRY-RUN MODE: No data will be deleted (preview only)")
    print()

    total_deleted = 0
    if thread_id:
        print(f"Checkpoints of thread {thread_id}:")
        total_deleted += delete_table_data(
            "checkpoints", confirm, "WHERE thread_id = :thread_id", {"thread_id": thread_id}
        )
    else:
        print("Tables to flush:")
        for table in TABLES_TO_FLUSH:
            total_deleted += delete_table_data(table, confirm)

    print()
    print("=" * 60)
    if confirm:
        print(f"✓ COMPLETED: Deleted {total_deleted} total records")
    else:
        print(f"📊 DRY-RUN SUMMARY: Would delete {total_deleted} total records")
        print()
        print("To actually delete data, run:")
        print("  python scripts/database/flush_database.py --confirm")
    print("=" * 60)


def main():
    parser = argparse.ArgumentParser(
        description="Flush workflow checkpoints and memory data (preserves schema)"
    )
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Actually delete data (without this, runs in dry-run mode)"
    )
    parser.add_argument("--thread", default=None, help="Only delete this thread's checkpoints")

    args = parser.parse_args()

    # Safety confirmation in live mode
    if args.confirm:
        print()
        print("⚠️  WARNING: This will PERMANENTLY DELETE data!")
        print()
        response = input("Type 'DELETE ALL DATA' to confirm: ")

        if response != "DELETE ALL DATA":
            print("❌ Aborted (confirmation text did not match)")
            sys.exit(1)

        print()

    flush_database(confirm=args.confirm, thread_id=args.thread)


if __name__ == "__main__":
    main()
