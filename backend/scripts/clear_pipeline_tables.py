#!/usr/bin/env python3
"""
Clear snapshot pipeline tables (waitlist_snapshots, to_alerts). Fast (TRUNCATE, PostgreSQL).
Run with backend stopped to avoid locks: cd backend && python scripts/clear_pipeline_tables.py
"""
import sys
from pathlib import Path

# backend/scripts/ -> backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import text

from admission.db.session import engine
from admission.db.tables import PIPELINE_TABLE_NAMES


def main():
    tables = ", ".join(PIPELINE_TABLE_NAMES)
    print(f"Connecting to DB and truncating {tables} ...")
    with engine.connect() as conn:
        conn.execute(text(f"TRUNCATE TABLE {tables} RESTART IDENTITY CASCADE"))
        conn.commit()
    print("Done. Snapshot history is empty; the next collection starts with enrolled_delta = 0.")


if __name__ == "__main__":
    main()
