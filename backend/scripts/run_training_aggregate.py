#!/usr/bin/env python3
"""
Roll the last 6 months of snapshots into to_pattern data blocks (same as the daily job).
Run: cd backend && python scripts/run_training_aggregate.py
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from admission.db.session import SessionLocal
from admission.services.training import update_training_data_blocks


def main():
    print("Aggregating snapshot history into training data blocks...")
    db = SessionLocal()
    try:
        updated = update_training_data_blocks(db)
        print(f"Done. data_blocks updated={updated}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
