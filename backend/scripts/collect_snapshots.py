#!/usr/bin/env python3
"""
Run one snapshot collection (plus TO confirmation) outside the scheduler.
Run: cd backend && python scripts/collect_snapshots.py
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from admission.db.session import SessionLocal
from admission.services.snapshots import collect_snapshots


def main():
    print("Collecting waitlist snapshots for all facilities with capacity...")
    db = SessionLocal()
    try:
        result = collect_snapshots(db)
        print(
            f"Done. collected={result['collected']}, failed={result['failed']}, "
            f"to_detected={result['to_detected']}"
        )
    finally:
        db.close()


if __name__ == "__main__":
    main()
