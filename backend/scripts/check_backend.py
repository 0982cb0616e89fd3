#!/usr/bin/env python3
"""
Quick checks so the backend can start. Run from repo root or backend/:
  python backend/scripts/check_backend.py
  # or
  cd backend && python scripts/check_backend.py
"""
import os
import sys
from pathlib import Path

# Run from backend/
backend_dir = Path(__file__).resolve().parent.parent
os.chdir(backend_dir)
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


def main():
    errors = []

    # 1) .env
    env_file = backend_dir / ".env"
    if not env_file.exists():
        errors.append("backend/.env missing. Copy from .env.example and set DATABASE_URL.")
    else:
        print("OK  .env exists")

    # 2) DB connection
    try:
        from admission.db.session import check_database

        check_database()
        print("OK  Database connection (DATABASE_URL)")
    except Exception as e:
        errors.append(f"Database: {e}")
        print("FAIL Database:", e)

    # 3) Scoring timezone (zoneinfo needs tzdata on slim images)
    try:
        from zoneinfo import ZoneInfo

        from admission.config import settings

        ZoneInfo(settings.scoring_timezone)
        print(f"OK  Scoring timezone {settings.scoring_timezone}")
    except Exception as e:
        errors.append(f"Timezone: {e}")
        print("FAIL Timezone:", e)

    # 4) App import (catches missing deps, bad imports)
    try:
        from admission.main import app  # noqa: F401

        print("OK  App import (admission.main)")
    except Exception as e:
        errors.append(f"App import: {e}")
        print("FAIL App import:", e)

    if errors:
        print("\n---")
        for e in errors:
            print("•", e)
        return 1

    print("\nAll checks passed. Start with: cd backend && uvicorn admission.main:app --port 8000")
    return 0


if __name__ == "__main__":
    sys.exit(main())
