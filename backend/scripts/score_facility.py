#!/usr/bin/env python3
"""
Score one facility and print the summary (or the raw result with --json).
Run: cd backend && python scripts/score_facility.py <facility_id> <age_band> [--priority sibling] [--position 12]
"""
import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from admission.core.errors import AdmissionError
from admission.db.session import SessionLocal
from admission.services.scoring import calculate_admission_score, format_score_summary


def main():
    parser = argparse.ArgumentParser(description="Admission score for one facility and age band")
    parser.add_argument("facility_id")
    parser.add_argument("age_band", choices=["0", "1", "2", "3", "4", "5"])
    parser.add_argument("--priority", default="general", help="priority type (default: general)")
    parser.add_argument("--position", type=int, default=None, help="waiting position, if known")
    parser.add_argument("--json", action="store_true", help="print the full result as JSON")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        result = calculate_admission_score(
            db, args.facility_id, args.age_band, args.priority, args.position
        )
    except AdmissionError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()

    if args.json:
        print(json.dumps(result, ensure_ascii=False, indent=2))
    else:
        print(format_score_summary(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
