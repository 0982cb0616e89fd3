"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE). alembic/env.py asserts the
registered models match ALL_TABLE_NAMES.
"""
# All tables that exist in the DB. Must match models and migration 001.
ALL_TABLE_NAMES = (
    "facilities",
    "waitlist_snapshots",
    "to_alerts",
    "admission_blocks",
    "data_blocks",
    "admission_score_cache",
)

# Tables written by the snapshot pipeline (cleared when resetting collection state).
PIPELINE_TABLE_NAMES = (
    "to_alerts",
    "waitlist_snapshots",
)
