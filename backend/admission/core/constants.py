"""
Centralized constants for the snapshot pipeline, scheduler and scoring engine.

Change job IDs, source tags or thresholds here instead of scattering literals across
services and main.
"""
# Scheduler job IDs (must match ids used in main.py add_job)
SNAPSHOT_JOB_ID = "waitlist_snapshot_collection"
TRAINING_JOB_ID = "training_data_blocks"

# Snapshot collector
SNAPSHOT_SOURCE_PLACES_SYNC = "places_sync"
SNAPSHOT_DEFAULT_CONFIDENCE = 0.7
AGE_BANDS = ("0", "1", "2", "3", "4", "5")
# Waitlist per class is estimated as this share of the class capacity
WAITLIST_CLASS_RATIO = 0.6

# TO alerts
TO_ALERT_SOURCE = "snapshot_diff"
TO_ALERT_AGE_CLASS_ALL = "all"

# Lookback windows (calendar months)
TRAINING_LOOKBACK_MONTHS = 6
SCORING_LOOKBACK_MONTHS = 12

# Block types
BLOCK_TYPE_VACANCY = "admission_vacancy_to"
BLOCK_TYPE_COMMUNITY_SIGNAL = "admission_community_signal"
BLOCK_TYPE_TO_PATTERN = "to_pattern"
BLOCK_TYPE_COMMUNITY_AGGREGATE = "community_aggregate"

# Prebuilt blocks below this confidence are ignored
MIN_BLOCK_CONFIDENCE = 0.5
# Community aggregates are only shown with at least this many independent sources
K_ANONYMITY_THRESHOLD = 3
# Community signal needs this many sources before it nudges the posterior
MIN_COMMUNITY_SIGNAL_SOURCES = 2
MIN_CONFIDENCE_FOR_COMMUNITY = 0.6

# Display name when the catalog has none
DEFAULT_FACILITY_NAME = "daycare"
