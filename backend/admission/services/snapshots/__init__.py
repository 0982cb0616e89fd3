"""
Waitlist snapshot pipeline: collection (stage one) and TO confirmation (stage two).
"""
from admission.services.snapshots.collector import collect_snapshots
from admission.services.snapshots.confirmation import confirm_turnover_candidates

__all__ = ["collect_snapshots", "confirm_turnover_candidates"]
