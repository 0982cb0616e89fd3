from admission.services.scoring import calculate_admission_score
from admission.services.snapshots import collect_snapshots, confirm_turnover_candidates
from admission.services.training import update_training_data_blocks

__all__ = [
    "calculate_admission_score",
    "collect_snapshots",
    "confirm_turnover_candidates",
    "update_training_data_blocks",
]
