from admission.services.scoring.engine import AdmissionScoringEngine, calculate_admission_score
from admission.services.scoring.formatting import format_score_summary
from admission.services.scoring.tables import DEFAULT_ENGINE_CONFIG, EngineConfig

__all__ = [
    "AdmissionScoringEngine",
    "calculate_admission_score",
    "format_score_summary",
    "DEFAULT_ENGINE_CONFIG",
    "EngineConfig",
]
