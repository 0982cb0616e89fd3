from admission.models.admission_block import AdmissionBlock
from admission.models.admission_score_cache import AdmissionScoreCache
from admission.models.data_block import DataBlock
from admission.models.facility import Facility
from admission.models.to_alert import ToAlert
from admission.models.waitlist_snapshot import TurnoverState, WaitlistSnapshot

__all__ = [
    "AdmissionBlock",
    "AdmissionScoreCache",
    "DataBlock",
    "Facility",
    "ToAlert",
    "TurnoverState",
    "WaitlistSnapshot",
]
