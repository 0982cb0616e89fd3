"""
Error kinds raised by the admission core.

Every error carries a stable ``code`` (what callers match on) and the HTTP-ish
``status_code`` an outer transport would map it to. Add new kinds here instead of
raising bare exceptions from services.
"""
from __future__ import annotations

STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_INTERNAL_ERROR = 500
STATUS_SERVICE_UNAVAILABLE = 503


class AdmissionError(Exception):
    code = "admission_error"
    status_code = STATUS_INTERNAL_ERROR

    def __init__(self, message: str, *, code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "status_code": self.status_code}


class FacilityNotFoundError(AdmissionError):
    code = "facility_not_found"
    status_code = STATUS_NOT_FOUND

    def __init__(self, facility_id: str):
        super().__init__(f"Facility not found: {facility_id}")
        self.facility_id = facility_id


class InvalidModelParametersError(AdmissionError):
    """Negative-Binomial parameters out of range; raised before the CDF is evaluated."""

    code = "invalid_model_parameters"
    status_code = STATUS_INTERNAL_ERROR


class InvalidScoreInputError(AdmissionError):
    code = "invalid_score_input"
    status_code = STATUS_BAD_REQUEST


class StoreUnavailableError(AdmissionError):
    """Persistence store missing or unreachable at startup (configuration, not per request)."""

    code = "store_not_configured"
    status_code = STATUS_SERVICE_UNAVAILABLE
