import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from admission.core.errors import AdmissionError, StoreUnavailableError
from admission.db.session import build_engine, check_database
from admission.main import app
from admission.scheduler.snapshot_job import run_snapshot_job
from admission.scheduler.training_job import run_training_job


def test_health_reports_jobs_and_engine_version():
    with TestClient(app) as client:
        resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["engine_version"] == "v1.7.0"
    assert set(body["jobs"]) == {"waitlist_snapshot_collection", "training_data_blocks"}


def test_unreachable_store_is_a_configuration_error(tmp_path):
    bad = create_engine(f"sqlite:///{tmp_path / 'missing' / 'admission.db'}")
    with pytest.raises(StoreUnavailableError) as exc:
        check_database(bad)
    assert exc.value.code == "store_not_configured"
    assert exc.value.status_code == 503


def test_empty_database_url_fails_fast():
    with pytest.raises(StoreUnavailableError):
        build_engine("")


def test_error_to_dict():
    err = AdmissionError("boom", code="custom", status_code=418)
    assert err.to_dict() == {"code": "custom", "message": "boom", "status_code": 418}


def test_jobs_log_failures_instead_of_raising(caplog):
    # The process-wide in-memory database has no tables, so both jobs fail inside
    run_snapshot_job()
    run_training_job()
    assert "Snapshot job failed" in caplog.text
    assert "Training job failed" in caplog.text
