"""Shared fixtures: in-memory SQLite session, pinned clock, row factories."""
from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone

# Must be set before admission.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from admission.db.base import Base
from admission.models import (
    AdmissionBlock,
    DataBlock,
    Facility,
    ToAlert,
    TurnoverState,
    WaitlistSnapshot,
)

# Mid-March in Seoul: inside the new-term peak
DEFAULT_NOW = datetime(2026, 3, 15, 3, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = DEFAULT_NOW):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def make_facility(db):
    def _make(
        facility_id: str = "fac-1",
        capacity_total: int | None = 100,
        capacity_by_class: dict | None = None,
        current_enrolled: int | None = 80,
        name: str | None = "Sunshine Daycare",
        address: str | None = "123 Example-ro",
        lat: float | None = None,
        lng: float | None = None,
    ) -> Facility:
        row = Facility(
            facility_id=facility_id,
            name=name,
            capacity_total=capacity_total,
            capacity_by_class_json=json.dumps(capacity_by_class) if capacity_by_class is not None else None,
            current_enrolled=current_enrolled,
            address=address,
            lat=lat,
            lng=lng,
        )
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture()
def add_snapshot(db):
    def _add(
        facility_id: str,
        at: datetime,
        enrolled: int = 80,
        delta: int = 0,
        state: TurnoverState = TurnoverState.UNCHANGED,
        source: str = "places_sync",
        waitlist_by_class: dict | None = None,
    ) -> WaitlistSnapshot:
        row = WaitlistSnapshot(
            facility_id=facility_id,
            snapshot_at=at,
            current_enrolled=enrolled,
            waitlist_total=sum((waitlist_by_class or {}).values()),
            waitlist_by_class_json=json.dumps(waitlist_by_class) if waitlist_by_class is not None else None,
            enrolled_delta=delta,
            to_state=state.value,
            source=source,
            confidence=0.7,
        )
        db.add(row)
        db.commit()
        return row

    return _add


@pytest.fixture()
def add_alert(db):
    def _add(facility_id: str, detected_at: datetime, slots: int = 1) -> ToAlert:
        row = ToAlert(
            facility_id=facility_id,
            facility_name="Sunshine Daycare",
            age_class="all",
            detected_at=detected_at,
            estimated_slots=slots,
            confidence=0.65,
            source="snapshot_diff",
            prev_enrolled=80 + slots,
            curr_enrolled=80,
        )
        db.add(row)
        db.commit()
        return row

    return _add


@pytest.fixture()
def add_admission_block(db, clock):
    def _add(
        facility_id: str,
        block_type: str,
        data: dict | str,
        confidence: float = 0.8,
        is_active: bool = True,
        valid_until: datetime | None = None,
    ) -> AdmissionBlock:
        row = AdmissionBlock(
            facility_id=facility_id,
            block_type=block_type,
            data_json=data if isinstance(data, str) else json.dumps(data),
            confidence=confidence,
            is_active=is_active,
            valid_until=valid_until or clock.now() + timedelta(days=1),
        )
        db.add(row)
        db.commit()
        return row

    return _add


@pytest.fixture()
def add_data_block(db):
    def _add(
        block_id: str,
        facility_id: str,
        block_type: str = "community_aggregate",
        features: dict | None = None,
        confidence: float = 0.7,
        source_count: int = 5,
    ) -> DataBlock:
        row = DataBlock(
            block_id=block_id,
            block_type=block_type,
            facility_id=facility_id,
            features_json=json.dumps(features or {}),
            confidence=confidence,
            source_count=source_count,
            is_active=True,
        )
        db.add(row)
        db.commit()
        return row

    return _add
