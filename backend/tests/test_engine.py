"""End-to-end scoring against an in-memory store."""
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from admission.core.errors import FacilityNotFoundError, InvalidScoreInputError
from admission.models import AdmissionScoreCache, TurnoverState
from admission.services.scoring import AdmissionScoringEngine, calculate_admission_score
from admission.services.scoring.model import probability_to_grade

VACANCY = "admission_vacancy_to"
SIGNAL = "admission_community_signal"


def _score(db, clock, facility_id="fac-1", band="2", priority="general", position=10):
    return calculate_admission_score(db, facility_id, band, priority, position, clock=clock)


def _add_confirmed_history(add_snapshot, facility_id, now, count=20):
    for i in range(count - 1, -1, -1):
        add_snapshot(
            facility_id,
            now - timedelta(days=1 + 15 * i),
            enrolled=80,
            delta=-1,
            state=TurnoverState.CONFIRMED,
        )


def _assert_valid(result):
    assert 0.0 <= result["probability"] <= 1.0
    assert 1 <= result["admission_score"] <= 99
    assert 0.0 <= result["confidence"] <= 1.0
    assert result["grade"] == probability_to_grade(result["probability"])
    assert 1 <= result["estimated_months_median"] <= 24
    assert result["estimated_months_median"] <= result["estimated_months_80th"] <= 24


def test_cold_start_uses_prior(db, clock, make_facility):
    make_facility("fac-1", capacity_total=100)

    result = _score(db, clock)

    _assert_valid(result)
    assert result["facility_name"] == "Sunshine Daycare"
    assert result["region_key"] == "default"
    assert result["engine_version"] == "v1.7.0"
    assert result["calculated_at"] == clock.now().isoformat()
    to_card = result["evidence"][0]
    assert to_card["type"] == "to_snapshot"
    assert to_card["data_points"]["method"] == "gamma_prior"
    assert to_card["confidence"] == 0.3


def test_history_raises_probability_and_score(db, clock, make_facility, add_snapshot):
    make_facility("cold", capacity_total=100)
    make_facility("busy", capacity_total=100)
    _add_confirmed_history(add_snapshot, "busy", clock.now())

    cold = _score(db, clock, facility_id="cold")
    busy = _score(db, clock, facility_id="busy")

    _assert_valid(busy)
    assert busy["probability"] > cold["probability"]
    assert busy["admission_score"] > cold["admission_score"]
    card = busy["evidence"][0]
    assert card["data_points"]["method"] == "gamma_posterior"
    assert card["data_points"]["N"] == 19
    assert card["data_points"]["age_band_normalization"] == "total_facility"
    assert card["source_count"] == 20
    assert card["confidence"] == 0.85


def test_front_of_queue_is_certain(db, clock, make_facility):
    make_facility("fac-1")

    result = _score(db, clock, priority="disability", position=1)

    assert result["probability"] == 1.0
    assert result["grade"] == "A"
    assert result["admission_score"] == 99
    assert result["estimated_months_median"] == 1
    assert result["estimated_months_80th"] == 1


def test_zero_capacity_facility_still_scores(db, clock, make_facility):
    make_facility("fac-1", capacity_total=0)

    result = calculate_admission_score(db, "fac-1", "0", clock=clock)

    _assert_valid(result)


@pytest.mark.parametrize("band", ["0", "1", "2", "3", "4", "5"])
def test_all_bands_stay_in_range(db, clock, make_facility, band):
    make_facility("fac-1", capacity_total=60, address="서울특별시 강남구 테헤란로 1")
    _assert_valid(_score(db, clock, band=band, position=25))


def test_missing_facility(db, clock):
    with pytest.raises(FacilityNotFoundError) as exc:
        _score(db, clock, facility_id="nope")
    assert exc.value.code == "facility_not_found"
    assert exc.value.status_code == 404


@pytest.mark.parametrize(
    "kwargs",
    [
        {"child_age_band": "7"},
        {"waiting_position": 0},
        {"waiting_position": 501},
        {"priority_type": "vip"},
        {"facility_id": ""},
    ],
)
def test_invalid_input(db, clock, kwargs):
    args = {"facility_id": "fac-1", "child_age_band": "2", "priority_type": "general", "waiting_position": 10}
    args.update(kwargs)
    with pytest.raises(InvalidScoreInputError) as exc:
        calculate_admission_score(db, clock=clock, **args)
    assert exc.value.code == "invalid_score_input"


def test_waiting_position_from_latest_snapshot(db, clock, make_facility, add_snapshot):
    make_facility("fac-1")
    now = clock.now()
    add_snapshot("fac-1", now - timedelta(days=2), waitlist_by_class={"2": 30})
    add_snapshot("fac-1", now - timedelta(days=1), waitlist_by_class={"2": 7})

    result = _score(db, clock, position=None)

    similar = result["evidence"][-1]
    assert similar["type"] == "similar_cases"
    assert similar["summary"].startswith("Waiting position 7 ")


def test_fractional_waitlist_estimate_rounds_half_up(db, clock, make_facility, add_snapshot):
    make_facility("fac-1")
    add_snapshot("fac-1", clock.now() - timedelta(days=1), waitlist_by_class={"2": 2.7})

    result = _score(db, clock, position=None)

    assert result["evidence"][-1]["summary"].startswith("Waiting position 3 ")


def test_waiting_position_falls_back_to_capacity(db, clock, make_facility, add_snapshot):
    make_facility("fac-1", capacity_total=100)
    add_snapshot("fac-1", clock.now() - timedelta(days=1), waitlist_by_class={"2": 0})

    result = _score(db, clock, position=None)

    # capacity_eff = 100 * 0.20
    assert result["evidence"][-1]["summary"].startswith("Waiting position 40 ")


def test_default_region_label_in_evidence(db, clock, make_facility):
    make_facility("fac-1", address="부산광역시 해운대구")

    result = _score(db, clock)

    definition = result["evidence"][-1]["data_points"]["definition"]
    assert definition.startswith("other region/")
    assert "default" not in definition


def test_seasonal_evidence_uses_local_month(db, clock, make_facility):
    make_facility("fac-1")

    result = _score(db, clock)

    seasonal = next(c for c in result["evidence"] if c["type"] == "seasonal_factor")
    assert seasonal["data_points"]["months_ahead"] == [3, 4, 5, 6, 7, 8]
    assert seasonal["confidence"] == 0.95
    assert "new-term peak" in seasonal["summary"]


def test_prebuilt_vacancy_block_is_used(db, clock, make_facility, add_admission_block):
    make_facility("fac-1")
    add_admission_block("fac-1", VACANCY, {"N": 5, "E_seat_months": 47, "alpha_post": 5.0, "beta_post": 50.0})

    result = _score(db, clock)

    card = result["evidence"][0]
    assert card["summary"].startswith("[prebuilt]")
    assert card["data_points"]["alpha_post"] == 5.0
    assert card["confidence"] == 0.8


@pytest.mark.parametrize(
    "data",
    [
        '{"N": 3, "E_seat_months": 12, "alpha_post": NaN, "beta_post": 3}',
        '{"N": 3, "E_seat_months": 12, "alpha_post": 1.0, "beta_post": 0}',
        '{"alpha_post": -1, "beta_post": 2}',
        '{"alpha_post": "abc"}',
        '{"N": 3, "E_seat_months": 12, "alpha_post": 1.0, "beta_post": 1e300}',
    ],
)
def test_malformed_vacancy_block_is_rejected(db, clock, make_facility, add_admission_block, data):
    make_facility("fac-1")
    add_admission_block("fac-1", VACANCY, data)

    result = _score(db, clock)

    _assert_valid(result)
    assert result["evidence"][0]["data_points"]["method"] == "gamma_prior"


def test_vacancy_block_with_tiny_shape_scores_with_zero_confidence(db, clock, make_facility, add_admission_block):
    make_facility("fac-1")
    add_admission_block("fac-1", VACANCY, {"alpha_post": 1e-6, "beta_post": 3})

    result = _score(db, clock)

    _assert_valid(result)
    assert result["evidence"][0]["summary"].startswith("[prebuilt]")
    assert result["confidence"] == 0.0


@pytest.mark.parametrize(
    "newer",
    [
        {"data": {"alpha_post": 1.0, "beta_post": 1e300}, "confidence": 0.9},
        {"data": {"alpha_post": 9.0, "beta_post": 90.0}, "confidence": 0.3},
    ],
)
def test_older_usable_vacancy_block_is_used_when_newest_is_not(db, clock, make_facility, add_admission_block, newer):
    make_facility("fac-1")
    now = clock.now()
    add_admission_block(
        "fac-1", VACANCY, {"N": 5, "E_seat_months": 47, "alpha_post": 5.0, "beta_post": 50.0},
        valid_until=now + timedelta(days=1),
    )
    add_admission_block(
        "fac-1", VACANCY, newer["data"], confidence=newer["confidence"], valid_until=now + timedelta(days=7),
    )

    result = _score(db, clock)

    card = result["evidence"][0]
    assert card["summary"].startswith("[prebuilt]")
    assert card["data_points"]["alpha_post"] == 5.0
    assert card["confidence"] == 0.8


def test_vacancy_block_defaults_missing_parameters(db, clock, make_facility, add_admission_block):
    make_facility("fac-1")
    add_admission_block("fac-1", VACANCY, {"N": 0})

    result = _score(db, clock)

    assert result["evidence"][0]["data_points"]["alpha_post"] == 0.03
    assert result["evidence"][0]["data_points"]["beta_post"] == 3.0


@pytest.mark.parametrize(
    "overrides",
    [{"confidence": 0.4}, {"is_active": False}, {"expired": True}],
)
def test_unusable_blocks_are_ignored(db, clock, make_facility, add_admission_block, overrides):
    make_facility("fac-1")
    valid_until = clock.now() - timedelta(minutes=1) if overrides.get("expired") else None
    add_admission_block(
        "fac-1",
        VACANCY,
        {"alpha_post": 5.0, "beta_post": 50.0},
        confidence=overrides.get("confidence", 0.8),
        is_active=overrides.get("is_active", True),
        valid_until=valid_until,
    )

    result = _score(db, clock)

    assert result["evidence"][0]["data_points"]["method"] == "gamma_prior"


def _signal(sources, mentions=3):
    return {
        "intel_enriched": True,
        "intel_source_count": sources,
        "to_mention_count": mentions,
        "avg_reported_wait_months": 8,
        "competition_level": "high",
        "avg_sentiment": 0.2,
    }


def test_community_signal_nudges_computed_posterior(db, clock, make_facility, add_admission_block):
    make_facility("plain")
    make_facility("signal")
    add_admission_block("signal", SIGNAL, _signal(4))

    plain = _score(db, clock, facility_id="plain")
    nudged = _score(db, clock, facility_id="signal")

    assert nudged["probability"] > plain["probability"]
    card = next(c for c in nudged["evidence"] if c["type"] == "community_aggregate")
    assert card["source_count"] == 4
    assert "competition high" in card["summary"]


def test_community_signal_skipped_when_vacancy_block_present(db, clock, make_facility, add_admission_block):
    vacancy = {"N": 5, "E_seat_months": 47, "alpha_post": 5.0, "beta_post": 50.0}
    make_facility("block-only")
    make_facility("block-and-signal")
    add_admission_block("block-only", VACANCY, vacancy)
    add_admission_block("block-and-signal", VACANCY, vacancy)
    add_admission_block("block-and-signal", SIGNAL, _signal(4))

    a = _score(db, clock, facility_id="block-only")
    b = _score(db, clock, facility_id="block-and-signal")

    assert a["probability"] == b["probability"]
    assert a["confidence"] == b["confidence"]


def test_two_source_signal_nudges_but_is_not_surfaced(db, clock, make_facility, add_admission_block):
    make_facility("plain")
    make_facility("signal")
    add_admission_block("signal", SIGNAL, _signal(2))

    plain = _score(db, clock, facility_id="plain")
    nudged = _score(db, clock, facility_id="signal")

    assert nudged["probability"] > plain["probability"]
    assert not any(c["type"] == "community_aggregate" for c in nudged["evidence"])


def test_community_aggregate_fallback(db, clock, make_facility, add_data_block):
    make_facility("fac-1")
    add_data_block("ca-1", "fac-1", features={"avg_sentiment": 0.4}, confidence=0.7, source_count=5)
    add_data_block("ca-2", "fac-1", features={"avg_sentiment": -1.0}, confidence=0.7, source_count=2)
    add_data_block("ca-3", "fac-1", features={"avg_sentiment": -1.0}, confidence=0.5, source_count=9)

    result = _score(db, clock)

    card = next(c for c in result["evidence"] if c["type"] == "community_aggregate")
    assert card["source_count"] == 5
    assert card["data_points"]["groups"] == 1
    assert card["data_points"]["avg_sentiment"] == pytest.approx(0.4)
    assert card["confidence"] == pytest.approx(0.55)
    assert "+0.40" in card["summary"]


def test_evidence_never_carries_free_text(db, clock, make_facility, add_data_block):
    make_facility("fac-1")
    add_data_block("ca-1", "fac-1", features={"avg_sentiment": 0.1, "quote": "staff were rude"})

    result = _score(db, clock)

    for card in result["evidence"]:
        assert "rude" not in card["summary"]
        assert "quote" not in card["data_points"]


def test_second_call_is_served_from_cache(db, clock, make_facility):
    make_facility("fac-1")
    first = _score(db, clock, position=10)

    clock.advance(hours=1)
    second = _score(db, clock, position=10)

    assert second == first
    assert db.query(AdmissionScoreCache).count() == 1


def test_cache_expires_after_ttl(db, clock, make_facility):
    make_facility("fac-1")
    first = _score(db, clock)

    clock.advance(hours=25)
    second = _score(db, clock)

    assert second["calculated_at"] != first["calculated_at"]
    assert db.query(AdmissionScoreCache).count() == 1


def test_engine_version_bump_misses_cache(db, clock, make_facility):
    from admission.services.scoring.tables import EngineConfig

    make_facility("fac-1")
    _score(db, clock)
    clock.advance(minutes=5)

    engine = AdmissionScoringEngine(db, config=EngineConfig(engine_version="v1.8.0"), clock=clock)
    result = engine.score("fac-1", "2", "general", 10)

    assert result["engine_version"] == "v1.8.0"
    assert result["calculated_at"] == clock.now().isoformat()
    assert db.query(AdmissionScoreCache).count() == 2


def test_cache_write_failure_is_not_fatal(db, clock, make_facility, monkeypatch):
    make_facility("fac-1")

    def failing_commit():
        raise OperationalError("INSERT INTO admission_score_cache", {}, Exception("read-only"))

    monkeypatch.setattr(db, "commit", failing_commit)
    result = _score(db, clock)

    _assert_valid(result)
    monkeypatch.undo()
    assert db.query(AdmissionScoreCache).count() == 0


def test_format_score_summary(db, clock, make_facility):
    from admission.services.scoring import format_score_summary

    make_facility("fac-1")
    result = _score(db, clock)

    text = format_score_summary(result)

    lines = text.splitlines()
    assert lines[0].startswith("Sunshine Daycare: admission probability within 6 months ")
    assert f"grade {result['grade']}" in lines[0]
    assert "Evidence:" in lines
    assert sum(1 for line in lines if line.startswith("- ")) == len(result["evidence"])
    assert lines[-1].startswith("Expected wait: ")
