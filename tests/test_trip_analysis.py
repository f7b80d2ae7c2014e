from datetime import timedelta

import pytest
from sqlalchemy import func, select

from conftest import at, sample

from src.Core.exceptions import ValidationError
from src.Models.trip import VehicleTrip
from src.Models.trip_analytics import HarshEvent
from src.Repositories.position import append_position
from src.Repositories.trip import get_analytics_for_trip
from src.Services.harsh_event_analyzer import HarshEventAnalyzer
from src.Services.pipelines import analyze_trips


def _trip(db, start, end):
    trip = VehicleTrip(
        device_id="DEV-1", source="position_history",
        start_time=start, end_time=end,
        start_latitude=6.5, start_longitude=3.35,
        end_latitude=6.6, end_longitude=3.4,
        distance_km=5.0, duration_seconds=int((end - start).total_seconds()),
    )
    db.add(trip)
    db.flush()
    return trip


@pytest.fixture
def trips(db, devices):
    """A clean 45-minute trip and a short one with two brakes and a sharp turn."""
    clean = _trip(db, at(0), at(45))
    rough_start = at(60)
    rough = _trip(db, rough_start, rough_start + timedelta(seconds=3))

    samples = [
        sample(0, 6.5, 3.35, speed=50.0),
        sample(0.5, 6.5, 3.35, speed=52.0),
    ]
    for offset, speed, heading in ((0, 80.0, 0), (1, 60.0, 0), (2, 40.0, 0), (3, 40.0, 90)):
        samples.append(sample(0, 6.5, 3.35, speed=speed, heading=heading,
                              gps_time=rough_start + timedelta(seconds=offset)))
    for item in samples:
        append_position(db, item)
    db.commit()
    return clean, rough


def _events(db):
    return db.execute(select(func.count()).select_from(HarshEvent)).scalar_one()


def test_pending_trips_are_scored(db, trips):
    clean, rough = trips

    summary = analyze_trips(db)

    assert summary.trips_analyzed == 2
    assert summary.harsh_events == 3
    assert summary.average_score == 96.0
    assert get_analytics_for_trip(db, clean.id).driver_score == 100

    analytics = get_analytics_for_trip(db, rough.id)
    assert analytics.driver_score == 92
    assert (analytics.harsh_braking_count, analytics.harsh_cornering_count) == (2, 1)
    assert _events(db) == 3


def test_analyzed_trips_are_not_picked_up_again(db, trips):
    analyze_trips(db)
    again = analyze_trips(db)
    assert again.trips_analyzed == 0
    assert again.average_score is None


def test_force_replaces_previous_analysis(db, trips):
    _, rough = trips
    analyze_trips(db)

    skipped = analyze_trips(db, trip_ids=[rough.id])
    forced = analyze_trips(db, trip_ids=[rough.id], force=True)

    assert skipped.trips_analyzed == 0
    assert forced.trips_analyzed == 1
    assert _events(db) == 3


def test_unknown_trip_is_reported(db, trips):
    summary = analyze_trips(db, trip_ids=[999])
    assert summary.errors == 1
    assert summary.first_error == "trip 999 not found"


def test_empty_trip_list_rejected(db):
    with pytest.raises(ValidationError):
        analyze_trips(db, trip_ids=[])


def test_narrator_text_is_stored(db, trips):
    clean, _ = trips
    analyze_trips(db, analyzer=HarshEventAnalyzer(narrator=lambda counts, score: "Smooth ride"))
    assert get_analytics_for_trip(db, clean.id).summary_text == "Smooth ride"
