from conftest import at, sample

from src.Schemas.trip_analytics import HarshEventCounts
from src.Services.harsh_event_analyzer import HarshEventAnalyzer, fallback_summary


def _seconds(offset_s, speed, heading=None):
    return sample(offset_s / 60, 6.5, 3.35, speed=speed, heading=heading)


class TestDetection:

    def test_braking_threshold_is_strict(self):
        analyzer = HarshEventAnalyzer()
        exactly = analyzer.detect_events([_seconds(0, 50.0), _seconds(1, 40.0)])
        beyond = analyzer.detect_events([_seconds(0, 50.0), _seconds(1, 39.99)])

        assert exactly == []
        assert [e.event_type for e in beyond] == ["harsh_braking"]

    def test_acceleration(self):
        events = HarshEventAnalyzer().detect_events([_seconds(0, 20.0), _seconds(2, 45.0)])
        assert [e.event_type for e in events] == ["harsh_acceleration"]
        assert events[0].magnitude == 12.5

    def test_cornering_needs_speed(self):
        analyzer = HarshEventAnalyzer()
        fast = analyzer.detect_events([_seconds(0, 40.0, heading=0), _seconds(1, 40.0, heading=60)])
        slow = analyzer.detect_events([_seconds(0, 10.0, heading=0), _seconds(1, 10.0, heading=60)])

        assert [e.event_type for e in fast] == ["harsh_cornering"]
        assert slow == []

    def test_heading_wraps_around_north(self):
        events = HarshEventAnalyzer().detect_events([_seconds(0, 40.0, heading=350), _seconds(1, 40.0, heading=10)])
        assert events == []

    def test_wide_gaps_ignored(self):
        events = HarshEventAnalyzer().detect_events([_seconds(0, 90.0), _seconds(120, 0.0)])
        assert events == []


class TestScore:

    def test_two_braking_one_cornering(self):
        counts = HarshEventCounts(harsh_braking=2, harsh_cornering=1)
        assert HarshEventAnalyzer().score(counts, 600) == 92

    def test_clean_long_trip_capped(self):
        result = HarshEventAnalyzer().analyze(
            [_seconds(0, 50.0), _seconds(30, 52.0)],
            start_time=at(0),
            end_time=at(45),
        )
        assert result.driver_score == 100
        assert result.counts.total == 0

    def test_floor_at_zero(self):
        assert HarshEventAnalyzer().score(HarshEventCounts(harsh_braking=40), 60) == 0


class TestSummary:

    def test_narrator_used(self):
        analyzer = HarshEventAnalyzer(narrator=lambda counts, score: f"Score {score}")
        assert analyzer.summarize(HarshEventCounts(), 100) == "Score 100"

    def test_failing_narrator_falls_back(self):
        def broken(counts, score):
            raise RuntimeError("model offline")

        text = HarshEventAnalyzer(narrator=broken).summarize(HarshEventCounts(harsh_braking=1), 97)
        assert text == fallback_summary(HarshEventCounts(harsh_braking=1), 97)

    def test_templates(self):
        assert "Excellent" in fallback_summary(HarshEventCounts(), 100)
        assert "Good driving" in fallback_summary(HarshEventCounts(harsh_braking=2), 94)
        assert "needs improvement" in fallback_summary(HarshEventCounts(harsh_braking=8), 76)
