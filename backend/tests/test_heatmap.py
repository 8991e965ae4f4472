from datetime import timedelta

from storm_intel.services import heatmap
from conftest import NOW, make_event


def test_min_severity_excludes_lower_events(db):
    make_event(db, severity="minor", city="Reading")
    make_event(db, severity="moderate", city="Allentown")
    make_event(db, severity="severe", city="Scranton")
    make_event(db, severity="catastrophic", city="Erie")

    result = heatmap.get_heatmap(db, months=6, min_severity="severe", now=NOW)

    severities = {p.metadata.severity for p in result.points}
    assert severities == {"severe", "catastrophic"}
    assert result.summary.total_events == 2


def test_events_outside_window_are_not_scored(db):
    make_event(db, event_date=NOW - timedelta(days=10))
    make_event(db, event_date=NOW - timedelta(days=200))

    result = heatmap.get_heatmap(db, months=6, min_severity="minor", now=NOW)
    assert result.summary.total_events == 1
    assert result.summary.date_range.start == NOW - timedelta(days=180)


def test_unlocated_events_dropped_from_points_and_regions(db):
    make_event(db, estimated_damage=1000)
    make_event(db, latitude=None, longitude=None, city="Nowhere", estimated_damage=99_999)

    result = heatmap.get_heatmap(db, months=6, min_severity="minor", now=NOW)
    assert len(result.points) == 1
    assert [r.region for r in result.summary.top_regions] == ["Philadelphia, Philadelphia, PA"]


def test_empty_store(db):
    result = heatmap.get_heatmap(db, months=3, min_severity="minor", now=NOW)
    assert result.points == []
    assert result.summary.avg_intensity == 0.0
    assert result.summary.top_regions == []


def test_severity_filter_ignores_stored_case(db):
    make_event(db, severity="Severe", city="Scranton")
    make_event(db, severity=" MINOR", city="Reading")

    everything = heatmap.get_heatmap(db, months=6, min_severity="minor", now=NOW)
    severe_up = heatmap.get_heatmap(db, months=6, min_severity="severe", now=NOW)

    assert everything.summary.total_events == 2
    assert [p.metadata.severity for p in severe_up.points] == ["Severe"]
