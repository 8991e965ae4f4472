from datetime import datetime, timezone

import pytest

from storm_intel.schemas.heatmap import EventMetadata, HeatmapPoint
from storm_intel.services import region_aggregator


def _point(location: str, intensity: float, damage: float | None = 0.0, customers: int = 0) -> HeatmapPoint:
    return HeatmapPoint(
        lat=40.0,
        lng=-75.0,
        intensity=intensity,
        metadata=EventMetadata(
            id=f"{location}-{intensity}-{damage}",
            type="hail",
            date=datetime(2025, 6, 1, tzinfo=timezone.utc),
            severity="moderate",
            location=location,
            affected_customers=customers,
            estimated_damage=damage,
        ),
    )


def test_region_totals_are_sums():
    points = [
        _point("Dover, Kent, DE", 0.4, 10_000, 3),
        _point("Dover, Kent, DE", 0.6, 25_000, 7),
        _point("Dover, Kent, DE", 0.9, None, 1),
        _point("Camden, Camden, NJ", 0.3, 5_000, 2),
    ]
    regions = {r.region: r for r in region_aggregator.group_by_region(points)}

    dover = regions["Dover, Kent, DE"]
    assert dover.event_count == 3
    assert dover.total_damage == 35_000
    assert dover.total_customers == 11
    assert dover.avg_intensity == pytest.approx((0.4 + 0.6 + 0.9) / 3, abs=0.005)
    assert regions["Camden, Camden, NJ"].event_count == 1


def test_top_ten_by_damage_descending():
    points = [_point(f"Region {i:02d}", 0.5, damage=i * 1000) for i in range(12)]
    top = region_aggregator.top_regions(points)

    assert len(top) == 10
    damages = [r.total_damage for r in top]
    assert damages == sorted(damages, reverse=True)
    kept = {r.region for r in top}
    assert "Region 00" not in kept
    assert "Region 01" not in kept


def test_equal_damage_breaks_ties_by_label():
    points = [_point("Zelienople, PA", 0.5, 1000), _point("Altoona, PA", 0.5, 1000), _point("Erie, PA", 0.5, 2000)]
    assert [r.region for r in region_aggregator.top_regions(points)] == [
        "Erie, PA", "Altoona, PA", "Zelienople, PA",
    ]


def test_limit_is_configurable():
    points = [_point(f"R{i}", 0.5, damage=i) for i in range(5)]
    assert len(region_aggregator.top_regions(points, limit=3)) == 3


def test_average_intensity():
    assert region_aggregator.average_intensity([]) == 0.0
    assert region_aggregator.average_intensity([_point("A", 0.2), _point("B", 0.4)]) == pytest.approx(0.3)
