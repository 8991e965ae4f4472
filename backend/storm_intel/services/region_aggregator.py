"""Regional roll-up of scored heatmap points.

Points are grouped by their composed location label. Ranking is by total
damage, descending, with the region label as a deterministic tie-break.
"""

import logging

from storm_intel.schemas.heatmap import HeatmapPoint, RegionSummary
from storm_intel.services.intensity import round2

logger = logging.getLogger(__name__)

TOP_REGIONS = 10


class _RegionAccumulator:
    __slots__ = ("region", "event_count", "intensity_sum", "total_customers", "total_damage")

    def __init__(self, region: str):
        self.region = region
        self.event_count = 0
        self.intensity_sum = 0.0
        self.total_customers = 0
        self.total_damage = 0.0

    def add(self, point: HeatmapPoint):
        meta = point.metadata
        self.event_count += 1
        self.intensity_sum += point.intensity
        self.total_customers += meta.affected_customers
        self.total_damage += meta.estimated_damage if meta.estimated_damage is not None else 0.0

    def summary(self) -> RegionSummary:
        return RegionSummary(
            region=self.region,
            event_count=self.event_count,
            avg_intensity=round2(self.intensity_sum / self.event_count),
            total_customers=self.total_customers,
            total_damage=self.total_damage,
        )


def group_by_region(points: list[HeatmapPoint]) -> list[RegionSummary]:
    """One summary per location label, in first-seen order."""
    groups: dict[str, _RegionAccumulator] = {}
    for p in points:
        label = p.metadata.location or "Unknown"
        acc = groups.get(label)
        if acc is None:
            acc = groups[label] = _RegionAccumulator(label)
        acc.add(p)
    return [acc.summary() for acc in groups.values()]


def rank_regions(summaries: list[RegionSummary], limit: int = TOP_REGIONS) -> list[RegionSummary]:
    ranked = sorted(summaries, key=lambda r: (-r.total_damage, r.region))
    return ranked[:limit]


def top_regions(points: list[HeatmapPoint], limit: int = TOP_REGIONS) -> list[RegionSummary]:
    summaries = group_by_region(points)
    logger.debug("Aggregated %d points into %d regions", len(points), len(summaries))
    return rank_regions(summaries, limit)


def average_intensity(points: list[HeatmapPoint]) -> float:
    if not points:
        return 0.0
    return round2(sum(p.intensity for p in points) / len(points))
