from __future__ import annotations

from toll_pricing.models import TollPoint
from toll_pricing.services.geo import DistanceMetric, PlanarDegreeMetric, bounding_box_margins
from toll_pricing.services.types import GeoPoint

# Keeps boundary points inside the ORM prefilter despite float rounding
_PREFILTER_PADDING = 1.01


class SpatialMatcher:
    def __init__(self, metric: DistanceMetric | None = None) -> None:
        self.metric = metric or PlanarDegreeMetric()

    def find_within_radius(self, point: GeoPoint, radius_meters: float) -> list[TollPoint]:
        if radius_meters < 0:
            return []

        lat_margin, lon_margin = bounding_box_margins(
            radius_meters * _PREFILTER_PADDING, point.latitude
        )
        candidates = TollPoint.objects.filter(
            latitude__gte=point.latitude - lat_margin,
            latitude__lte=point.latitude + lat_margin,
            longitude__gte=point.longitude - lon_margin,
            longitude__lte=point.longitude + lon_margin,
        )

        threshold = self.metric.radius(radius_meters)
        matches: list[tuple[float, int, TollPoint]] = []
        for toll in candidates.iterator(chunk_size=500):
            distance = self.metric.distance(point, toll.location)
            if distance <= threshold:
                matches.append((distance, toll.id, toll))

        matches.sort(key=lambda match: (match[0], match[1]))
        return [toll for _, _, toll in matches]
