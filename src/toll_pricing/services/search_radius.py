from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from toll_pricing.services.geo import haversine_meters, is_valid_coordinate

CLEARANCE_METERS = 0.1
COORDINATE_ROUND_DIGITS = 7
RESPREAD_BELOW_METERS = 2.0


@dataclass(slots=True)
class RadiusCandidate:
    toll_id: int
    latitude: float | None
    longitude: float | None
    radius_meters: float = 0.0

    @property
    def has_location(self) -> bool:
        return (
            self.latitude is not None
            and self.longitude is not None
            and is_valid_coordinate(self.latitude, self.longitude)
        )


def apply_non_overlapping_radii(
    candidates: list[RadiusCandidate],
    default_radius_meters: float = 500.0,
    *,
    respread: bool = True,
) -> None:
    """Assign each toll point a search radius that does not overlap its neighbours.

    Points sharing a coordinate are treated as one point and share the result.
    Points squeezed below two meters get a second pass among themselves.
    """
    if not candidates:
        return

    ordered = sorted(candidates, key=lambda candidate: candidate.toll_id)
    groups: dict[tuple[float, float], list[RadiusCandidate]] = defaultdict(list)
    for candidate in ordered:
        if candidate.has_location:
            candidate.radius_meters = default_radius_meters
            groups[_location_key(candidate)].append(candidate)
        else:
            candidate.radius_meters = 0.0

    unique = [group[0] for group in groups.values()]
    for i, first in enumerate(unique):
        if first.radius_meters <= 0:
            continue
        for second in unique[i + 1 :]:
            if second.radius_meters <= 0:
                continue
            distance = haversine_meters(
                first.latitude, first.longitude, second.latitude, second.longitude
            )
            _reduce_pair(first, second, max(0.0, distance - CLEARANCE_METERS))

    for group in groups.values():
        for candidate in group[1:]:
            candidate.radius_meters = group[0].radius_meters

    if respread:
        squeezed = [
            candidate
            for candidate in ordered
            if candidate.has_location and candidate.radius_meters < RESPREAD_BELOW_METERS
        ]
        apply_non_overlapping_radii(squeezed, default_radius_meters, respread=False)


def _location_key(candidate: RadiusCandidate) -> tuple[float, float]:
    return (
        round(candidate.latitude, COORDINATE_ROUND_DIGITS),
        round(candidate.longitude, COORDINATE_ROUND_DIGITS),
    )


def _reduce_pair(first: RadiusCandidate, second: RadiusCandidate, allowed_sum: float) -> None:
    excess = first.radius_meters + second.radius_meters - allowed_sum
    if excess <= 0:
        return

    half = excess / 2.0
    reduce_first = min(half, first.radius_meters)
    reduce_second = min(half, second.radius_meters)
    first.radius_meters -= reduce_first
    second.radius_meters -= reduce_second

    remaining = excess - (reduce_first + reduce_second)
    if remaining > 0 and first.radius_meters > 0:
        take = min(remaining, first.radius_meters)
        first.radius_meters -= take
        remaining -= take
    if remaining > 0 and second.radius_meters > 0:
        second.radius_meters -= min(remaining, second.radius_meters)
