from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from toll_pricing.models import PriceMatrixCell, TollPoint
from toll_pricing.services.types import (
    ZERO,
    IndependentPricing,
    MatrixPricing,
    MatrixRate,
    RouteTollDetection,
    RoutePricingResult,
    TollCharge,
)

logger = logging.getLogger(__name__)


class MatrixIndex:
    """Entry/exit rates keyed by authority and toll display names."""

    def __init__(self) -> None:
        self._rates: dict[tuple[int, str, str], MatrixRate] = {}

    def add(self, authority_id: int, from_name: str, to_name: str, rate: MatrixRate) -> None:
        self._rates.setdefault((authority_id, from_name, to_name), rate)

    def lookup(self, authority_id: int, from_name: str, to_name: str) -> MatrixRate | None:
        return self._rates.get((authority_id, from_name, to_name))

    def __len__(self) -> int:
        return len(self._rates)

    @classmethod
    def from_cells(cls, cells: Iterable[PriceMatrixCell]) -> MatrixIndex:
        index = cls()
        for cell in cells:
            index.add(
                cell.authority_id,
                cell.from_toll.name,
                cell.to_toll.name,
                MatrixRate(electronic_pass=cell.electronic_pass_rate, cash=cell.cash_rate),
            )
        return index


class RoutePricer:
    """Turns the toll points detected along a route into charges.

    Detections are scanned once, in the order given (callers sort by
    distance). Matrix-priced tolls are paired with the farthest later toll of
    the same authority and both names are consumed; independent tolls are
    charged from their own rates every time they are seen.
    """

    def price(
        self, detections: Sequence[RouteTollDetection], matrix: MatrixIndex
    ) -> list[TollCharge]:
        charges: list[TollCharge] = []
        used_names: set[str] = set()
        last_emitted_distance = 0.0

        for index, detection in enumerate(detections):
            toll = detection.toll
            if _is_used(toll.name, used_names):
                continue
            if detection.distance_meters < last_emitted_distance:
                continue

            pricing = toll.pricing
            if isinstance(pricing, IndependentPricing):
                charges.append(_independent_charge(detection))
                continue

            exit_detection = self._find_exit(detections, index, pricing, used_names)
            if exit_detection is None:
                # Entry stays unused so a later detection can still pair with it
                continue

            rate = matrix.lookup(pricing.authority_id, toll.name, exit_detection.toll.name)
            if rate is None:
                charges.append(_unpriced_charge(exit_detection))
                _mark_used(toll.name, used_names)
                continue

            charges.append(
                TollCharge(
                    toll_id=exit_detection.toll.toll_id,
                    toll_name=exit_detection.toll.name,
                    distance_meters=exit_detection.distance_meters,
                    kind="matrix",
                    electronic_pass_rate=rate.electronic_pass,
                    cash_rate=rate.cash,
                )
            )
            _mark_used(toll.name, used_names)
            _mark_used(exit_detection.toll.name, used_names)
            last_emitted_distance = exit_detection.distance_meters

        return charges

    @staticmethod
    def _find_exit(
        detections: Sequence[RouteTollDetection],
        entry_index: int,
        pricing: MatrixPricing,
        used_names: set[str],
    ) -> RouteTollDetection | None:
        entry = detections[entry_index]
        entry_key = _name_key(entry.toll.name)
        best: RouteTollDetection | None = None

        for candidate in detections[entry_index + 1 :]:
            if candidate.distance_meters <= entry.distance_meters:
                continue
            if candidate.toll.pricing != pricing:
                continue
            candidate_key = _name_key(candidate.toll.name)
            if not candidate_key or candidate_key in used_names or candidate_key == entry_key:
                continue
            if best is None or candidate.distance_meters > best.distance_meters:
                best = candidate

        return best


class RoutePricingService:
    def __init__(self, pricer: RoutePricer | None = None) -> None:
        self.pricer = pricer or RoutePricer()

    def price_route(self, detections: Sequence[tuple[int, float]]) -> RoutePricingResult:
        toll_ids = {toll_id for toll_id, _ in detections}
        tolls = {toll.id: toll for toll in TollPoint.objects.filter(id__in=toll_ids)}

        errors: list[str] = []
        route: list[RouteTollDetection] = []
        for toll_id, distance in detections:
            toll = tolls.get(toll_id)
            if toll is None:
                errors.append(f"Toll {toll_id} not found")
                continue
            route.append(RouteTollDetection(toll=toll.to_priced_toll(), distance_meters=distance))
        route.sort(key=lambda detection: detection.distance_meters)

        authority_ids = {
            toll.authority_id for toll in tolls.values() if toll.authority_id is not None
        }
        cells = (
            PriceMatrixCell.objects.filter(authority_id__in=authority_ids)
            .select_related("from_toll", "to_toll")
            .order_by("id")
        )
        matrix = MatrixIndex.from_cells(cells) if authority_ids else MatrixIndex()

        charges = self.pricer.price(route, matrix)
        logger.info(
            "route_priced",
            extra={
                "detections": len(detections),
                "charges": len(charges),
                "matrix_cells": len(matrix),
                "errors": len(errors),
            },
        )
        return RoutePricingResult(charges=charges, errors=errors)


def _name_key(name: str) -> str:
    return name.strip().casefold()


def _is_used(name: str, used_names: set[str]) -> bool:
    key = _name_key(name)
    return bool(key) and key in used_names


def _mark_used(name: str, used_names: set[str]) -> None:
    key = _name_key(name)
    if key:
        used_names.add(key)


def _independent_charge(detection: RouteTollDetection) -> TollCharge:
    toll = detection.toll
    return TollCharge(
        toll_id=toll.toll_id,
        toll_name=toll.name,
        distance_meters=detection.distance_meters,
        kind="independent",
        electronic_pass_rate=toll.rates.electronic_pass,
        cash_rate=toll.rates.cash,
        overnight_electronic_pass_rate=toll.rates.overnight_electronic_pass,
        overnight_cash_rate=toll.rates.overnight_cash,
    )


def _unpriced_charge(detection: RouteTollDetection) -> TollCharge:
    return TollCharge(
        toll_id=detection.toll.toll_id,
        toll_name=detection.toll.name,
        distance_meters=detection.distance_meters,
        kind="unpriced",
        electronic_pass_rate=ZERO,
        cash_rate=ZERO,
    )
