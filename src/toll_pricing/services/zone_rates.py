"""Expansion of a per-zone transponder rate table into an entry/exit price matrix.

Distance-based authorities publish one rate per zone segment. The trip price
between two plazas is the sum of the zones between them, so the whole
origin/destination matrix can be materialised ahead of time and looked up by
the route pricer.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.db import transaction
from django.db.models import Q
from pydantic import ValidationError

from toll_pricing.exceptions import BatchDecodeError, UnresolvedReferenceError
from toll_pricing.models import PriceMatrixCell, PricingAuthority, TollPoint
from toll_pricing.schemas import BoundsIn, ZoneMatrixRequest
from toll_pricing.services.authorities import find_duplicate_names, get_or_create_authority
from toll_pricing.services.types import (
    ZERO,
    MatrixExpansionResult,
    PlazaEndpoint,
    ZoneRate,
    ZoneTotals,
)

logger = logging.getLogger(__name__)

PRICED_AXLES = 5
CENT = Decimal("0.01")
CASH_MULTIPLIER = Decimal("2")

# Charged only when the plaza itself is the entry or the exit
ENDPOINT_ONLY_ZONES = frozenset({183})
# Charged when the zone is an endpoint or both endpoints sit at or above it
SAME_SIDE_ZONES = frozenset({50, 202})


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def zone_applies(zone_code: int, entry_value: int, exit_value: int) -> bool:
    if zone_code in ENDPOINT_ONLY_ZONES:
        return zone_code in (entry_value, exit_value)
    if zone_code in SAME_SIDE_ZONES:
        return zone_code in (entry_value, exit_value) or (
            entry_value >= zone_code and exit_value >= zone_code
        )
    return True


def calculate_zone_totals(
    entry: PlazaEndpoint,
    exit_: PlazaEndpoint,
    axles: int,
    zone_rows: Sequence[ZoneRate],
) -> ZoneTotals:
    if axles != PRICED_AXLES:
        return ZoneTotals(transponder=ZERO, cash=ZERO)

    low = min(entry.value, exit_.value)
    high = max(entry.value, exit_.value)
    selected = [
        zone
        for zone in zone_rows
        if zone.axles == axles
        and low <= zone.zone_code <= high
        and zone_applies(zone.zone_code, entry.value, exit_.value)
    ]

    transponder = round_money(sum((zone.transponder_rate for zone in selected), ZERO))
    cash = round_money(transponder * CASH_MULTIPLIER)
    return ZoneTotals(transponder=transponder, cash=cash)


def decode_zone_matrix_request(payload: Any) -> ZoneMatrixRequest:
    try:
        return ZoneMatrixRequest.model_validate(payload)
    except ValidationError as exc:
        raise BatchDecodeError(f"Invalid zone matrix payload: {exc.error_count()} errors") from exc


class ZoneRateCalculator:
    def expand(
        self,
        state_code: str,
        authority_name: str,
        request: ZoneMatrixRequest,
    ) -> MatrixExpansionResult:
        authority = get_or_create_authority(state_code, authority_name)
        result = MatrixExpansionResult(authority_id=authority.id)

        zone_rows = [
            ZoneRate(
                zone_code=row.zone_code, axles=row.axles, transponder_rate=row.transponder_rate
            )
            for row in request.zone_rows
        ]
        plazas = [PlazaEndpoint(value=plaza.value, name=plaza.name) for plaza in request.plazas]
        axle_classes = [vehicle_class.axles for vehicle_class in request.vehicle_classes]

        tolls = self._load_tolls(plazas, authority, request.bounds)
        tolls_by_number: dict[str, TollPoint] = {}
        for toll in tolls:
            tolls_by_number.setdefault(toll.number, toll)
        relinked = [toll for toll in tolls_by_number.values() if toll.authority_id is None]
        for toll in relinked:
            toll.authority = authority

        cells = {
            (cell.from_toll_id, cell.to_toll_id): cell
            for cell in PriceMatrixCell.objects.filter(authority=authority)
        }
        to_create: list[PriceMatrixCell] = []
        to_update: dict[int, PriceMatrixCell] = {}

        for entry in plazas:
            for exit_ in plazas:
                if entry.value == exit_.value:
                    continue
                for axles in axle_classes:
                    try:
                        totals = calculate_zone_totals(entry, exit_, axles, zone_rows)
                        if totals.is_free:
                            continue
                        from_toll = self._resolve(tolls_by_number, entry, "From")
                        to_toll = self._resolve(tolls_by_number, exit_, "To")
                    except UnresolvedReferenceError as exc:
                        result.errors.append(str(exc))
                        continue
                    except Exception as exc:
                        result.errors.append(
                            f"Error processing plaza pair {entry.value} -> {exit_.value}: {exc}"
                        )
                        logger.exception(
                            "zone_pair_failed",
                            extra={"entry_value": entry.value, "exit_value": exit_.value},
                        )
                        continue

                    cell = cells.get((from_toll.id, to_toll.id))
                    if cell is None:
                        cell = PriceMatrixCell(
                            authority=authority,
                            from_toll=from_toll,
                            to_toll=to_toll,
                            electronic_pass_rate=totals.transponder,
                            cash_rate=totals.cash,
                        )
                        cells[(from_toll.id, to_toll.id)] = cell
                        to_create.append(cell)
                        result.created_cells += 1
                        continue

                    cell.electronic_pass_rate = totals.transponder
                    cell.cash_rate = totals.cash
                    if cell.pk is not None:
                        to_update[cell.pk] = cell
                    result.updated_cells += 1

        with transaction.atomic():
            if relinked:
                TollPoint.objects.bulk_update(relinked, ["authority"], batch_size=1000)
            if to_create:
                PriceMatrixCell.objects.bulk_create(to_create, batch_size=1000)
            if to_update:
                PriceMatrixCell.objects.bulk_update(
                    list(to_update.values()),
                    ["electronic_pass_rate", "cash_rate"],
                    batch_size=1000,
                )

        self._warn_duplicate_names(authority)
        logger.info(
            "zone_matrix_expanded",
            extra={
                "authority": authority.state_code,
                "created_cells": result.created_cells,
                "updated_cells": result.updated_cells,
                "errors": len(result.errors),
            },
        )
        return result

    @staticmethod
    def _load_tolls(
        plazas: list[PlazaEndpoint], authority: PricingAuthority, bounds: BoundsIn | None
    ) -> list[TollPoint]:
        """Toll points a plaza value may resolve to.

        Without bounds only points already linked to the authority qualify.
        Within bounds, unlinked points qualify too; points of another
        authority never do.
        """
        numbers = sorted({str(plaza.value) for plaza in plazas})
        queryset = TollPoint.objects.filter(number__in=numbers)
        if bounds is None:
            queryset = queryset.filter(authority=authority)
        else:
            queryset = queryset.filter(
                Q(authority=authority) | Q(authority__isnull=True),
                latitude__gte=bounds.min_latitude,
                latitude__lte=bounds.max_latitude,
                longitude__gte=bounds.min_longitude,
                longitude__lte=bounds.max_longitude,
            )
        # Points already linked to the authority win over unlinked ones
        return sorted(queryset, key=lambda toll: (toll.authority_id is None, toll.id))

    @staticmethod
    def _resolve(
        tolls_by_number: dict[str, TollPoint], plaza: PlazaEndpoint, side: str
    ) -> TollPoint:
        toll = tolls_by_number.get(str(plaza.value))
        if toll is None:
            raise UnresolvedReferenceError(f"{side} toll not found for plaza value {plaza.value}")
        return toll

    @staticmethod
    def _warn_duplicate_names(authority: PricingAuthority) -> None:
        duplicates = find_duplicate_names(authority.id)
        if duplicates:
            logger.warning(
                "authority_duplicate_toll_names",
                extra={"authority": authority.state_code, "names": sorted(duplicates)},
            )
