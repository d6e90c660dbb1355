from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.db import transaction
from pydantic import ValidationError

from toll_pricing.exceptions import BatchDecodeError, InvalidCoordinateError
from toll_pricing.models import TollPoint
from toll_pricing.schemas import PlazaRecord
from toll_pricing.services.geo import is_valid_coordinate
from toll_pricing.services.spatial import SpatialMatcher
from toll_pricing.services.types import GeoPoint, ImportResult

logger = logging.getLogger(__name__)


class TollPointImporter:
    """Merges scraped plaza records into the toll registry.

    Every existing toll point within the radius takes the incoming name and
    number; a record with no nearby point creates a new one with zero prices.
    """

    def __init__(
        self,
        radius_meters: float | None = None,
        matcher: SpatialMatcher | None = None,
    ) -> None:
        self.radius_meters = (
            float(settings.TOLL_MATCH_RADIUS_METERS) if radius_meters is None else radius_meters
        )
        self.matcher = matcher or SpatialMatcher()

    def import_records(self, records: Iterable[Any]) -> ImportResult:
        result = ImportResult()
        to_create: list[TollPoint] = []
        to_update: dict[int, TollPoint] = {}

        try:
            for raw in records:
                try:
                    record = self._decode(raw)
                    matches = self.matcher.find_within_radius(
                        GeoPoint(latitude=record.latitude, longitude=record.longitude),
                        self.radius_meters,
                    )
                    if matches:
                        for toll in matches:
                            toll = to_update.get(toll.id, toll)
                            if self._apply(toll, record):
                                to_update[toll.id] = toll
                                result.updated += 1
                    else:
                        to_create.append(self._new_toll(record))
                        result.created += 1
                except (ValidationError, InvalidCoordinateError) as exc:
                    result.errors.append(f"Error processing toll {_record_name(raw)}: {exc}")
                except Exception as exc:
                    result.errors.append(f"Error processing toll {_record_name(raw)}: {exc}")
                    logger.exception(
                        "toll_record_failed", extra={"toll_name": _record_name(raw)}
                    )
                result.processed += 1
        except BatchDecodeError as exc:
            result.errors.append(f"Error processing data: {exc}")
            logger.warning("toll_import_aborted", extra={"processed_records": result.processed})

        self._flush(to_create, list(to_update.values()))
        logger.info(
            "toll_import_completed",
            extra={
                "processed_records": result.processed,
                "updated_tolls": result.updated,
                "created_tolls": result.created,
                "error_count": len(result.errors),
            },
        )
        return result

    @staticmethod
    def _decode(raw: Any) -> PlazaRecord:
        record = raw if isinstance(raw, PlazaRecord) else PlazaRecord.model_validate(raw)
        if not is_valid_coordinate(record.latitude, record.longitude):
            raise InvalidCoordinateError(
                f"Coordinate out of range: ({record.latitude}, {record.longitude})"
            )
        return record

    @staticmethod
    def _apply(toll: TollPoint, record: PlazaRecord) -> bool:
        changed = False
        if record.display_number and toll.number != record.display_number:
            toll.number = record.display_number
            changed = True
        if record.name and toll.name != record.name:
            toll.name = record.name
            changed = True
        if record.name and toll.key != record.name:
            toll.key = record.name
            changed = True
        return changed

    @staticmethod
    def _new_toll(record: PlazaRecord) -> TollPoint:
        return TollPoint(
            name=record.name,
            key=record.name,
            number=record.display_number or "",
            latitude=record.latitude,
            longitude=record.longitude,
            price=Decimal("0"),
        )

    @staticmethod
    def _flush(to_create: list[TollPoint], to_update: list[TollPoint]) -> None:
        if not to_create and not to_update:
            return
        with transaction.atomic():
            if to_create:
                TollPoint.objects.bulk_create(to_create, batch_size=1000)
            if to_update:
                TollPoint.objects.bulk_update(
                    to_update, ["name", "key", "number"], batch_size=1000
                )


def _record_name(raw: Any) -> str:
    if isinstance(raw, PlazaRecord):
        return raw.name or "unknown"
    if isinstance(raw, dict):
        return str(raw.get("name") or "unknown")
    return "unknown"
