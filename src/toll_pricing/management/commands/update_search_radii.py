from __future__ import annotations

from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from toll_pricing.models import TollPoint
from toll_pricing.services.search_radius import RadiusCandidate, apply_non_overlapping_radii


class Command(BaseCommand):
    help = "Recompute non-overlapping search radii for toll points."

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--default-radius-meters",
            type=float,
            default=float(settings.TOLL_SEARCH_DEFAULT_RADIUS_METERS),
            help="Radius given to every toll point before overlaps are removed",
        )
        parser.add_argument(
            "--state-code",
            type=str,
            default="",
            help="Only toll points of this pricing authority",
        )

    def handle(self, *_: Any, **options: Any) -> None:
        default_radius = options["default_radius_meters"]
        if default_radius <= 0:
            raise CommandError("--default-radius-meters must be positive")

        queryset = TollPoint.objects.all()
        if options["state_code"]:
            queryset = queryset.filter(authority__state_code=options["state_code"].strip().upper())
        tolls = {toll.id: toll for toll in queryset.only("id", "latitude", "longitude")}
        if not tolls:
            self.stdout.write(self.style.WARNING("No toll points to update"))
            return

        candidates = [
            RadiusCandidate(toll_id=toll.id, latitude=toll.latitude, longitude=toll.longitude)
            for toll in tolls.values()
        ]
        apply_non_overlapping_radii(candidates, default_radius)

        for candidate in candidates:
            tolls[candidate.toll_id].search_radius_meters = candidate.radius_meters
        with transaction.atomic():
            TollPoint.objects.bulk_update(
                list(tolls.values()), ["search_radius_meters"], batch_size=1000
            )

        self.stdout.write(
            self.style.SUCCESS(f"Updated search radii for {len(tolls)} toll points")
        )
