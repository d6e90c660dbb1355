from __future__ import annotations

from typing import Any

from django.core.management.base import BaseCommand, CommandError

from toll_pricing.models import PricingAuthority
from toll_pricing.services.authorities import find_duplicate_names


class Command(BaseCommand):
    help = "List toll names shared by several toll points of one pricing authority."

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument("--state-code", type=str, default="", help="Audit one authority only")

    def handle(self, *_: Any, **options: Any) -> None:
        authorities = PricingAuthority.objects.all()
        if options["state_code"]:
            authorities = authorities.filter(state_code=options["state_code"].strip().upper())
            if not authorities.exists():
                raise CommandError(f"Unknown authority: {options['state_code']}")

        flagged = 0
        for authority in authorities:
            duplicates = find_duplicate_names(authority.id)
            if not duplicates:
                continue
            flagged += 1
            for name, count in duplicates.items():
                self.stdout.write(
                    self.style.WARNING(f"{authority.state_code}: '{name}' used by {count} tolls")
                )

        if flagged:
            self.stdout.write(self.style.WARNING(f"{flagged} authorities have duplicate names"))
        else:
            self.stdout.write(self.style.SUCCESS("No duplicate toll names found"))
