from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from toll_pricing.exceptions import BatchDecodeError, ExternalServiceError
from toll_pricing.services.sources import JsonSourceClient
from toll_pricing.services.zone_rates import ZoneRateCalculator, decode_zone_matrix_request


class Command(BaseCommand):
    help = "Expand a published zone rate table into an entry/exit price matrix."

    def add_arguments(self, parser: Any) -> None:
        source = parser.add_mutually_exclusive_group(required=True)
        source.add_argument("--json-path", type=str, help="Path to the zone rate JSON document")
        source.add_argument("--url", type=str, help="URL of the zone rate JSON document")
        parser.add_argument(
            "--retries",
            type=int,
            default=settings.SOURCE_RETRY_COUNT,
            help="Extra attempts when the --url request fails",
        )
        parser.add_argument("--state-code", type=str, required=True, help="Authority state code")
        parser.add_argument(
            "--authority-name",
            type=str,
            required=True,
            help="Authority name, used when the authority does not exist yet",
        )

    def handle(self, *_: Any, **options: Any) -> None:
        try:
            payload = self._load_payload(options)
            request = decode_zone_matrix_request(payload)
        except (BatchDecodeError, ExternalServiceError) as exc:
            raise CommandError(str(exc)) from exc

        try:
            result = ZoneRateCalculator().expand(
                options["state_code"], options["authority_name"], request
            )
        except ValueError as exc:
            raise CommandError(str(exc)) from exc

        for error in result.errors:
            self.stderr.write(error)
        self.stdout.write(
            self.style.SUCCESS(
                f"Zone matrix for authority {result.authority_id}: "
                f"{result.created_cells} created, {result.updated_cells} updated, "
                f"{len(result.errors)} errors"
            )
        )

    @staticmethod
    def _load_payload(options: dict[str, Any]) -> Any:
        if options["url"]:
            return JsonSourceClient(retry_count=options["retries"]).fetch(options["url"])

        json_path = Path(options["json_path"])
        if not json_path.exists():
            raise CommandError(f"JSON file does not exist: {json_path}")
        try:
            return json.loads(json_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise BatchDecodeError(f"Invalid JSON in {json_path}: {exc.msg}") from exc
