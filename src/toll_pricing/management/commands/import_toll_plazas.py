from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import polars as pl
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from toll_pricing.exceptions import BatchDecodeError, ExternalServiceError
from toll_pricing.services.ingestion import TollPointImporter
from toll_pricing.services.sources import JsonSourceClient


class Command(BaseCommand):
    help = "Merge scraped toll plaza records into the toll registry by proximity."

    def add_arguments(self, parser: Any) -> None:
        source = parser.add_mutually_exclusive_group(required=True)
        source.add_argument(
            "--csv-path", type=str, help="CSV with name, number, latitude, longitude columns"
        )
        source.add_argument("--url", type=str, help="JSON endpoint returning a list of plazas")
        parser.add_argument(
            "--records-key",
            type=str,
            default="",
            help="Key of the plaza list when the JSON document is an object",
        )
        parser.add_argument(
            "--retries",
            type=int,
            default=settings.SOURCE_RETRY_COUNT,
            help="Extra attempts when the --url request fails",
        )
        parser.add_argument(
            "--radius-meters",
            type=float,
            default=float(settings.TOLL_MATCH_RADIUS_METERS),
            help="Distance within which an existing toll point is considered the same plaza",
        )

    def handle(self, *_: Any, **options: Any) -> None:
        radius_meters = options["radius_meters"]
        if radius_meters <= 0:
            raise CommandError("--radius-meters must be positive")

        if options["csv_path"]:
            csv_path = Path(options["csv_path"])
            if not csv_path.exists():
                raise CommandError(f"CSV file does not exist: {csv_path}")
            records: Any = self._load_csv(csv_path).to_dicts()
        else:
            try:
                payload = JsonSourceClient(retry_count=options["retries"]).fetch(options["url"])
            except (ExternalServiceError, BatchDecodeError) as exc:
                raise CommandError(str(exc)) from exc
            records = _iter_records(payload, options["records_key"])

        result = TollPointImporter(radius_meters=radius_meters).import_records(records)

        for error in result.errors:
            self.stderr.write(error)
        self.stdout.write(
            self.style.SUCCESS(
                f"Imported toll plazas: {result.processed} processed, "
                f"{result.updated} updated, {result.created} created, "
                f"{len(result.errors)} errors (radius={radius_meters:g}m)"
            )
        )

    @staticmethod
    def _load_csv(csv_path: Path) -> pl.DataFrame:
        frame = pl.read_csv(csv_path, infer_schema_length=5000)
        frame = frame.rename({column: column.strip().lower() for column in frame.columns})
        missing_columns = {"name", "latitude", "longitude"}.difference(frame.columns)
        if missing_columns:
            raise CommandError(f"Missing expected columns: {sorted(missing_columns)}")
        if "number" not in frame.columns:
            frame = frame.with_columns(pl.lit(None, dtype=pl.Utf8).alias("number"))

        return frame.select(
            pl.col("name").cast(pl.Utf8, strict=False).str.strip_chars().fill_null(""),
            pl.col("number")
            .cast(pl.Utf8, strict=False)
            .str.strip_chars()
            .alias("display_number"),
            pl.col("latitude").cast(pl.Float64, strict=False),
            pl.col("longitude").cast(pl.Float64, strict=False),
        )


def _iter_records(payload: Any, records_key: str) -> Iterator[Any]:
    if records_key:
        if not isinstance(payload, dict) or records_key not in payload:
            raise BatchDecodeError(f"JSON document has no '{records_key}' list")
        payload = payload[records_key]
    if not isinstance(payload, list):
        raise BatchDecodeError("JSON document must be a list of plazas")
    yield from payload
