from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SourceModel(BaseModel):
    """Scraped/published payloads: camelCase or snake_case keys, extras ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PlazaRecord(SourceModel):
    name: str = Field(default="", max_length=255)
    display_number: str | None = Field(default=None, max_length=64)
    latitude: float
    longitude: float

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else value

    @field_validator("display_number", mode="before")
    @classmethod
    def _stringify_number(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            return str(int(value)) if value.is_integer() else str(value)
        if isinstance(value, str):
            return value.strip() or None
        return value


class ZoneRowIn(SourceModel):
    zone_code: int
    axles: int
    transponder_rate: Decimal


class PlazaIn(SourceModel):
    value: int
    name: str = ""


class VehicleClassIn(SourceModel):
    axles: int


class BoundsIn(SourceModel):
    min_latitude: float = Field(ge=-90.0, le=90.0)
    min_longitude: float = Field(ge=-180.0, le=180.0)
    max_latitude: float = Field(ge=-90.0, le=90.0)
    max_longitude: float = Field(ge=-180.0, le=180.0)


class ZoneMatrixRequest(SourceModel):
    zone_rows: list[ZoneRowIn]
    plazas: list[PlazaIn]
    vehicle_classes: list[VehicleClassIn]
    bounds: BoundsIn | None = None


class DetectionIn(SourceModel):
    toll_id: int = Field(gt=0)
    distance_meters: float = Field(ge=0.0)


class RoutePriceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    detections: list[DetectionIn] = Field(max_length=5000)


class TollChargeResponse(BaseModel):
    toll_id: int
    toll_name: str
    distance_meters: float
    kind: Literal["independent", "matrix", "unpriced"]
    electronic_pass_rate: Decimal
    cash_rate: Decimal
    overnight_electronic_pass_rate: Decimal | None = None
    overnight_cash_rate: Decimal | None = None


class RoutePriceSummaryResponse(BaseModel):
    charge_count: int
    total_electronic_pass: Decimal
    total_cash: Decimal


class RoutePriceResponse(BaseModel):
    charges: list[TollChargeResponse]
    summary: RoutePriceSummaryResponse
    errors: list[str]
