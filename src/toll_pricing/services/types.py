from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal

ZERO = Decimal("0")


@dataclass(slots=True, frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(slots=True, frozen=True)
class IndependentPricing:
    """The toll point is charged from its own stored rates."""


@dataclass(slots=True, frozen=True)
class MatrixPricing:
    """The toll point is priced through its authority's entry/exit matrix."""

    authority_id: int


Pricing = IndependentPricing | MatrixPricing


@dataclass(slots=True, frozen=True)
class TollRates:
    electronic_pass: Decimal = ZERO
    cash: Decimal = ZERO
    overnight_electronic_pass: Decimal = ZERO
    overnight_cash: Decimal = ZERO


@dataclass(slots=True, frozen=True)
class PricedToll:
    toll_id: int
    name: str
    pricing: Pricing
    rates: TollRates = TollRates()


@dataclass(slots=True, frozen=True)
class RouteTollDetection:
    toll: PricedToll
    distance_meters: float


@dataclass(slots=True, frozen=True)
class MatrixRate:
    electronic_pass: Decimal
    cash: Decimal


@dataclass(slots=True, frozen=True)
class TollCharge:
    toll_id: int
    toll_name: str
    distance_meters: float
    kind: Literal["independent", "matrix", "unpriced"]
    electronic_pass_rate: Decimal
    cash_rate: Decimal
    overnight_electronic_pass_rate: Decimal | None = None
    overnight_cash_rate: Decimal | None = None


@dataclass(slots=True, frozen=True)
class RoutePricingResult:
    charges: list[TollCharge]
    errors: list[str] = field(default_factory=list)

    @property
    def total_electronic_pass(self) -> Decimal:
        return sum((charge.electronic_pass_rate for charge in self.charges), ZERO)

    @property
    def total_cash(self) -> Decimal:
        return sum((charge.cash_rate for charge in self.charges), ZERO)


@dataclass(slots=True, frozen=True)
class ZoneRate:
    zone_code: int
    axles: int
    transponder_rate: Decimal


@dataclass(slots=True, frozen=True)
class PlazaEndpoint:
    value: int
    name: str


@dataclass(slots=True, frozen=True)
class ZoneTotals:
    transponder: Decimal
    cash: Decimal

    @property
    def is_free(self) -> bool:
        return self.transponder == ZERO and self.cash == ZERO


@dataclass(slots=True)
class ImportResult:
    processed: int = 0
    updated: int = 0
    created: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class MatrixExpansionResult:
    authority_id: int
    created_cells: int = 0
    updated_cells: int = 0
    errors: list[str] = field(default_factory=list)
