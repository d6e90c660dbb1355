from __future__ import annotations

from decimal import Decimal

from django.db import models

from toll_pricing.services.types import (
    GeoPoint,
    IndependentPricing,
    MatrixPricing,
    PricedToll,
    Pricing,
    TollRates,
)


class PricingAuthority(models.Model):
    objects = models.Manager["PricingAuthority"]()

    name = models.CharField(max_length=255)
    state_code = models.CharField(max_length=8, unique=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("state_code",)
        verbose_name_plural = "pricing authorities"

    def __str__(self) -> str:
        return f"{self.name} ({self.state_code})"


class TollPoint(models.Model):
    objects = models.Manager["TollPoint"]()

    name = models.CharField(max_length=255, blank=True, default="")
    # External identifiers used to match scraped plaza data
    key = models.CharField(max_length=255, blank=True, default="")
    number = models.CharField(max_length=64, blank=True, default="")

    latitude = models.FloatField()
    longitude = models.FloatField()
    search_radius_meters = models.FloatField(default=0)

    # Independent pricing
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    electronic_pass_rate = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0")
    )
    cash_rate = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    overnight_electronic_pass_rate = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0")
    )
    overnight_cash_rate = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0")
    )

    authority = models.ForeignKey(
        PricingAuthority,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="toll_points",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name", "id")
        indexes = (
            models.Index(fields=["latitude", "longitude"]),
            models.Index(fields=["number"]),
        )

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)

    @property
    def pricing(self) -> Pricing:
        if self.authority_id is None:
            return IndependentPricing()
        return MatrixPricing(authority_id=self.authority_id)

    def to_priced_toll(self) -> PricedToll:
        return PricedToll(
            toll_id=self.id,
            name=self.name,
            pricing=self.pricing,
            rates=TollRates(
                electronic_pass=self.electronic_pass_rate,
                cash=self.cash_rate,
                overnight_electronic_pass=self.overnight_electronic_pass_rate,
                overnight_cash=self.overnight_cash_rate,
            ),
        )

    def __str__(self) -> str:
        if self.number:
            return f"{self.name} #{self.number}"
        return self.name or f"Toll {self.pk}"


class PriceMatrixCell(models.Model):
    objects = models.Manager["PriceMatrixCell"]()

    authority = models.ForeignKey(
        PricingAuthority, on_delete=models.CASCADE, related_name="matrix_cells"
    )
    from_toll = models.ForeignKey(
        TollPoint, on_delete=models.CASCADE, related_name="outgoing_cells"
    )
    to_toll = models.ForeignKey(TollPoint, on_delete=models.CASCADE, related_name="incoming_cells")
    electronic_pass_rate = models.DecimalField(max_digits=10, decimal_places=2)
    cash_rate = models.DecimalField(max_digits=10, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("authority", "from_toll", "to_toll")
        constraints = (
            models.UniqueConstraint(
                fields=["authority", "from_toll", "to_toll"], name="unique_matrix_cell"
            ),
        )

    def __str__(self) -> str:
        return f"{self.from_toll_id} -> {self.to_toll_id} ({self.authority_id})"
