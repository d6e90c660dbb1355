from __future__ import annotations

from decimal import Decimal

import pytest
from django.core.cache import cache
from django.test import Client

from toll_pricing.models import PricingAuthority, TollPoint


@pytest.fixture
def api_client() -> Client:
    return Client()


@pytest.fixture(autouse=True)
def _clear_cache() -> None:
    cache.clear()


@pytest.fixture
def authority(db) -> PricingAuthority:
    return PricingAuthority.objects.create(name="Kansas Turnpike", state_code="KS")


@pytest.fixture
def make_toll(db):
    def _make(
        name: str,
        *,
        latitude: float = 38.0,
        longitude: float = -97.0,
        number: str = "",
        authority: PricingAuthority | None = None,
        **rates: Decimal,
    ) -> TollPoint:
        return TollPoint.objects.create(
            name=name,
            key=name,
            number=number,
            latitude=latitude,
            longitude=longitude,
            authority=authority,
            **rates,
        )

    return _make
