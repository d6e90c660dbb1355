from __future__ import annotations

import json
from decimal import Decimal

import pytest

from toll_pricing.models import PriceMatrixCell
from toll_pricing.services.types import RoutePricingResult, TollCharge


def _post(api_client, payload) -> object:
    return api_client.post(
        "/api/v1/route-price",
        data=json.dumps(payload),
        content_type="application/json",
    )


@pytest.mark.django_db
def test_health_endpoint_returns_registry_counts(api_client, authority, make_toll) -> None:
    entry = make_toll("Andover", authority=authority)
    exit_ = make_toll("Emporia", authority=authority)
    make_toll("Bridge")
    PriceMatrixCell.objects.create(
        authority=authority,
        from_toll=entry,
        to_toll=exit_,
        electronic_pass_rate=Decimal("4.00"),
        cash_rate=Decimal("8.00"),
    )

    response = api_client.get("/api/v1/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["registry"] == {
        "tolls": 3,
        "matrix_priced_tolls": 2,
        "authorities": 1,
        "matrix_cells": 1,
    }


def test_route_price_validation_error_returns_400(api_client) -> None:
    response = _post(api_client, {"detections": [{"tollId": 0, "distanceMeters": 5}]})

    assert response.status_code == 400
    payload = response.json()
    assert payload["error"]["code"] == "validation_error"
    assert payload["error"]["details"]


def test_route_price_rejects_unknown_fields(api_client) -> None:
    response = _post(api_client, {"detections": [], "vehicle": "truck"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation_error"


def test_route_price_invalid_json_returns_400(api_client) -> None:
    response = api_client.post(
        "/api/v1/route-price", data="{not json", content_type="application/json"
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_json"


def test_route_price_requires_post(api_client) -> None:
    response = api_client.get("/api/v1/route-price")

    assert response.status_code == 405


@pytest.mark.django_db
def test_route_price_prices_detections_from_registry(api_client, authority, make_toll) -> None:
    bridge = make_toll(
        "Bridge",
        electronic_pass_rate=Decimal("1.00"),
        cash_rate=Decimal("2.00"),
        overnight_electronic_pass_rate=Decimal("0.50"),
        overnight_cash_rate=Decimal("1.00"),
    )
    entry = make_toll("Andover", authority=authority)
    exit_ = make_toll("Emporia", authority=authority)
    PriceMatrixCell.objects.create(
        authority=authority,
        from_toll=entry,
        to_toll=exit_,
        electronic_pass_rate=Decimal("4.00"),
        cash_rate=Decimal("8.00"),
    )

    response = _post(
        api_client,
        {
            "detections": [
                {"tollId": exit_.id, "distanceMeters": 40_000},
                {"tollId": entry.id, "distanceMeters": 10_000},
                {"tollId": bridge.id, "distanceMeters": 500},
                {"tollId": 999_999, "distanceMeters": 20_000},
            ]
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert [(charge["toll_id"], charge["kind"]) for charge in payload["charges"]] == [
        (bridge.id, "independent"),
        (exit_.id, "matrix"),
    ]
    assert Decimal(payload["charges"][0]["overnight_cash_rate"]) == Decimal("1.00")
    assert payload["charges"][1]["overnight_cash_rate"] is None
    assert payload["summary"]["charge_count"] == 2
    assert Decimal(payload["summary"]["total_electronic_pass"]) == Decimal("5.00")
    assert Decimal(payload["summary"]["total_cash"]) == Decimal("10.00")
    assert payload["errors"] == ["Toll 999999 not found"]


@pytest.mark.django_db
def test_route_price_with_no_detections_is_free(api_client) -> None:
    response = _post(api_client, {"detections": []})

    assert response.status_code == 200
    payload = response.json()
    assert payload["charges"] == []
    assert Decimal(payload["summary"]["total_cash"]) == Decimal("0")


def test_route_price_uses_pricing_service(api_client, mocker) -> None:
    service = mocker.Mock()
    service.price_route.return_value = RoutePricingResult(
        charges=[
            TollCharge(
                toll_id=7,
                toll_name="Bridge",
                distance_meters=120.0,
                kind="independent",
                electronic_pass_rate=Decimal("2.25"),
                cash_rate=Decimal("4.50"),
            )
        ]
    )
    mocker.patch("toll_pricing.views.get_route_pricing_service", return_value=service)

    response = _post(api_client, {"detections": [{"toll_id": 7, "distance_meters": 120}]})

    assert response.status_code == 200
    service.price_route.assert_called_once_with([(7, 120.0)])
    payload = response.json()
    assert payload["charges"][0]["toll_name"] == "Bridge"
    assert Decimal(payload["summary"]["total_cash"]) == Decimal("4.50")
