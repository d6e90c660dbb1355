from __future__ import annotations

import json
from typing import Any

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST
from pydantic import ValidationError

from toll_pricing.models import PriceMatrixCell, PricingAuthority, TollPoint
from toll_pricing.schemas import (
    RoutePriceRequest,
    RoutePriceResponse,
    RoutePriceSummaryResponse,
    TollChargeResponse,
)
from toll_pricing.services.route_pricing import RoutePricingService

_pricing_service: RoutePricingService | None = None


def get_route_pricing_service() -> RoutePricingService:
    global _pricing_service
    if _pricing_service is None:
        _pricing_service = RoutePricingService()
    return _pricing_service


@require_GET
def health_view(_: HttpRequest) -> HttpResponse:
    return JsonResponse(
        {
            "status": "ok",
            "registry": {
                "tolls": TollPoint.objects.count(),
                "matrix_priced_tolls": TollPoint.objects.exclude(authority__isnull=True).count(),
                "authorities": PricingAuthority.objects.count(),
                "matrix_cells": PriceMatrixCell.objects.count(),
            },
        }
    )


@csrf_exempt
@require_POST
def route_price_view(request: HttpRequest) -> HttpResponse:
    payload = _parse_json_payload(request)
    if isinstance(payload, JsonResponse):
        return payload

    try:
        price_request = RoutePriceRequest.model_validate(payload)
    except ValidationError as exc:
        return JsonResponse(
            {
                "error": {
                    "code": "validation_error",
                    "message": "Invalid request payload",
                    "details": exc.errors(include_url=False, include_context=False),
                }
            },
            status=400,
        )

    result = get_route_pricing_service().price_route(
        [(detection.toll_id, detection.distance_meters) for detection in price_request.detections]
    )
    response = RoutePriceResponse(
        charges=[
            TollChargeResponse(
                toll_id=charge.toll_id,
                toll_name=charge.toll_name,
                distance_meters=charge.distance_meters,
                kind=charge.kind,
                electronic_pass_rate=charge.electronic_pass_rate,
                cash_rate=charge.cash_rate,
                overnight_electronic_pass_rate=charge.overnight_electronic_pass_rate,
                overnight_cash_rate=charge.overnight_cash_rate,
            )
            for charge in result.charges
        ],
        summary=RoutePriceSummaryResponse(
            charge_count=len(result.charges),
            total_electronic_pass=result.total_electronic_pass,
            total_cash=result.total_cash,
        ),
        errors=result.errors,
    )
    return JsonResponse(response.model_dump(mode="json"), status=200)


def _parse_json_payload(request: HttpRequest) -> dict[str, Any] | JsonResponse:
    if not request.body:
        return {}

    try:
        payload = json.loads(request.body)
    except json.JSONDecodeError:
        return _error_response("invalid_json", "Request body must be valid JSON", status=400)

    if not isinstance(payload, dict):
        return _error_response("invalid_json", "JSON body must be an object", status=400)

    return payload


def _error_response(code: str, message: str, status: int) -> JsonResponse:
    return JsonResponse({"error": {"code": code, "message": message}}, status=status)
