from __future__ import annotations

from decimal import Decimal

import pytest

from toll_pricing.models import PriceMatrixCell
from toll_pricing.services.route_pricing import MatrixIndex, RoutePricer, RoutePricingService
from toll_pricing.services.types import (
    IndependentPricing,
    MatrixPricing,
    MatrixRate,
    PricedToll,
    RouteTollDetection,
    TollRates,
)

KS = 1
OK = 2


def _matrix_toll(toll_id: int, name: str, authority_id: int = KS) -> PricedToll:
    return PricedToll(toll_id=toll_id, name=name, pricing=MatrixPricing(authority_id=authority_id))


def _independent_toll(toll_id: int, name: str, **rates: Decimal) -> PricedToll:
    return PricedToll(
        toll_id=toll_id, name=name, pricing=IndependentPricing(), rates=TollRates(**rates)
    )


def _at(toll: PricedToll, distance: float) -> RouteTollDetection:
    return RouteTollDetection(toll=toll, distance_meters=distance)


def _matrix(*cells: tuple[int, str, str, str, str]) -> MatrixIndex:
    index = MatrixIndex()
    for authority_id, from_name, to_name, electronic, cash in cells:
        index.add(
            authority_id,
            from_name,
            to_name,
            MatrixRate(electronic_pass=Decimal(electronic), cash=Decimal(cash)),
        )
    return index


def test_repeated_entry_detection_is_charged_once_at_exit() -> None:
    a = _matrix_toll(1, "A")
    b = _matrix_toll(2, "B")
    matrix = _matrix((KS, "A", "B", "1.50", "3.00"))

    charges = RoutePricer().price([_at(a, 10), _at(b, 20), _at(a, 30)], matrix)

    assert len(charges) == 1
    assert charges[0].toll_id == 2
    assert charges[0].kind == "matrix"
    assert charges[0].distance_meters == 20
    assert charges[0].electronic_pass_rate == Decimal("1.50")
    assert charges[0].cash_rate == Decimal("3.00")


def test_exit_is_farthest_unused_toll_of_same_authority() -> None:
    entry = _matrix_toll(1, "Entry")
    middle = _matrix_toll(2, "Middle")
    far = _matrix_toll(3, "Far")
    other_authority = _matrix_toll(4, "Elsewhere", authority_id=OK)
    matrix = _matrix(
        (KS, "Entry", "Middle", "1.00", "2.00"),
        (KS, "Entry", "Far", "4.00", "8.00"),
    )

    charges = RoutePricer().price(
        [_at(entry, 0), _at(middle, 100), _at(far, 200), _at(other_authority, 300)], matrix
    )

    assert [charge.toll_id for charge in charges] == [3]
    assert charges[0].electronic_pass_rate == Decimal("4.00")


def test_detection_before_last_emitted_charge_is_ignored() -> None:
    a = _matrix_toll(1, "A")
    c = _matrix_toll(3, "C")
    b = _independent_toll(2, "B", electronic_pass=Decimal("9.00"), cash=Decimal("9.00"))
    matrix = _matrix((KS, "A", "C", "2.00", "4.00"))

    charges = RoutePricer().price([_at(a, 30), _at(c, 50), _at(b, 10)], matrix)

    assert [charge.toll_id for charge in charges] == [3]


def test_unsorted_detections_are_not_reordered() -> None:
    a = _matrix_toll(1, "A")
    b = _matrix_toll(2, "B")
    matrix = _matrix((KS, "A", "B", "2.00", "4.00"), (KS, "B", "A", "2.00", "4.00"))

    charges = RoutePricer().price([_at(a, 30), _at(b, 10)], matrix)

    assert charges == []


def test_independent_toll_uses_its_own_rates() -> None:
    toll = _independent_toll(
        7,
        "Bridge",
        electronic_pass=Decimal("2.25"),
        cash=Decimal("4.50"),
        overnight_electronic_pass=Decimal("1.75"),
        overnight_cash=Decimal("3.50"),
    )

    charges = RoutePricer().price([_at(toll, 120)], MatrixIndex())

    assert len(charges) == 1
    charge = charges[0]
    assert charge.kind == "independent"
    assert charge.electronic_pass_rate == Decimal("2.25")
    assert charge.cash_rate == Decimal("4.50")
    assert charge.overnight_electronic_pass_rate == Decimal("1.75")
    assert charge.overnight_cash_rate == Decimal("3.50")


def test_independent_toll_is_charged_on_every_detection() -> None:
    toll = _independent_toll(7, "Bridge", electronic_pass=Decimal("1.00"), cash=Decimal("2.00"))

    charges = RoutePricer().price([_at(toll, 10), _at(toll, 500)], MatrixIndex())

    assert [charge.distance_meters for charge in charges] == [10, 500]


def test_missing_matrix_cell_yields_zero_charge_at_exit() -> None:
    a = _matrix_toll(1, "A")
    b = _matrix_toll(2, "B")

    charges = RoutePricer().price([_at(a, 10), _at(b, 20)], MatrixIndex())

    assert len(charges) == 1
    assert charges[0].toll_id == 2
    assert charges[0].kind == "unpriced"
    assert charges[0].electronic_pass_rate == Decimal("0")
    assert charges[0].cash_rate == Decimal("0")
    assert charges[0].overnight_cash_rate is None


def test_missing_matrix_cell_consumes_entry_only() -> None:
    a = _matrix_toll(1, "A")
    b = _matrix_toll(2, "B")
    c = _matrix_toll(3, "C")
    matrix = _matrix((KS, "B", "C", "3.00", "6.00"))

    # A pairs with C (farthest) but has no cell; B is still free to pair with C
    charges = RoutePricer().price([_at(a, 10), _at(b, 20), _at(c, 30)], matrix)

    assert [(charge.toll_id, charge.kind) for charge in charges] == [
        (3, "unpriced"),
        (3, "matrix"),
    ]


def test_entry_without_exit_candidate_emits_nothing() -> None:
    a = _matrix_toll(1, "A")

    assert RoutePricer().price([_at(a, 10), _at(a, 20)], MatrixIndex()) == []


def test_entry_without_exit_candidate_does_not_consume_its_name() -> None:
    ks_plaza = _matrix_toll(1, "Main Street")
    ok_entry = _matrix_toll(2, "Main Street", authority_id=OK)
    ok_exit = _matrix_toll(3, "Tulsa", authority_id=OK)
    same_name_bridge = _independent_toll(
        4, "Main Street", electronic_pass=Decimal("1.00"), cash=Decimal("2.00")
    )
    matrix = _matrix((OK, "Main Street", "Tulsa", "2.50", "5.00"))

    charges = RoutePricer().price(
        [_at(ks_plaza, 10), _at(same_name_bridge, 15), _at(ok_entry, 20), _at(ok_exit, 30)],
        matrix,
    )

    assert [(charge.toll_id, charge.kind) for charge in charges] == [
        (4, "independent"),
        (3, "matrix"),
    ]


def test_used_names_compare_case_insensitively() -> None:
    entry = _matrix_toll(1, "Eastern Entrance")
    exit_ = _matrix_toll(2, "Wichita")
    repeat = _matrix_toll(3, "EASTERN ENTRANCE")
    matrix = _matrix((KS, "Eastern Entrance", "Wichita", "5.00", "10.00"))

    charges = RoutePricer().price([_at(entry, 10), _at(exit_, 90), _at(repeat, 95)], matrix)

    assert [charge.toll_id for charge in charges] == [2]


def test_matrix_lookup_is_scoped_to_authority() -> None:
    a = _matrix_toll(1, "A")
    b = _matrix_toll(2, "B")
    matrix = _matrix((OK, "A", "B", "2.00", "4.00"))

    charges = RoutePricer().price([_at(a, 10), _at(b, 20)], matrix)

    assert charges[0].kind == "unpriced"


def test_mixed_route_emits_charges_in_distance_order() -> None:
    bridge = _independent_toll(9, "Bridge", electronic_pass=Decimal("1.00"), cash=Decimal("2.00"))
    a = _matrix_toll(1, "A")
    b = _matrix_toll(2, "B")
    tunnel = _independent_toll(8, "Tunnel", electronic_pass=Decimal("3.00"), cash=Decimal("3.00"))
    matrix = _matrix((KS, "A", "B", "2.00", "4.00"))

    charges = RoutePricer().price(
        [_at(bridge, 5), _at(a, 10), _at(b, 40), _at(tunnel, 60)], matrix
    )

    assert [(charge.toll_id, charge.kind) for charge in charges] == [
        (9, "independent"),
        (2, "matrix"),
        (8, "independent"),
    ]


@pytest.mark.django_db
def test_service_sorts_detections_and_reports_unknown_tolls(authority, make_toll) -> None:
    entry = make_toll("Andover", authority=authority)
    exit_ = make_toll("Emporia", authority=authority)
    PriceMatrixCell.objects.create(
        authority=authority,
        from_toll=entry,
        to_toll=exit_,
        electronic_pass_rate=Decimal("4.00"),
        cash_rate=Decimal("8.00"),
    )

    result = RoutePricingService().price_route(
        [(exit_.id, 9_000.0), (404, 100.0), (entry.id, 1_000.0)]
    )

    assert [(charge.toll_id, charge.kind) for charge in result.charges] == [(exit_.id, "matrix")]
    assert result.total_electronic_pass == Decimal("4.00")
    assert result.total_cash == Decimal("8.00")
    assert result.errors == ["Toll 404 not found"]


@pytest.mark.django_db
def test_service_without_matrix_tolls_skips_cell_lookup(
    make_toll, django_assert_num_queries
) -> None:
    bridge = make_toll("Bridge", electronic_pass_rate=Decimal("1.25"), cash_rate=Decimal("2.50"))

    with django_assert_num_queries(1):
        result = RoutePricingService().price_route([(bridge.id, 50.0)])

    assert result.total_cash == Decimal("2.50")
