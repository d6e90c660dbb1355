from __future__ import annotations

from collections import Counter

from toll_pricing.models import PricingAuthority, TollPoint


def get_or_create_authority(state_code: str, name: str) -> PricingAuthority:
    if not state_code or not state_code.strip():
        raise ValueError("State code cannot be empty")
    if not name or not name.strip():
        raise ValueError("Authority name cannot be empty")

    authority, _ = PricingAuthority.objects.get_or_create(
        state_code=state_code.strip().upper(),
        defaults={"name": name.strip()},
    )
    return authority


def find_duplicate_names(authority_id: int) -> dict[str, int]:
    """Display names shared by several toll points of one authority.

    Matrix cells are looked up by name at pricing time, so any name listed
    here can route a trip to the wrong cell.
    """
    names = TollPoint.objects.filter(authority_id=authority_id).values_list("name", flat=True)
    counts = Counter(name.strip().casefold() for name in names if name and name.strip())
    return {name: count for name, count in sorted(counts.items()) if count > 1}
