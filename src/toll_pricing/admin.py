from django.contrib import admin

from toll_pricing.models import PriceMatrixCell, PricingAuthority, TollPoint


@admin.register(PricingAuthority)
class PricingAuthorityAdmin(admin.ModelAdmin):
    list_display = ("name", "state_code", "updated_at")
    search_fields = ("name", "state_code")
    ordering = ("state_code",)


@admin.register(TollPoint)
class TollPointAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "number",
        "authority",
        "electronic_pass_rate",
        "cash_rate",
        "latitude",
        "longitude",
        "search_radius_meters",
    )
    list_filter = ("authority",)
    search_fields = ("name", "key", "number")
    ordering = ("name", "id")


@admin.register(PriceMatrixCell)
class PriceMatrixCellAdmin(admin.ModelAdmin):
    list_display = ("authority", "from_toll", "to_toll", "electronic_pass_rate", "cash_rate")
    list_filter = ("authority",)
    search_fields = ("from_toll__name", "to_toll__name")
    list_select_related = ("authority", "from_toll", "to_toll")
