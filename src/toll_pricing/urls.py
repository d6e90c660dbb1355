from django.urls import path

from toll_pricing import views

urlpatterns = [
    path("api/v1/health", views.health_view, name="health"),
    path("api/v1/route-price", views.route_price_view, name="route-price"),
]
