from django.urls import path

from .views import OrderAwardView, OrderDetailView, OrderListView, OrderStatusView

app_name = "tallyman"

urlpatterns = [
    path("orders/", OrderListView.as_view(), name="order-list"),
    path("orders/<int:order_id>/", OrderDetailView.as_view(), name="order-detail"),
    path("orders/<int:order_id>/status/", OrderStatusView.as_view(), name="order-status"),
    path("orders/<int:order_id>/award/", OrderAwardView.as_view(), name="order-award"),
]
