"""
Order API endpoints (JSON).

Flow:
    1. Parse the JSON body / query string
    2. Call OrderService
    3. Translate TallymanError into {"error": {"code", "message"}} with a
       stable code; anything unexpected is logged and returned as
       INTERNAL_ERROR without details

Authentication and authorization belong to the host project (wrap the
URLs or add middleware).
"""

from __future__ import annotations

import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from tallyman.exceptions import PointsAwardError, TallymanError
from tallyman.models import OrderStatus
from tallyman.services.orders import OrderService

logger = logging.getLogger(__name__)

_HTTP_STATUS = {
    "INVALID_REQUEST": 400,
    "INVALID_CART": 400,
    "INVALID_STATUS": 400,
    "INVALID_POINTS": 400,
    "CUSTOMER_NOT_FOUND": 404,
    "ORDER_NOT_FOUND": 404,
    "INSUFFICIENT_POINTS": 409,
    "INVALID_TRANSITION": 409,
    "ORDER_NOT_COMPLETED": 409,
    "LEDGER_INCONSISTENCY": 500,
}


def error_response(code: str, message: str, status: int | None = None) -> JsonResponse:
    return JsonResponse(
        {"error": {"code": code, "message": message}},
        status=status or _HTTP_STATUS.get(code, 400),
    )


def serialize_item(item) -> dict:
    return {
        "id": item.pk,
        "name": item.name,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "total": item.total,
    }


def serialize_order(order, detail: bool = False) -> dict:
    data = {
        "id": order.pk,
        "invoice_ref": order.invoice_ref,
        "customer_id": order.customer_id,
        "customer_name": order.customer_name,
        "amount": order.amount,
        "total": order.total,
        "status": order.status,
        "sync_status": order.sync_status,
        "discount_code": order.discount_code or None,
        "created_at": order.created_at,
    }
    if detail:
        data.update(
            {
                "discount_rate": order.discount_rate,
                "discount_amount": order.discount_amount,
                "points_redeemed": order.points_redeemed,
                "redemption_value": order.redemption_value,
                "points_awarded": order.points_awarded,
                "points_awarded_at": order.points_awarded_at,
                "status_changed_at": order.status_changed_at,
                "items": [serialize_item(item) for item in order.items.all()],
            }
        )
    return data


class ApiError(TallymanError):
    """Malformed request (bad JSON, missing or mistyped fields)."""

    code = "INVALID_REQUEST"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message or "Invalid request", **data)


@method_decorator(csrf_exempt, name="dispatch")
class ApiView(View):
    """Base JSON view: maps TallymanError to error responses."""

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except TallymanError as exc:
            return error_response(exc.code, exc.message)
        except Exception:
            logger.exception("Order API: unhandled error on %s %s", request.method, request.path)
            return error_response("INTERNAL_ERROR", "Internal error", status=500)

    def parse_body(self, request) -> dict:
        try:
            data = json.loads(request.body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ApiError("Invalid JSON")
        if not isinstance(data, dict):
            raise ApiError("JSON body must be an object")
        return data


def _int_param(value, name: str, default: int | None = None) -> int | None:
    if value in (None, ""):
        return default
    if isinstance(value, bool):
        raise ApiError(f"'{name}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ApiError(f"'{name}' must be an integer")


class OrderListView(ApiView):
    """
    GET : paginated order list (?page, limit, status, customer_id)
    POST: create an order
    """

    def get(self, request):
        status = request.GET.get("status") or None
        if status and status not in OrderStatus.values:
            raise TallymanError("INVALID_STATUS", status=status)

        page = OrderService.list_orders(
            page=_int_param(request.GET.get("page"), "page", 1),
            limit=_int_param(request.GET.get("limit"), "limit"),
            status=status,
            customer_id=_int_param(request.GET.get("customer_id"), "customer_id"),
        )
        return JsonResponse(
            {
                "data": [serialize_order(order) for order in page.data],
                "meta": {
                    "total": page.total,
                    "page": page.page,
                    "limit": page.limit,
                    "total_pages": page.total_pages,
                },
            }
        )

    def post(self, request):
        data = self.parse_body(request)

        customer_id = _int_param(data.get("customer_id"), "customer_id")
        if customer_id is None:
            raise ApiError("'customer_id' is required")
        points = data.get("points_to_redeem")
        if points is not None and (isinstance(points, bool) or not isinstance(points, int)):
            raise ApiError("'points_to_redeem' must be an integer")
        discount_code = data.get("discount_code") or None
        if discount_code is not None and not isinstance(discount_code, str):
            raise ApiError("'discount_code' must be a string")

        order = OrderService.create(
            customer_id=customer_id,
            customer_name=str(data.get("customer_name") or ""),
            items=data.get("items"),
            discount_code=discount_code,
            points_to_redeem=points,
            created_by=getattr(getattr(request, "user", None), "username", "") or "",
        )
        return JsonResponse(serialize_order(order), status=201)


class OrderDetailView(ApiView):
    def get(self, request, order_id):
        order = OrderService.get(order_id)
        if order is None:
            return error_response("ORDER_NOT_FOUND", "Order not found")
        return JsonResponse(serialize_order(order, detail=True))


class OrderStatusView(ApiView):
    """
    POST/PATCH {"status": "..."}.

    A completion whose points award fails still returns the (completed)
    order, with points_award.status == "failed" so it can be retried.
    """

    def post(self, request, order_id):
        data = self.parse_body(request)
        status = data.get("status")
        if not isinstance(status, str):
            raise ApiError("'status' is required")

        try:
            order = OrderService.update_status(order_id, status)
        except PointsAwardError as exc:
            award = {"status": "failed", "error": {"code": exc.code, "message": exc.message}}
            order = OrderService.get(exc.order.pk)
        else:
            if status == OrderStatus.COMPLETED and order.points_awarded_at is not None:
                award = {"status": "awarded", "points": order.points_awarded}
            else:
                award = {"status": "not_applicable"}
            order = OrderService.get(order.pk)

        return JsonResponse(
            {"order": serialize_order(order, detail=True), "points_award": award}
        )

    patch = post


class OrderAwardView(ApiView):
    """POST: retry the points award of a completed order."""

    def post(self, request, order_id):
        before = OrderService.get(order_id)
        if before is None:
            return error_response("ORDER_NOT_FOUND", "Order not found")
        already_awarded = before.points_awarded_at is not None

        OrderService.award_points(order_id)
        order = OrderService.get(order_id)
        award = {
            "status": "already_awarded" if already_awarded else "awarded",
            "points": order.points_awarded,
        }
        return JsonResponse(
            {"order": serialize_order(order, detail=True), "points_award": award}
        )
